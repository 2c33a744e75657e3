"""
Services: hashing, run configuration and logging setup.
"""
