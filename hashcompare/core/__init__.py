"""
Core comparison engine: data models, errors and the folder modules.
"""
