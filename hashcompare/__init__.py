"""
hashcompare - folder comparison by content fingerprints.
"""

__version__ = "1.0.0"
