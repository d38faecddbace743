"""
imgstamp - Bordered, captioned photo prints
"""

__version__ = "1.0.0"
