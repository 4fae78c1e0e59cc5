"""
Package version information.
Kept in a separate file so setup.py can read it without importing pulumi.
"""

__version__ = "0.1.0"
