"""
spabooking - public appointment booking engine for med-spa practices.
"""

__version__ = "0.1.0"
