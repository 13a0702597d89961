"""
address-book: an encrypted, file-backed address book manager.
"""

__version__ = "1.0.0"
