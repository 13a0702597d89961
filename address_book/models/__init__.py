"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as configuration and contact records.
"""

from .config import AddressBookConfig
from .record import ContactRecord

__all__ = ["AddressBookConfig", "ContactRecord"]
