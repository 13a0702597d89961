"""
Storage Layer.

This package handles all data persistence: the encrypted per-user record
files, their text codec, and the configuration file.
"""

from .codec import parse_collection, serialize_collection
from .config_manager import ConfigManager
from .record_store import MAX_RECORDS, RecordStore

__all__ = [
    "MAX_RECORDS",
    "ConfigManager",
    "RecordStore",
    "parse_collection",
    "serialize_collection",
]
