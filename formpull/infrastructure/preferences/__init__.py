"""
Preference storage implementations
"""
from .memory_store import InMemoryPreferences
from .json_store import JsonFilePreferences

__all__ = [
    "InMemoryPreferences",
    "JsonFilePreferences",
]
