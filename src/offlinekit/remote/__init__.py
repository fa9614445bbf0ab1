"""Remote store clients.

Usage:
    from offlinekit.remote import HttpRemoteStore, MemoryRemoteStore
"""
from offlinekit.remote.base import RemoteStore, matches
from offlinekit.remote.http import HttpRemoteStore
from offlinekit.remote.memory import MemoryRemoteStore

__all__ = [
    "RemoteStore",
    "matches",
    "HttpRemoteStore",
    "MemoryRemoteStore",
]
