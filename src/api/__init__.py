"""
Versioning API Package

HTTP surface over the versioning service: folder management, history
queries, restore and relocation, plus a pollable notification log.
"""

from .events import EventLog, FolderEvent
from .server import APIConfig, APIService, create_app


__all__ = [
    "EventLog",
    "FolderEvent",
    "APIConfig",
    "APIService",
    "create_app",
]
