"""
Backend protocols, registry and implementations.

Importing this package registers the built-in backends ('supabase' and
'local').
"""

from .errors import (
    BackendError,
    NotConfiguredError,
    RealtimeError,
    SchemaMismatchError,
    StorageError,
    StoragePermissionError,
)
from .protocol import (
    Backend,
    ChangeEvent,
    ChangeFeed,
    FileStore,
    RemoteStore,
    Subscription,
    detect_backend,
    get_backend,
    list_backends,
    register_backend,
)

# Import backend implementations to trigger registration
from . import local  # noqa: F401
from . import supabase  # noqa: F401

__all__ = [
    # Errors
    "BackendError",
    "NotConfiguredError",
    "RealtimeError",
    "SchemaMismatchError",
    "StorageError",
    "StoragePermissionError",
    # Protocols and registry
    "Backend",
    "ChangeEvent",
    "ChangeFeed",
    "FileStore",
    "RemoteStore",
    "Subscription",
    "detect_backend",
    "get_backend",
    "list_backends",
    "register_backend",
]
