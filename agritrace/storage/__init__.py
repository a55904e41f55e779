"""
Content store port and implementations.
"""

from .base import ContentNotFound, ContentStore, ContentStoreError, ContentStoreUnavailable
from .ipfs_client import IPFSContentStore
from .memory import InMemoryContentStore

__all__ = [
    "ContentStore",
    "ContentStoreError",
    "ContentNotFound",
    "ContentStoreUnavailable",
    "IPFSContentStore",
    "InMemoryContentStore",
]
