"""
In-memory content-addressed store (SHA-256 keys) for tests and local runs.
"""

import hashlib

from .base import ContentNotFound, ContentStore


class InMemoryContentStore(ContentStore):
    """
    Blobs keyed by the hex SHA-256 of their bytes.

    ``collect_garbage`` drops every unpinned blob, which is what a real
    store may do at any time.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.names: dict[str, str] = {}
        self.pinned: set[str] = set()

    @staticmethod
    def hash_bytes(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    async def put(self, data: bytes, name: str) -> str:
        content_hash = self.hash_bytes(data)
        self.blobs[content_hash] = bytes(data)
        self.names.setdefault(content_hash, name)
        return content_hash

    async def get(self, content_hash: str) -> bytes:
        try:
            return self.blobs[content_hash]
        except KeyError:
            raise ContentNotFound(f"no content stored under {content_hash}", content_hash) from None

    async def pin(self, content_hash: str) -> None:
        if content_hash not in self.blobs:
            raise ContentNotFound(f"cannot pin missing content {content_hash}", content_hash)
        self.pinned.add(content_hash)

    def is_pinned(self, content_hash: str) -> bool:
        return content_hash in self.pinned

    def collect_garbage(self) -> int:
        """Remove unpinned blobs; returns how many were removed."""
        unpinned = [h for h in self.blobs if h not in self.pinned]
        for content_hash in unpinned:
            del self.blobs[content_hash]
            self.names.pop(content_hash, None)
        return len(unpinned)
