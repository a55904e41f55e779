"""
Content store port.

A content-addressed blob store: the key of every blob is a hash of its
bytes, so putting the same bytes twice yields the same key. Blobs that
are not pinned may be garbage-collected by the store.
"""

from abc import ABC, abstractmethod


class ContentStoreError(Exception):
    """Base class for content store failures."""

    def __init__(self, message: str, content_hash: str | None = None):
        self.content_hash = content_hash
        super().__init__(message)


class ContentNotFound(ContentStoreError):
    """No blob is stored under the requested hash."""


class ContentStoreUnavailable(ContentStoreError):
    """The store could not be reached or did not answer in time."""


class ContentStore(ABC):
    """Abstract add/get/pin interface keyed by content hash."""

    @abstractmethod
    async def put(self, data: bytes, name: str) -> str:
        """
        Store bytes and return their content hash.

        Args:
            data: Payload
            name: Informational file name

        Raises:
            ContentStoreUnavailable
        """

    @abstractmethod
    async def get(self, content_hash: str) -> bytes:
        """
        Fetch the bytes stored under ``content_hash``.

        Raises:
            ContentNotFound, ContentStoreUnavailable
        """

    @abstractmethod
    async def pin(self, content_hash: str) -> None:
        """
        Mark a blob as must-retain. Pinning twice is harmless.

        Raises:
            ContentNotFound, ContentStoreUnavailable
        """

    async def close(self) -> None:
        """Release network resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
