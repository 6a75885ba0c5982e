"""
Object storage interface used by the expense processor.
"""

from abc import ABC, abstractmethod


class ObjectStorage(ABC):
    """Read and write objects addressed by bucket and key."""

    @abstractmethod
    def get_object(self, bucket: str, key: str) -> bytes:
        """Return the object's content. Raises if the object cannot be read."""

    @abstractmethod
    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Write an object, replacing any existing one."""

    def get_text(self, bucket: str, key: str, encoding: str = 'utf-8') -> str:
        return self.get_object(bucket, key).decode(encoding, errors='replace')

    def health_check(self, bucket: str) -> bool:
        return True
