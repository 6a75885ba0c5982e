"""
Filesystem backed object storage for running the pipeline locally.
"""

import logging
from pathlib import Path

from expense_processor.storage.base import ObjectStorage

logger = logging.getLogger(__name__)


class LocalStorage(ObjectStorage):
    """Stores objects as files under ``root/<bucket>/<key>``.

    An empty bucket name maps keys directly under the root directory.
    """

    def __init__(self, root: str):
        self.root = Path(root)

    def _path(self, bucket: str, key: str) -> Path:
        base = self.root / bucket if bucket else self.root
        path = (base / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    def get_object(self, bucket: str, key: str) -> bytes:
        path = self._path(bucket, key)
        content = path.read_bytes()
        logger.info(f"Read {path} ({len(content)} bytes)")
        return content

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        path = self._path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body)
        logger.info(f"Wrote {path} ({len(body)} bytes, {content_type})")

    def health_check(self, bucket: str) -> bool:
        base = self.root / bucket if bucket else self.root
        return base.is_dir()
