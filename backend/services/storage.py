import logging
import secrets
import time
from pathlib import Path

import settings

logger = logging.getLogger("jammer.storage")

AVATAR_BUCKET = "avatars"
COVER_BUCKET = "jam-covers"


class StorageError(Exception):
    pass


class LocalStorage:
    """Public object buckets kept on the local filesystem.

    Object keys always start with the owner's user id, the only check
    ownership relies on.
    """

    def __init__(self, root: Path | None = None, public_url: str | None = None):
        self.root = Path(root or settings.STORAGE_DIR)
        self.public_url = (public_url or settings.STORAGE_PUBLIC_URL).rstrip("/")

    def _object_path(self, bucket: str, key: str) -> Path:
        base = (self.root / bucket).resolve()
        target = (base / key).resolve()
        if base not in target.parents:
            raise StorageError(f"Invalid object key: {key}")
        return target

    @staticmethod
    def new_key(owner_id: str, filename: str | None, prefix: str | None = None) -> str:
        extension = "jpg"
        if filename and "." in filename:
            extension = filename.rsplit(".", 1)[-1].lower() or "jpg"
        suffix = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
        if prefix:
            suffix = f"{prefix}-{suffix}"
        return f"{owner_id}/{suffix}.{extension}"

    def upload(self, bucket: str, key: str, data: bytes) -> str:
        target = self._object_path(bucket, key)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug(f"Stored {len(data):,} bytes in {bucket}/{key}")
        return key

    def remove(self, bucket: str, keys: list[str]) -> None:
        for key in keys:
            target = self._object_path(bucket, key)
            try:
                target.unlink()
            except FileNotFoundError:
                raise StorageError(f"Object not found: {bucket}/{key}")

    def get_public_url(self, bucket: str, key: str) -> str:
        return f"{self.public_url}/{bucket}/{key}"


def owns_key(owner_id: str, key: str | None) -> bool:
    """True for keys inside the owner's folder, empty or relative segments never qualify"""
    if not key or not isinstance(key, str) or "\\" in key:
        return False
    owner, _, rest = key.partition("/")
    if owner != owner_id or not rest:
        return False
    return all(part not in ("", ".", "..") for part in rest.split("/"))


def get_storage() -> LocalStorage:
    return LocalStorage()


def replace_object(
    storage: LocalStorage,
    bucket: str,
    *,
    owner_id: str,
    filename: str | None,
    data: bytes,
    previous_key: str | None = None,
    prefix: str | None = None,
) -> str:
    """Store a new upload and drop the one it replaces when the owner holds it"""
    key = storage.upload(bucket, storage.new_key(owner_id, filename, prefix), data)
    if previous_key and owns_key(owner_id, previous_key):
        try:
            storage.remove(bucket, [previous_key])
        except StorageError as e:
            logger.warning(f"Failed to remove previous object {bucket}/{previous_key}: {e}")
    return key
