"""Key-value persistence for the tracker's JSON blobs.

Every backend answers the same four calls: ``get(key)`` returns the
stored text or ``None``, ``put(key, blob)`` replaces it, ``delete(key)``
removes it and ``keys(prefix)`` lists the keys starting with ``prefix``. Nothing above this module knows which backend is in use.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import boto3
from dotenv import load_dotenv

from database import Blob, SessionLocal, init_db

load_dotenv()

logger = logging.getLogger(__name__)

# Environment variables
STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND")
DATA_DIR = os.environ.get("DATA_DIR", "fintrack_data")
S3_BUCKET = os.environ.get("S3_BUCKET")
S3_PREFIX = os.environ.get("S3_PREFIX", "fintrack")
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, blob: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> List[str]: ...


class MemoryStore:
    """Dict-backed store; used by tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def put(self, key: str, blob: str) -> None:
        self._data[key] = blob

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]


class LocalStore:
    """One ``<key>.json`` file per key under a data directory."""

    def __init__(self, root: str | Path = DATA_DIR):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def put(self, key: str, blob: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write then rename so a reader never sees half a blob.
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(blob, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self, prefix: str = "") -> List[str]:
        return [p.name[: -len(".json")] for p in self.root.glob(f"{prefix}*.json")]


class SQLStore:
    """Blobs kept in the ``blobs`` table of the configured database."""

    def __init__(self, session_factory=None):
        if session_factory is None:
            init_db()
            session_factory = SessionLocal
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            row = db.get(Blob, key)
            return row.value if row else None
        finally:
            db.close()

    def put(self, key: str, blob: str) -> None:
        db = self.session_factory()
        try:
            row = db.get(Blob, key)
            if row is None:
                db.add(Blob(key=key, value=blob))
            else:
                row.value = blob
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to write key %s", key)
            raise
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self.session_factory()
        try:
            db.query(Blob).filter(Blob.key == key).delete()
            db.commit()
        finally:
            db.close()

    def keys(self, prefix: str = "") -> List[str]:
        db = self.session_factory()
        try:
            rows = db.query(Blob.key).filter(Blob.key.startswith(prefix, autoescape=True))
            return [key for (key,) in rows]
        finally:
            db.close()


def get_s3_client():
    return boto3.client("s3", region_name=AWS_REGION)


class S3Store:
    """Blobs stored as objects under ``<prefix>/<key>.json`` in a bucket."""

    def __init__(self, bucket: str = S3_BUCKET, prefix: str = S3_PREFIX, client=None):
        if not bucket:
            raise ValueError("S3Store needs a bucket name (set S3_BUCKET)")
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.client = client or get_s3_client()

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}.json" if self.prefix else f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
        except self.client.exceptions.NoSuchKey:
            return None
        except Exception:
            logger.exception("S3 download failed for %s", key)
            raise
        return obj["Body"].read().decode("utf-8")

    def put(self, key: str, blob: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self._key(key),
                Body=blob.encode("utf-8"),
                ContentType="application/json",
            )
        except Exception:
            logger.exception("S3 upload failed for %s", key)
            raise

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=self._key(key))

    def keys(self, prefix: str = "") -> List[str]:
        base = f"{self.prefix}/" if self.prefix else ""
        found = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=base + prefix):
            for obj in page.get("Contents", []):
                name = obj["Key"][len(base):]
                if name.endswith(".json"):
                    found.append(name[: -len(".json")])
        return found


def get_store(backend: Optional[str] = None) -> KeyValueStore:
    """
    Build the store named by ``backend`` or the STORAGE_BACKEND variable.

    Without either, an S3 bucket in the environment selects S3 and
    everything else falls back to files on local disk.
    """
    backend = (backend or STORAGE_BACKEND or ("s3" if S3_BUCKET else "local")).lower()
    if backend == "s3":
        return S3Store()
    if backend == "sql":
        return SQLStore()
    if backend == "memory":
        return MemoryStore()
    if backend == "local":
        return LocalStore()
    raise ValueError(f"Unknown storage backend: {backend}")
