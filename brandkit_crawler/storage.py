"""Binary artifact storage: local disk or a remote upload service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urljoin

import requests

from .config import CrawlConfig
from .errors import StorageError

logger = logging.getLogger("brandkit_crawler.storage")


@dataclass
class StoredArtifact:
    key: str
    url: str


class ArtifactStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> StoredArtifact: ...


def normalize_key(key: str) -> str:
    """Strip leading slashes and reject keys that escape the store root."""
    key = key.lstrip("/")
    parts = key.split("/")
    if not key or any(part in ("", ".", "..") for part in parts):
        raise StorageError(f"Invalid storage key: {key!r}")
    return key


class LocalArtifactStore:
    """Write artifacts under a directory and serve them from ``base_url``."""

    def __init__(self, root: Path, base_url: str) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> StoredArtifact:
        key = normalize_key(key)
        destination = self.root / key
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write {destination}: {exc}") from exc
        logger.debug("Stored %d bytes (%s) at %s", len(data), content_type, destination)
        return StoredArtifact(key=key, url=f"{self.base_url}/{key}")


class RemoteArtifactStore:
    """Upload artifacts to an HTTP storage service with bearer authentication."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ) -> None:
        if not api_url or not api_key:
            raise StorageError(
                "Remote storage credentials missing: set STORAGE_API_URL and "
                "STORAGE_API_KEY, or use STORAGE_MODE=local"
            )
        self.api_url = api_url.rstrip("/") + "/"
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> StoredArtifact:
        key = normalize_key(key)
        filename = key.rsplit("/", 1)[-1]
        try:
            resp = self.session.post(
                urljoin(self.api_url, "v1/storage/upload"),
                params={"path": key},
                headers={"Authorization": f"Bearer {self.api_key}"},
                files={"file": (filename, data, content_type)},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            url = resp.json()["url"]
        except (requests.RequestException, ValueError, KeyError) as exc:
            raise StorageError(f"Upload of {key} failed: {exc}") from exc
        return StoredArtifact(key=key, url=url)


def build_artifact_store(config: CrawlConfig) -> ArtifactStore:
    if config.storage_mode == "remote":
        return RemoteArtifactStore(config.storage_api_url or "", config.storage_api_key or "")
    if config.storage_mode != "local":
        raise StorageError(f"Unknown storage mode: {config.storage_mode!r}")
    return LocalArtifactStore(config.output_root / "uploads", config.storage_base_url)
