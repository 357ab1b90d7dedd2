"""Exceptions raised by the crawler pipeline."""

from __future__ import annotations


class BrandKitError(Exception):
    """Base class for errors raised by brandkit_crawler."""


class InvalidURLError(BrandKitError, ValueError):
    """The requested target URL cannot be normalized."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid target URL: {url!r}")
        self.url = url


class JobNotFoundError(BrandKitError, LookupError):
    """No job record exists for the given identifier."""

    def __init__(self, job_id: int) -> None:
        super().__init__("Job not found")
        self.job_id = job_id


class StorageError(BrandKitError):
    """Persisting an artifact failed."""


class ImageFetchError(BrandKitError):
    """An image could not be downloaded or was rejected."""
