"""Image downloading, quality analysis and storage."""

from __future__ import annotations

import logging
import secrets
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import requests
from filetype import guess

from .analysis import analyze_image
from .config import CrawlConfig
from .errors import ImageFetchError
from .models import AnalyzedImage, ImageCandidate
from .storage import ArtifactStore
from .utils import slugify

logger = logging.getLogger("brandkit_crawler.images")

MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass
class FetchedImage:
    status: int
    content_type: str
    data: bytes


ImageFetcher = Callable[[str], FetchedImage]


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def infer_image_extension(content_type: Optional[str], data: bytes) -> str:
    """Guess an image file extension from the file signature or HTTP metadata."""
    detected = detect_image_format(data)
    if detected:
        return detected
    if content_type:
        parts = content_type.split(";")[0].split("/")
        if len(parts) == 2 and parts[1].strip():
            ext = parts[1].strip().lower()
            if ext == "jpeg":
                ext = "jpg"
            if ext == "svg+xml":
                ext = "svg"
            return ext
    return "jpg"


def requests_fetcher(config: CrawlConfig, session: Optional[requests.Session] = None) -> ImageFetcher:
    """Build a fetch function backed by a shared ``requests`` session."""
    session = session or requests.Session()
    session.headers.setdefault("User-Agent", config.user_agent)

    def fetch(url: str) -> FetchedImage:
        try:
            resp = session.get(url, timeout=config.image_timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ImageFetchError(f"Failed to fetch image {url}: {exc}") from exc
        return FetchedImage(
            status=resp.status_code,
            content_type=resp.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE,
            data=resp.content,
        )

    return fetch


def build_unprocessed(candidate: ImageCandidate) -> AnalyzedImage:
    """Candidate with neutral quality defaults and no stored copy."""
    return AnalyzedImage.from_candidate(candidate)


def process_image(
    candidate: ImageCandidate,
    job_id: int,
    store: ArtifactStore,
    fetch: ImageFetcher,
) -> AnalyzedImage:
    """Download, analyze and store one image.

    Any failure yields the candidate with default quality fields and no
    stored URL; it never raises.
    """
    url = candidate.original_url
    try:
        fetched = fetch(url)
        data = fetched.data
        if not data:
            raise ImageFetchError(f"Empty response for {url}")
        if len(data) > MAX_IMAGE_BYTES:
            raise ImageFetchError(f"Image larger than {MAX_IMAGE_BYTES} bytes: {url}")

        analysis = analyze_image(data)
        extension = infer_image_extension(fetched.content_type, data)
        label = slugify(candidate.alt_text or "image", fallback="image")[:40]
        key = f"crawl-{job_id}/{label}-{secrets.token_hex(5)}.{extension}"
        content_type = fetched.content_type.split(";")[0].strip() or DEFAULT_CONTENT_TYPE
        stored = store.put(key, data, content_type)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Failed to process image %s: %s", url, exc)
        return build_unprocessed(candidate)

    return AnalyzedImage.from_candidate(
        candidate,
        is_blurry=analysis.quality.is_blurry,
        blur_score=analysis.quality.blur_score,
        dominant_colors=analysis.colors,
        stored_url=stored.url,
        storage_key=stored.key,
        file_size=len(data),
        mime_type=content_type,
    )


def process_images(
    candidates: Sequence[ImageCandidate],
    job_id: int,
    store: ArtifactStore,
    *,
    config: CrawlConfig,
    fetch: Optional[ImageFetcher] = None,
) -> List[AnalyzedImage]:
    """Run the asset pipeline for every candidate, preserving input order.

    Images are independent of each other, so they are fanned out over a
    bounded thread pool. Each URL is processed at most once.
    """
    if not candidates:
        return []
    fetch = fetch or requests_fetcher(config)

    unique: List[ImageCandidate] = []
    seen = set()
    for candidate in candidates:
        if candidate.original_url not in seen:
            seen.add(candidate.original_url)
            unique.append(candidate)

    workers = max(1, min(config.image_workers, len(unique)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="brandkit-image") as pool:
        results = list(
            pool.map(lambda candidate: process_image(candidate, job_id, store, fetch), unique)
        )
    stored = sum(1 for image in results if image.stored_url)
    logger.info("Processed %d images for job %s (%d stored)", len(results), job_id, stored)
    return results
