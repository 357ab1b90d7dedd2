"""Crawl job records and the runner that drives a job through its lifecycle."""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Set

from .browser import PlaywrightRenderer, Renderer
from .config import CrawlConfig
from .crawler import crawl_site
from .errors import BrandKitError, JobNotFoundError
from .images import ImageFetcher, build_unprocessed, process_images
from .models import AnalyzedImage, BrandKit, CrawlJob, CrawlProgress, CrawlResult, utcnow
from .progress import ProgressTable
from .storage import ArtifactStore, build_artifact_store

logger = logging.getLogger("brandkit_crawler.jobs")

_JOB_FIELDS = set(CrawlJob.__dataclass_fields__) - {"id", "created_at", "updated_at"}


class JobStore(Protocol):
    def create(self, target_url: str, max_pages: int) -> CrawlJob: ...

    def get(self, job_id: int) -> Optional[CrawlJob]: ...

    def list_jobs(self, limit: int = 20) -> List[CrawlJob]: ...

    def update(self, job_id: int, **fields: Any) -> CrawlJob: ...

    def delete(self, job_id: int) -> None: ...

    def add_images(self, job_id: int, images: Sequence[AnalyzedImage]) -> List[AnalyzedImage]: ...

    def get_images(self, job_id: int) -> List[AnalyzedImage]: ...

    def update_image_labels(self, job_id: int, image_id: int, labels: Sequence[str]) -> AnalyzedImage: ...


class InMemoryJobStore:
    """Process-local job store. Returned records are copies."""

    def __init__(self) -> None:
        self._jobs: Dict[int, CrawlJob] = {}
        self._images: Dict[int, List[AnalyzedImage]] = {}
        self._job_ids = itertools.count(1)
        self._image_ids = itertools.count(1)
        self._lock = threading.Lock()

    def _require(self, job_id: int) -> CrawlJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def create(self, target_url: str, max_pages: int) -> CrawlJob:
        with self._lock:
            job = CrawlJob(id=next(self._job_ids), target_url=target_url, max_pages=max_pages)
            self._jobs[job.id] = job
            self._images[job.id] = []
            return replace(job)

    def get(self, job_id: int) -> Optional[CrawlJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def list_jobs(self, limit: int = 20) -> List[CrawlJob]:
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda job: (job.created_at, job.id), reverse=True)
            return [replace(job) for job in jobs[:limit]]

    def update(self, job_id: int, **fields: Any) -> CrawlJob:
        unknown = set(fields) - _JOB_FIELDS
        if unknown:
            raise TypeError(f"Unknown job fields: {sorted(unknown)}")
        with self._lock:
            job = replace(self._require(job_id), **fields, updated_at=utcnow())
            self._jobs[job_id] = job
            return replace(job)

    def delete(self, job_id: int) -> None:
        with self._lock:
            self._require(job_id)
            del self._jobs[job_id]
            self._images.pop(job_id, None)

    def add_images(self, job_id: int, images: Sequence[AnalyzedImage]) -> List[AnalyzedImage]:
        with self._lock:
            self._require(job_id)
            stored = [replace(image, id=next(self._image_ids)) for image in images]
            self._images[job_id].extend(stored)
            return [replace(image) for image in stored]

    def get_images(self, job_id: int) -> List[AnalyzedImage]:
        with self._lock:
            self._require(job_id)
            return [replace(image) for image in self._images[job_id]]

    def update_image_labels(self, job_id: int, image_id: int, labels: Sequence[str]) -> AnalyzedImage:
        cleaned = [label.strip() for label in labels if label and label.strip()]
        with self._lock:
            self._require(job_id)
            for index, image in enumerate(self._images[job_id]):
                if image.id == image_id:
                    updated = replace(image, labels=cleaned)
                    self._images[job_id][index] = updated
                    return replace(updated)
        raise LookupError(f"Image {image_id} not found in job {job_id}")


@dataclass
class JobReport:
    """Everything a caller needs after a synchronous crawl job."""

    job: CrawlJob
    images: List[AnalyzedImage] = field(default_factory=list)
    pages_visited: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    images_found: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        brand_kit = self.job.brand_kit or BrandKit()
        return {
            "job_id": self.job.id,
            "url": self.job.target_url,
            "status": self.job.status,
            "duration": f"{self.duration_seconds:.1f}s",
            "stats": {
                "pages_visited": len(self.pages_visited),
                "images_found": self.images_found,
                "images_returned": len(self.images),
            },
            "brand_kit": brand_kit.to_dict(),
            "images": [image.to_dict() for image in self.images],
            "errors": list(self.errors),
            "error": self.job.error_message if self.job.status == "failed" else None,
        }


def filter_images(
    images: Sequence[AnalyzedImage],
    filter_blurry: bool = False,
    filter_no_description: bool = False,
) -> List[AnalyzedImage]:
    return [
        image
        for image in images
        if not (filter_blurry and image.is_blurry)
        and not (filter_no_description and not image.has_description)
    ]


class JobRunner:
    """Creates crawl jobs, runs them and keeps their records current."""

    def __init__(
        self,
        config: CrawlConfig,
        store: Optional[JobStore] = None,
        artifacts: Optional[ArtifactStore] = None,
        progress: Optional[ProgressTable] = None,
        renderer_factory: Optional[Callable[[CrawlConfig], Renderer]] = None,
        fetch: Optional[ImageFetcher] = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else InMemoryJobStore()
        self.artifacts = artifacts if artifacts is not None else build_artifact_store(config)
        self.progress = progress if progress is not None else ProgressTable(config.progress_capacity)
        self.renderer_factory = renderer_factory or PlaywrightRenderer
        self.fetch = fetch
        self._tasks: Set[asyncio.Task] = set()

    def _validate_max_pages(self, max_pages: Optional[int]) -> int:
        max_pages = self.config.max_pages if max_pages is None else max_pages
        if not 1 <= max_pages <= self.config.max_pages_limit:
            raise ValueError(
                f"max_pages must be between 1 and {self.config.max_pages_limit}"
            )
        return max_pages

    def create_job(self, url: str, max_pages: Optional[int] = None) -> CrawlJob:
        return self.store.create(url, self._validate_max_pages(max_pages))

    async def run(
        self,
        url: str,
        max_pages: Optional[int] = None,
        *,
        download_images: bool = True,
        filter_blurry: bool = False,
        filter_no_description: bool = False,
    ) -> JobReport:
        """Create a job and drive it to a terminal state."""
        job = self.create_job(url, max_pages)
        return await self.execute(
            job,
            download_images=download_images,
            filter_blurry=filter_blurry,
            filter_no_description=filter_no_description,
        )

    async def execute(
        self,
        job: CrawlJob,
        *,
        download_images: bool = True,
        filter_blurry: bool = False,
        filter_no_description: bool = False,
    ) -> JobReport:
        started = time.perf_counter()
        self.store.update(job.id, status="running")
        result: Optional[CrawlResult] = None
        try:
            result = await crawl_site(
                job.target_url,
                job.id,
                job.max_pages,
                config=self.config,
                renderer=self.renderer_factory(self.config),
                progress=self.progress,
                store=self.artifacts,
            )
            if result.status == "failed":
                raise BrandKitError(result.error or "Crawl failed")

            candidates = filter_images(
                [build_unprocessed(image) for image in result.images],
                filter_no_description=filter_no_description,
            )
            if download_images:
                analyzed = await asyncio.to_thread(
                    process_images,
                    candidates,
                    job.id,
                    self.artifacts,
                    config=self.config,
                    fetch=self.fetch,
                )
            else:
                analyzed = candidates
            kept = filter_images(analyzed, filter_blurry=filter_blurry)
            stored_images = self.store.add_images(job.id, kept)

            job = self.store.update(
                job.id,
                status="completed",
                total_pages=len(result.pages_visited),
                crawled_pages=len(result.pages_visited),
                total_images=len(stored_images),
                errors=list(result.errors),
                error_message="\n".join(result.errors) or None,
                brand_kit=result.brand_kit,
                completed_at=utcnow(),
            )
            return JobReport(
                job=job,
                images=stored_images,
                pages_visited=list(result.pages_visited),
                errors=list(result.errors),
                images_found=len(result.images),
                duration_seconds=time.perf_counter() - started,
            )
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error("Job %s failed: %s", job.id, message)
            errors = list(result.errors) if result is not None else []
            if message not in errors:
                errors.append(message)
            job = self.store.update(
                job.id, status="failed", error_message=message, errors=errors
            )
            return JobReport(
                job=job,
                pages_visited=list(result.pages_visited) if result is not None else [],
                errors=errors,
                duration_seconds=time.perf_counter() - started,
            )
        finally:
            self.progress.clear(job.id)

    def start(self, url: str, max_pages: Optional[int] = None) -> CrawlJob:
        """Create a job and run it in the background of the current event loop."""
        job = self.create_job(url, max_pages)
        task = asyncio.get_running_loop().create_task(self.execute(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def wait_for_background_jobs(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    def job_status(
        self,
        job_id: int,
        filter_blurry: bool = False,
        filter_no_description: bool = False,
    ) -> Dict[str, Any]:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        progress: Optional[CrawlProgress] = self.progress.get(job_id)
        images: List[AnalyzedImage] = []
        if job.status == "completed":
            images = filter_images(
                self.store.get_images(job_id), filter_blurry, filter_no_description
            )
        completed = job.status == "completed"
        return {
            "job_id": job.id,
            "url": job.target_url,
            "status": job.status,
            "progress": progress.to_dict() if progress else None,
            "stats": {
                "pages_visited": job.crawled_pages,
                "total_images": job.total_images,
                "images_returned": len(images),
            }
            if completed
            else None,
            "brand_kit": job.brand_kit.to_dict() if completed and job.brand_kit else None,
            "images": [image.to_dict() for image in images],
            "error": job.error_message,
            "created_at": job.created_at.isoformat(),
            "completed_at": job.completed_at.isoformat() if job.completed_at else None,
        }

    def list_jobs(self, limit: int = 20) -> List[Dict[str, Any]]:
        return [
            {
                "job_id": job.id,
                "url": job.target_url,
                "status": job.status,
                "pages_visited": job.crawled_pages,
                "total_images": job.total_images,
                "created_at": job.created_at.isoformat(),
                "completed_at": job.completed_at.isoformat() if job.completed_at else None,
            }
            for job in self.store.list_jobs(limit)
        ]

    def delete_job(self, job_id: int) -> None:
        self.store.delete(job_id)
        self.progress.clear(job_id)

    def update_image_labels(self, job_id: int, image_id: int, labels: Sequence[str]) -> AnalyzedImage:
        return self.store.update_image_labels(job_id, image_id, labels)
