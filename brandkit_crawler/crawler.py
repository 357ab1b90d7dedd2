"""Bounded breadth-first crawl that collects images and a brand kit."""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Set

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .brand import capture_and_analyze_screenshot, extract_brand_kit, merge_color_palettes
from .browser import Renderer, RenderSession
from .config import CrawlConfig
from .errors import InvalidURLError
from .models import ColorInfo, CrawlProgress, CrawlResult
from .page import extract_images, extract_links
from .progress import ProgressSink
from .storage import ArtifactStore
from .utils import normalize_url

logger = logging.getLogger("brandkit_crawler")


@dataclass
class CrawlFrontier:
    """FIFO of pages to visit; every URL is queued at most once."""

    queue: Deque[str] = field(default_factory=deque)
    queued: Set[str] = field(default_factory=set)
    visited: Set[str] = field(default_factory=set)

    def push(self, url: str) -> bool:
        if url in self.visited or url in self.queued:
            return False
        self.queue.append(url)
        self.queued.add(url)
        return True

    def pop(self) -> str:
        url = self.queue.popleft()
        self.queued.discard(url)
        return url

    def mark_visited(self, url: str) -> None:
        self.visited.add(url)

    def __len__(self) -> int:
        return len(self.queue)


class SiteCrawler:
    """Runs one crawl. Owns all mutable state for the duration of the run."""

    def __init__(
        self,
        target_url: str,
        job_id: int,
        max_pages: int,
        config: CrawlConfig,
        renderer: Renderer,
        progress: Optional[ProgressSink] = None,
        store: Optional[ArtifactStore] = None,
    ) -> None:
        normalized = normalize_url(target_url)
        if not normalized:
            raise InvalidURLError(target_url)
        self.target_url = normalized
        self.job_id = job_id
        self.max_pages = max_pages
        self.config = config
        self.renderer = renderer
        self.progress_sink = progress
        self.store = store
        self.result = CrawlResult()
        self.frontier = CrawlFrontier()
        self.seen_images: Set[str] = set()
        self.palettes: List[List[ColorInfo]] = []
        self.brand_kit_attempted = False
        self.progress = CrawlProgress(
            total_pages=1,
            crawled_pages=0,
            total_images=0,
            current_page=normalized,
        )

    def _publish(self, **changes) -> None:
        self.progress = self.progress.evolve(**changes)
        if self.progress_sink is not None:
            self.progress_sink.publish(self.job_id, self.progress)

    async def run(self) -> CrawlResult:
        session: Optional[RenderSession] = None
        self._publish()
        try:
            session = await self.renderer.launch()
            await self._crawl(session)
            self.result.brand_kit.colors = merge_color_palettes(self.palettes)
            self.result.status = "completed"
            self._publish(
                status="completed",
                crawled_pages=len(self.frontier.visited),
                total_images=len(self.result.images),
            )
            logger.info(
                "Crawl of %s finished: %d pages, %d images, %d errors",
                self.target_url,
                len(self.result.pages_visited),
                len(self.result.images),
                len(self.result.errors),
            )
        except Exception as exc:  # pylint: disable=broad-except
            message = str(exc) or exc.__class__.__name__
            logger.exception("Crawl of %s failed", self.target_url)
            self.result.errors.append(message)
            self.result.status = "failed"
            self.result.error = message
            self._publish(status="failed", error=message)
        finally:
            if session is not None:
                await session.close()
        return self.result

    async def _crawl(self, session: RenderSession) -> None:
        frontier = self.frontier
        frontier.push(self.target_url)
        while frontier and len(frontier.visited) < self.max_pages:
            url = frontier.pop()
            if url in frontier.visited:
                continue
            self._publish(
                current_page=url,
                total_pages=max(
                    self.progress.total_pages, len(frontier.visited) + len(frontier) + 1
                ),
            )
            try:
                await self._visit(session, url)
            except PlaywrightTimeoutError as exc:
                logger.error("Timeout while loading %s: %s", url, exc)
                self._record_page_error(url, exc)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Unexpected error crawling %s", url)
                self._record_page_error(url, exc)
            self._publish(
                crawled_pages=len(frontier.visited),
                total_images=len(self.result.images),
            )

    def _record_page_error(self, url: str, exc: Exception) -> None:
        self.result.errors.append(
            f"Failed to crawl {url}: {str(exc) or exc.__class__.__name__}"
        )
        # Never retried.
        self.frontier.mark_visited(url)

    async def _visit(self, session: RenderSession, url: str) -> None:
        page = await session.open(url, self.config.navigation_timeout_ms)
        self.frontier.mark_visited(url)
        self.result.pages_visited.append(url)

        if not self.brand_kit_attempted:
            self.brand_kit_attempted = True
            await self._collect_brand_kit(page, url)
        elif self.config.screenshot_all_pages:
            await self._collect_palette(page, url)

        for image in await extract_images(page, url):
            if image.original_url in self.seen_images:
                continue
            self.seen_images.add(image.original_url)
            self.result.images.append(image)

        for link in await extract_links(page, url, self.target_url):
            self.frontier.push(link)

    async def _collect_brand_kit(self, page, url: str) -> None:
        try:
            brand_kit = await extract_brand_kit(page)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Brand kit extraction failed on %s", url)
        else:
            self.result.brand_kit = brand_kit

        try:
            capture = await capture_and_analyze_screenshot(page)
            self.palettes.append(capture.colors)
            if self.store is not None:
                key = f"crawl-{self.job_id}/screenshot-{secrets.token_hex(3)}.png"
                stored = await asyncio.to_thread(self.store.put, key, capture.data, "image/png")
                self.result.brand_kit.screenshot_url = stored.url
        except Exception:  # pylint: disable=broad-except
            logger.exception("Screenshot capture failed on %s", url)

    async def _collect_palette(self, page, url: str) -> None:
        try:
            capture = await capture_and_analyze_screenshot(page)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Screenshot palette failed on %s: %s", url, exc)
            return
        self.palettes.append(capture.colors)


async def crawl_site(
    target_url: str,
    job_id: int,
    max_pages: Optional[int] = None,
    *,
    config: CrawlConfig,
    renderer: Renderer,
    progress: Optional[ProgressSink] = None,
    store: Optional[ArtifactStore] = None,
) -> CrawlResult:
    """Crawl same-domain pages breadth-first starting at ``target_url``.

    Raises ``InvalidURLError`` before launching anything when the target
    cannot be normalized. Every other failure is reported through the
    returned result: per-page errors in ``errors``, a fatal error as
    ``status == "failed"``.
    """
    crawler = SiteCrawler(
        target_url,
        job_id,
        max_pages or config.max_pages,
        config,
        renderer,
        progress=progress,
        store=store,
    )
    return await crawler.run()
