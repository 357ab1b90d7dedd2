"""MCP server exposing brand kit crawl tools."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .config import CrawlConfig
from .jobs import JobRunner

logger = logging.getLogger("brandkit_crawler.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="brandkit-crawler")

_runner: Optional[JobRunner] = None


def get_runner() -> JobRunner:
    global _runner
    if _runner is None:
        _runner = JobRunner(CrawlConfig.from_env())
    return _runner


@mcp.tool()
async def extract_brand_kit(
    url: str,
    max_pages: int = 10,
    download_images: bool = True,
    filter_blurry: bool = True,
    filter_no_description: bool = False,
) -> Dict[str, Any]:
    """Crawl a website and return its brand kit and scored images."""
    report = await get_runner().run(
        url,
        max_pages,
        download_images=download_images,
        filter_blurry=filter_blurry,
        filter_no_description=filter_no_description,
    )
    if report.job.status == "failed":
        raise RuntimeError(report.job.error_message or "Crawl failed")
    return report.to_dict()


@mcp.tool()
async def start_crawl(url: str, max_pages: int = 20) -> Dict[str, Any]:
    """Start a crawl in the background and return its job id."""
    job = get_runner().start(url, max_pages)
    return {"job_id": job.id, "status": "started"}


@mcp.tool()
async def get_job(
    job_id: int,
    filter_blurry: bool = False,
    filter_no_description: bool = False,
) -> Dict[str, Any]:
    """Return status, live progress and (once completed) results of a job."""
    return get_runner().job_status(job_id, filter_blurry, filter_no_description)


@mcp.tool()
async def list_jobs(limit: int = 20) -> List[Dict[str, Any]]:
    """List recent crawl jobs, newest first."""
    return get_runner().list_jobs(max(1, min(limit, 100)))


@mcp.tool()
async def delete_job(job_id: int) -> Dict[str, Any]:
    """Delete a job and its image records."""
    get_runner().delete_job(job_id)
    return {"success": True}


@mcp.tool()
async def update_image_labels(job_id: int, image_id: int, labels: List[str]) -> Dict[str, Any]:
    """Replace the user-editable labels of one stored image."""
    image = get_runner().update_image_labels(job_id, image_id, labels)
    return image.to_dict()


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
