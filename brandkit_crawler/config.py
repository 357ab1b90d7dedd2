"""Configuration objects and constants for the crawler."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_MAX_PAGES = 20
MAX_PAGES_LIMIT = 50


@dataclass
class CrawlConfig:
    """Top-level settings that control crawling, analysis and storage."""

    output_root: Path = Path("output")
    wait_after_load: float = 1.5
    navigation_timeout: float = 30.0
    max_pages: int = DEFAULT_MAX_PAGES
    max_pages_limit: int = MAX_PAGES_LIMIT
    headless: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = DEFAULT_USER_AGENT
    screenshot_all_pages: bool = False
    image_timeout: float = 15.0
    image_workers: int = 4
    progress_capacity: int = 256
    storage_mode: str = "local"
    storage_base_url: str = "http://localhost:3000/uploads"
    storage_api_url: Optional[str] = None
    storage_api_key: Optional[str] = None

    @property
    def navigation_timeout_ms(self) -> int:
        return int(self.navigation_timeout * 1000)

    @classmethod
    def from_env(cls, **overrides) -> "CrawlConfig":
        """Build a config from environment variables, then apply overrides."""
        values = {
            "output_root": Path(os.getenv("BRANDKIT_OUTPUT_DIR", "output")),
            "storage_mode": os.getenv("STORAGE_MODE", "local").lower(),
            "storage_base_url": os.getenv(
                "LOCAL_STORAGE_URL", "http://localhost:3000/uploads"
            ),
            "storage_api_url": os.getenv("STORAGE_API_URL") or None,
            "storage_api_key": os.getenv("STORAGE_API_KEY") or None,
        }
        max_pages = os.getenv("BRANDKIT_MAX_PAGES")
        if max_pages:
            values["max_pages"] = int(max_pages)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
