import io
import random

import pytest
from PIL import Image

from brandkit_crawler.brand import BRAND_SCRIPT
from brandkit_crawler.config import CrawlConfig
from brandkit_crawler.errors import StorageError
from brandkit_crawler.page import IMAGES_SCRIPT, LINKS_SCRIPT
from brandkit_crawler.storage import StoredArtifact


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def solid_image(color=(250, 10, 10), size=(120, 80)) -> bytes:
    return png_bytes(Image.new("RGB", size, color))


def checkerboard_image(size=(100, 100), cell=4) -> bytes:
    image = Image.new("L", size, 0)
    pixels = image.load()
    for y in range(size[1]):
        for x in range(size[0]):
            if (x // cell + y // cell) % 2:
                pixels[x, y] = 255
    return png_bytes(image)


def noise_image(size=(64, 64), seed=7) -> bytes:
    rng = random.Random(seed)
    image = Image.new("RGB", size)
    image.putdata(
        [(rng.randrange(256), rng.randrange(256), rng.randrange(256)) for _ in range(size[0] * size[1])]
    )
    return png_bytes(image)


class FakePage:
    """Stands in for a Playwright page by answering the known extraction scripts."""

    def __init__(self, url, images=None, links=None, brand=None, screenshot=None):
        self.url = url
        self.images = images or []
        self.links = links or []
        self.brand = brand if brand is not None else {"rootVariables": {}, "elements": []}
        self.screenshot_bytes = screenshot if screenshot is not None else solid_image((255, 255, 255))
        self.screenshot_calls = []

    async def evaluate(self, script, arg=None):
        if script == IMAGES_SCRIPT:
            return [dict(item) for item in self.images]
        if script == LINKS_SCRIPT:
            return list(self.links)
        if script == BRAND_SCRIPT:
            if isinstance(self.brand, Exception):
                raise self.brand
            return self.brand
        raise AssertionError(f"unexpected script: {script[:40]!r}")

    async def screenshot(self, **kwargs):
        self.screenshot_calls.append(kwargs)
        if isinstance(self.screenshot_bytes, Exception):
            raise self.screenshot_bytes
        return self.screenshot_bytes


class FakeSession:
    def __init__(self, site):
        self.site = site
        self.opened = []
        self.closed = False

    async def open(self, url, timeout_ms):
        self.opened.append(url)
        page = self.site.get(url)
        if page is None:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        if isinstance(page, Exception):
            raise page
        return page

    async def close(self):
        self.closed = True


class FakeRenderer:
    def __init__(self, site=None, launch_error=None):
        self.site = site or {}
        self.launch_error = launch_error
        self.sessions = []

    async def launch(self):
        if self.launch_error is not None:
            raise self.launch_error
        session = FakeSession(self.site)
        self.sessions.append(session)
        return session

    @property
    def session(self):
        return self.sessions[-1]


class MemoryArtifactStore:
    def __init__(self, fail=False):
        self.objects = {}
        self.fail = fail

    def put(self, key, data, content_type="application/octet-stream"):
        if self.fail:
            raise StorageError("bucket unavailable")
        self.objects[key] = (data, content_type)
        return StoredArtifact(key=key, url=f"https://cdn.test/{key}")


@pytest.fixture
def config(tmp_path):
    return CrawlConfig(output_root=tmp_path, wait_after_load=0, image_workers=2)


@pytest.fixture
def artifact_store():
    return MemoryArtifactStore()


@pytest.fixture
def make_page():
    return FakePage


@pytest.fixture
def make_renderer():
    return FakeRenderer


@pytest.fixture
def images():
    return {
        "solid": solid_image,
        "checkerboard": checkerboard_image,
        "noise": noise_image,
    }


@pytest.fixture
def make_store():
    return MemoryArtifactStore
