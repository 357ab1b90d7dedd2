import threading

import pytest

from brandkit_crawler.errors import ImageFetchError
from brandkit_crawler.images import (
    MAX_IMAGE_BYTES,
    FetchedImage,
    infer_image_extension,
    process_image,
    process_images,
)
from brandkit_crawler.models import ImageCandidate


def _candidate(name, alt=None):
    return ImageCandidate(
        original_url=f"https://example.com/img/{name}",
        page_url="https://example.com/",
        alt_text=alt,
        labels=[alt] if alt else [],
    )


class FakeFetcher:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, url):
        with self._lock:
            self.calls.append(url)
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response


def test_infer_image_extension_prefers_signature(images):
    assert infer_image_extension("image/jpeg", images["solid"]()) == "png"
    assert infer_image_extension("image/svg+xml; charset=utf-8", b"<svg/>") == "svg"
    assert infer_image_extension("image/jpeg", b"???") == "jpg"
    assert infer_image_extension(None, b"???") == "jpg"


def test_successful_image_is_analyzed_and_stored(images, artifact_store):
    candidate = _candidate("hero.png", alt="Team photo")
    data = images["checkerboard"]()
    fetch = FakeFetcher({candidate.original_url: FetchedImage(200, "image/png", data)})

    result = process_image(candidate, 7, artifact_store, fetch)

    assert result.stored_url.startswith("https://cdn.test/crawl-7/team-photo-")
    assert result.storage_key.endswith(".png")
    assert artifact_store.objects[result.storage_key] == (data, "image/png")
    assert result.is_blurry is False
    assert result.blur_score == 100
    assert result.file_size == len(data)
    assert result.mime_type == "image/png"
    assert result.labels == ["Team photo"]
    assert result.original_url == candidate.original_url


def test_fetch_failure_keeps_defaults(artifact_store):
    candidate = _candidate("missing.jpg", alt="Missing")
    fetch = FakeFetcher({candidate.original_url: ImageFetchError("404 Not Found")})

    result = process_image(candidate, 1, artifact_store, fetch)

    assert result.stored_url is None
    assert result.is_blurry is False
    assert result.blur_score == 50
    assert result.dominant_colors == []
    assert result.alt_text == "Missing"
    assert artifact_store.objects == {}


@pytest.mark.parametrize("data", [b"", b"x" * (MAX_IMAGE_BYTES + 1)])
def test_empty_or_oversized_payload_is_not_stored(artifact_store, data):
    candidate = _candidate("big.jpg")
    fetch = FakeFetcher({candidate.original_url: FetchedImage(200, "image/jpeg", data)})
    result = process_image(candidate, 1, artifact_store, fetch)
    assert result.stored_url is None
    assert artifact_store.objects == {}


def test_storage_failure_keeps_defaults(images, make_store):
    candidate = _candidate("hero.png")
    fetch = FakeFetcher({candidate.original_url: FetchedImage(200, "image/png", images["checkerboard"]())})
    result = process_image(candidate, 1, make_store(fail=True), fetch)
    assert result.stored_url is None
    assert result.blur_score == 50


def test_undecodable_image_is_still_stored(artifact_store):
    candidate = _candidate("weird.bin")
    fetch = FakeFetcher({candidate.original_url: FetchedImage(200, "image/webp", b"not really an image")})
    result = process_image(candidate, 3, artifact_store, fetch)
    assert result.stored_url is not None
    assert result.storage_key.endswith(".webp")
    assert (result.is_blurry, result.blur_score) == (False, 50)


def test_failures_do_not_affect_other_images(images, artifact_store, config):
    good = _candidate("good.png", alt="Good")
    bad = _candidate("bad.png", alt="Bad")
    also_good = _candidate("also-good.png")
    fetch = FakeFetcher(
        {
            good.original_url: FetchedImage(200, "image/png", images["checkerboard"]()),
            bad.original_url: ImageFetchError("timeout"),
            also_good.original_url: FetchedImage(200, "image/png", images["solid"]()),
        }
    )

    results = process_images([good, bad, also_good], 2, artifact_store, config=config, fetch=fetch)

    assert [image.original_url for image in results] == [
        good.original_url,
        bad.original_url,
        also_good.original_url,
    ]
    assert [image.stored_url is not None for image in results] == [True, False, True]
    assert results[2].is_blurry is True


def test_each_url_is_processed_once(images, artifact_store, config):
    candidate = _candidate("logo.png")
    fetch = FakeFetcher({candidate.original_url: FetchedImage(200, "image/png", images["solid"]())})
    results = process_images([candidate, _candidate("logo.png")], 1, artifact_store, config=config, fetch=fetch)
    assert len(results) == 1
    assert fetch.calls == [candidate.original_url]


def test_no_candidates(artifact_store, config):
    assert process_images([], 1, artifact_store, config=config) == []
