import pytest

from brandkit_crawler.utils import (
    has_skipped_extension,
    is_same_domain,
    normalize_url,
    round_half_up,
    slugify,
)


@pytest.mark.parametrize(
    "url, base, expected",
    [
        ("https://example.com/about/", None, "https://example.com/about"),
        ("https://example.com/about#team", None, "https://example.com/about"),
        ("https://example.com/", None, "https://example.com/"),
        ("https://example.com", None, "https://example.com/"),
        ("/pricing/", "https://example.com/about", "https://example.com/pricing"),
        ("team", "https://example.com/about/", "https://example.com/about/team"),
        ("https://EXAMPLE.com/Path", None, "https://example.com/Path"),
        ("https://example.com/a//", None, "https://example.com/a/"),
        ("https://example.com/search?q=1", None, "https://example.com/search?q=1"),
        ("https://example.com/img?next=/", None, "https://example.com/img?next=/"),
        ("https://example.com/about/?tab=1", None, "https://example.com/about?tab=1"),
    ],
)
def test_normalize_url(url, base, expected):
    assert normalize_url(url, base) == expected


@pytest.mark.parametrize(
    "url",
    ["", "not a valid url", "mailto:hello@example.com", "javascript:void(0)", "http://[::1"],
)
def test_normalize_url_rejects_malformed(url):
    assert normalize_url(url) is None


def test_normalize_url_resolves_against_page_not_site():
    assert normalize_url("../logo.png", "https://example.com/blog/post/") == "https://example.com/blog/logo.png"


@pytest.mark.parametrize(
    "url, base, expected",
    [
        ("https://example.com/a", "https://example.com/", True),
        ("https://www.example.com/a", "https://example.com/", True),
        ("https://example.com/a", "https://www.example.com/", True),
        ("https://blog.example.com/", "https://example.com/", True),
        ("https://example.org/", "https://example.com/", False),
        ("https://notexample.com/", "https://example.com/", False),
    ],
)
def test_is_same_domain(url, base, expected):
    assert is_same_domain(url, base) is expected


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://example.com/brochure.PDF", True),
        ("https://example.com/img/hero.webp", True),
        ("https://example.com/files/report.docx", True),
        ("https://example.com/about", False),
        ("https://example.com/v1.2/docs", False),
        ("https://example.com/page.html", False),
    ],
)
def test_has_skipped_extension(url, expected):
    assert has_skipped_extension(url) is expected


def test_round_half_up_matches_javascript():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_slugify():
    assert slugify("Café Menu 2024!") == "caf-menu-2024"
    assert slugify("", fallback="image") == "image"
