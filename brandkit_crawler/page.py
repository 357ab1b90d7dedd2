"""Image and link discovery for a rendered page."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Set

from .models import ImageCandidate, RawImage
from .utils import has_skipped_extension, is_same_domain, normalize_url

logger = logging.getLogger("brandkit_crawler.page")

NEARBY_TEXT_LIMIT = 200

IMAGES_SCRIPT = """
(limit) => {
  const results = [];
  document.querySelectorAll("img").forEach((img) => {
    const sources = [
      img.currentSrc,
      img.src,
      img.dataset.src,
      img.getAttribute("data-lazy-src"),
    ].filter((value) => value && !value.startsWith("data:"));
    if (!sources.length) return;

    let figcaption = null;
    const figure = img.closest("figure");
    if (figure) {
      const caption = figure.querySelector("figcaption");
      if (caption) figcaption = (caption.textContent || "").trim() || null;
    }

    let nearbyText = null;
    if (img.parentElement) {
      const text = (img.parentElement.textContent || "").trim().slice(0, limit);
      if (text && text !== img.alt) nearbyText = text;
    }

    results.push({
      sources,
      alt: img.alt || null,
      title: img.title || null,
      ariaLabel: img.getAttribute("aria-label"),
      width: img.naturalWidth || img.width || null,
      height: img.naturalHeight || img.height || null,
      figcaption,
      nearbyText,
    });
  });

  document.querySelectorAll("*").forEach((el) => {
    const background = getComputedStyle(el).backgroundImage;
    if (!background || !background.startsWith("url(")) return;
    const match = background.match(/url\\(["']?([^"')]+)["']?\\)/);
    if (!match || !match[1] || match[1].startsWith("data:")) return;
    results.push({ src: match[1], ariaLabel: el.getAttribute("aria-label") });
  });
  return results;
}
"""

LINKS_SCRIPT = """
() => Array.from(document.querySelectorAll("a[href]")).map((a) => a.href)
"""


def build_labels(raw: RawImage) -> List[str]:
    """Collect the distinct, non-empty descriptive texts of an image."""
    labels: List[str] = []
    for value in (raw.alt, raw.title, raw.aria_label, raw.figcaption):
        if value and value not in labels:
            labels.append(value)
    return labels


def candidates_from_payload(payload: Any, page_url: str) -> List[ImageCandidate]:
    """Coerce the script result into de-duplicated image candidates."""
    if not isinstance(payload, list):
        logger.debug("Unexpected image payload on %s: %r", page_url, type(payload))
        return []

    seen: Set[str] = set()
    candidates: List[ImageCandidate] = []
    for item in payload:
        raw = RawImage.from_payload(item)
        if raw is None or raw.src.startswith("data:"):
            continue
        original_url = normalize_url(raw.src, page_url)
        if not original_url or original_url in seen:
            continue
        # Icons and tracking pixels.
        if raw.is_tiny:
            continue
        seen.add(original_url)
        candidates.append(
            ImageCandidate(
                original_url=original_url,
                page_url=page_url,
                alt_text=raw.alt,
                title=raw.title,
                aria_label=raw.aria_label,
                figcaption=raw.figcaption,
                nearby_text=raw.nearby_text,
                width=raw.width,
                height=raw.height,
                labels=build_labels(raw),
            )
        )
    return candidates


def links_from_payload(
    payload: Any, base_url: str, site_url: Optional[str] = None
) -> List[str]:
    """Normalize, filter and de-duplicate raw anchor hrefs."""
    if not isinstance(payload, list):
        return []
    site_url = site_url or base_url
    seen: Set[str] = set()
    links: List[str] = []
    for href in payload:
        if not isinstance(href, str):
            continue
        normalized = normalize_url(href, base_url)
        if not normalized or normalized in seen:
            continue
        if not is_same_domain(normalized, site_url) or has_skipped_extension(normalized):
            continue
        seen.add(normalized)
        links.append(normalized)
    return links


async def extract_images(page, page_url: str) -> List[ImageCandidate]:
    """Discover image tags and CSS background images on a loaded page."""
    payload = await page.evaluate(IMAGES_SCRIPT, NEARBY_TEXT_LIMIT)
    return candidates_from_payload(payload, page_url)


async def extract_links(page, base_url: str, site_url: Optional[str] = None) -> List[str]:
    """Return same-domain page links in document order."""
    payload = await page.evaluate(LINKS_SCRIPT)
    return links_from_payload(payload, base_url, site_url)
