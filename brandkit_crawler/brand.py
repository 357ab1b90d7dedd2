"""Brand kit extraction: fonts, CSS colors and screenshot palettes."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

from .analysis import extract_dominant_colors, rgb_to_hex
from .models import BrandKit, ColorInfo, FontInfo, FontUsage, RawBrandData

logger = logging.getLogger("brandkit_crawler.brand")

HEADING_TAGS = frozenset({"H1", "H2", "H3", "H4", "H5", "H6"})
BODY_TAGS = frozenset({"P", "SPAN", "DIV", "LI", "TD", "TH", "A"})
IGNORED_FAMILIES = frozenset({"inherit", "initial", "unset", "revert"})

MAX_FONTS = 10
MAX_CSS_COLORS = 20
MAX_BRAND_COLORS = 10
SCREENSHOT_COLOR_COUNT = 8

COLOR_LITERAL_PATTERN = re.compile(r"^(#[0-9a-f]{3,8}$|rgb|hsl|oklch)", re.IGNORECASE)
RGB_PATTERN = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*[,\s]\s*(\d{1,3})\s*[,\s]\s*(\d{1,3})"
    r"(?:\s*[,/]\s*([\d.]+)(%?))?\s*\)",
    re.IGNORECASE,
)

BRAND_SCRIPT = """
() => {
  const rootVariables = {};
  for (const sheet of Array.from(document.styleSheets)) {
    let rules;
    try {
      rules = sheet.cssRules;
    } catch (e) {
      continue; // cross-origin stylesheet
    }
    for (const rule of Array.from(rules || [])) {
      if (!(rule instanceof CSSStyleRule) || rule.selectorText !== ":root") continue;
      for (let i = 0; i < rule.style.length; i++) {
        const name = rule.style[i];
        if (!name.startsWith("--")) continue;
        const value = rule.style.getPropertyValue(name).trim();
        if (value) rootVariables[name] = value;
      }
    }
  }

  const elements = [];
  document.querySelectorAll("*").forEach((el) => {
    const style = getComputedStyle(el);
    elements.push({
      tag: el.tagName,
      fontFamily: style.fontFamily,
      fontWeight: style.fontWeight,
      color: style.color,
      backgroundColor: style.backgroundColor,
      borderColor: style.borderColor,
    });
  });
  return { rootVariables, elements };
}
"""


@dataclass
class ScreenshotCapture:
    data: bytes
    colors: List[ColorInfo]


def classify_usage(tag: str) -> FontUsage:
    tag = tag.upper()
    if tag in HEADING_TAGS:
        return "heading"
    if tag in BODY_TAGS:
        return "body"
    return "other"


def primary_family(font_family: Optional[str]) -> Optional[str]:
    """First family of a CSS font-family list, without quotes."""
    if not font_family:
        return None
    family = font_family.split(",")[0].strip().replace('"', "").replace("'", "")
    if not family or family.lower() in IGNORED_FAMILIES:
        return None
    return family


def css_color_to_hex(value: Optional[str]) -> Optional[str]:
    """Convert a resolved CSS color to hex, or None when unusable.

    Fully transparent values are skipped; hex values pass through.
    """
    if not value:
        return None
    value = value.strip()
    lowered = value.lower()
    if lowered in ("transparent", "none", "currentcolor"):
        return None
    if lowered.startswith("#"):
        return lowered
    match = RGB_PATTERN.match(value)
    if not match:
        return None
    red, green, blue, alpha, _ = match.groups()
    if alpha is not None and float(alpha) == 0:
        return None
    return rgb_to_hex(int(red), int(green), int(blue))


def rank_fonts(elements: Iterable, limit: int = MAX_FONTS) -> List[FontInfo]:
    fonts: Dict[str, FontInfo] = {}
    for element in elements:
        family = primary_family(element.font_family)
        if not family:
            continue
        font = fonts.setdefault(family, FontInfo(family=family))
        font.observe(element.font_weight, classify_usage(element.tag))
    ranked = sorted(fonts.values(), key=lambda font: font.count, reverse=True)
    return ranked[:limit]


def collect_css_colors(data: RawBrandData, limit: int = MAX_CSS_COLORS) -> List[str]:
    """CSS colors in first-seen order: :root variables, then element styles."""
    colors: Dict[str, None] = {}
    for value in data.root_variables.values():
        if COLOR_LITERAL_PATTERN.match(value):
            colors.setdefault(value, None)
    for element in data.elements:
        for value in (element.color, element.background_color, element.border_color):
            hex_value = css_color_to_hex(value)
            if hex_value:
                colors.setdefault(hex_value, None)
    return list(colors)[:limit]


def summarize_brand_data(data: RawBrandData) -> BrandKit:
    return BrandKit(
        fonts=rank_fonts(data.elements),
        css_colors=collect_css_colors(data),
        css_variables=dict(data.root_variables),
    )


async def extract_brand_kit(page) -> BrandKit:
    """Read fonts, CSS colors and :root custom properties from a loaded page."""
    payload = await page.evaluate(BRAND_SCRIPT)
    data = RawBrandData.from_payload(payload)
    logger.debug(
        "Brand data: %d variables, %d styled elements",
        len(data.root_variables),
        len(data.elements),
    )
    return summarize_brand_data(data)


async def capture_and_analyze_screenshot(page) -> ScreenshotCapture:
    """Take a viewport screenshot and extract its dominant colors."""
    data = await page.screenshot(full_page=False, type="png")
    colors = await asyncio.to_thread(extract_dominant_colors, data, SCREENSHOT_COLOR_COUNT)
    return ScreenshotCapture(data=data, colors=colors)


def merge_color_palettes(
    palettes: Sequence[Sequence[ColorInfo]], limit: int = MAX_BRAND_COLORS
) -> List[ColorInfo]:
    """Fold palettes into one list keyed by hex, keeping the max percentage."""
    merged: Dict[str, ColorInfo] = {}
    for palette in palettes:
        for color in palette:
            existing = merged.get(color.hex)
            if existing is None:
                merged[color.hex] = replace(color)
            elif color.percentage > existing.percentage:
                existing.percentage = color.percentage
    ranked = sorted(merged.values(), key=lambda color: color.percentage, reverse=True)
    return ranked[:limit]
