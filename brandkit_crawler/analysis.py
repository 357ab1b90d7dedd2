"""Image quality analysis: blur detection and dominant color extraction."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, ImageOps

from .models import DEFAULT_BLUR_SCORE, ColorInfo
from .utils import round_half_up

logger = logging.getLogger("brandkit_crawler.analysis")

BLUR_SAMPLE_SIZE = (200, 200)
BLUR_VARIANCE_DIVISOR = 20.0
BLUR_THRESHOLD = 15
COLOR_SAMPLE_SIZE = (100, 100)
COLOR_STEP = 32
DEFAULT_COLOR_COUNT = 5
ANALYSIS_COLOR_COUNT = 3


@dataclass
class BlurResult:
    is_blurry: bool
    blur_score: int


@dataclass
class ImageAnalysis:
    """Combined quality report for one image."""

    quality: BlurResult = field(
        default_factory=lambda: BlurResult(is_blurry=False, blur_score=DEFAULT_BLUR_SCORE)
    )
    colors: List[ColorInfo] = field(default_factory=list)
    dimensions: Optional[Tuple[int, int]] = None


def _open_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def laplacian_variance(pixels: np.ndarray) -> float:
    """Variance of the 4-neighbour Laplacian over the interior pixels."""
    height, width = pixels.shape[:2]
    if width < 3 or height < 3:
        raise ValueError(f"image too small for blur detection ({width}x{height})")
    laplacian = (
        pixels[1:-1, :-2]
        + pixels[1:-1, 2:]
        + pixels[:-2, 1:-1]
        + pixels[2:, 1:-1]
        - 4 * pixels[1:-1, 1:-1]
    )
    return float(laplacian.var())


def blur_score_from_variance(variance: float) -> int:
    return round_half_up(min(100.0, max(0.0, variance / BLUR_VARIANCE_DIVISOR)))


def detect_blur(data: bytes, threshold: float = BLUR_THRESHOLD) -> BlurResult:
    """Classify an image as blurry using Laplacian variance.

    Higher scores mean more edge content. Failures never propagate; the
    neutral result ``(False, 50)`` is returned instead.
    """
    try:
        gray = _open_image(data).convert("L")
        gray.thumbnail(BLUR_SAMPLE_SIZE)
        variance = laplacian_variance(np.asarray(gray, dtype=np.float64))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Blur detection failed: %s", exc)
        return BlurResult(is_blurry=False, blur_score=DEFAULT_BLUR_SCORE)

    score = blur_score_from_variance(variance)
    return BlurResult(is_blurry=score < threshold, blur_score=score)


def quantize_channel(value, step: int = COLOR_STEP):
    """Snap a channel value or array to the nearest multiple of ``step``, capped at 255."""
    return np.minimum(255, ((value + step // 2) // step) * step)


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return "#" + "".join(f"{max(0, min(255, c)):02x}" for c in (r, g, b))


def extract_dominant_colors(data: bytes, k: int = DEFAULT_COLOR_COUNT) -> List[ColorInfo]:
    """Return the ``k`` most frequent quantized colors, most frequent first."""
    if k <= 0:
        return []
    try:
        image = _open_image(data)
        # Alpha is dropped, not composited onto a background.
        if image.mode != "RGB":
            image = image.convert("RGBA").convert("RGB")
        sample = ImageOps.fit(image, COLOR_SAMPLE_SIZE)
        pixels = np.asarray(sample, dtype=np.int64).reshape(-1, 3)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Color extraction failed: %s", exc)
        return []

    total = len(pixels)
    if not total:
        return []
    colors, counts = np.unique(quantize_channel(pixels), axis=0, return_counts=True)
    order = np.argsort(-counts, kind="stable")[:k]
    results = []
    for index in order:
        rgb = tuple(int(channel) for channel in colors[index])
        results.append(
            ColorInfo(
                hex=rgb_to_hex(*rgb),
                rgb=rgb,
                percentage=round_half_up(int(counts[index]) / total * 100),
            )
        )
    return results


def analyze_image(data: bytes) -> ImageAnalysis:
    """Run blur detection and color extraction on raw image bytes."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            dimensions = image.size if image.width and image.height else None
    except Exception as exc:  # noqa: BLE001
        logger.warning("Image analysis failed: %s", exc)
        return ImageAnalysis()

    return ImageAnalysis(
        quality=detect_blur(data),
        colors=extract_dominant_colors(data, ANALYSIS_COLOR_COUNT),
        dimensions=dimensions,
    )
