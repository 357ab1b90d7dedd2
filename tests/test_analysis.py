import io

import numpy as np
import pytest
from PIL import Image

from brandkit_crawler.analysis import (
    BLUR_THRESHOLD,
    analyze_image,
    blur_score_from_variance,
    detect_blur,
    extract_dominant_colors,
    laplacian_variance,
    quantize_channel,
    rgb_to_hex,
)


def _png(image):
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def test_flat_image_is_blurry(images):
    result = detect_blur(images["solid"]((128, 128, 128)))
    assert result.blur_score == 0
    assert result.is_blurry is True


def test_checkerboard_is_sharp(images):
    result = detect_blur(images["checkerboard"]())
    assert result.blur_score == 100
    assert result.is_blurry is False


def test_large_image_is_downsampled_before_scoring(images):
    result = detect_blur(images["checkerboard"](size=(800, 600), cell=40))
    assert 0 <= result.blur_score <= 100


@pytest.mark.parametrize("payload", [b"", b"not an image", b"\x89PNG\r\n\x1a\nbroken"])
def test_blur_detection_failure_defaults_to_neutral(payload):
    result = detect_blur(payload)
    assert result.is_blurry is False
    assert result.blur_score == 50


def test_too_small_image_defaults_to_neutral():
    result = detect_blur(_png(Image.new("L", (2, 2), 10)))
    assert (result.is_blurry, result.blur_score) == (False, 50)


@pytest.mark.parametrize("kind", ["solid", "checkerboard", "noise"])
def test_blur_score_bounds_and_classification(images, kind):
    result = detect_blur(images[kind]())
    assert 0 <= result.blur_score <= 100
    assert result.is_blurry == (result.blur_score < BLUR_THRESHOLD)


def test_laplacian_variance_of_single_spike():
    # 3x3 image with one bright center: the only interior response is -4 * 9.
    pixels = np.zeros((3, 3))
    pixels[1, 1] = 9
    assert laplacian_variance(pixels) == 0.0


def test_laplacian_variance_of_off_center_point():
    pixels = np.zeros((4, 4))
    pixels[1, 1] = 10
    # Interior responses: (1,1) = -40, (2,1) = 10, (1,2) = 10, (2,2) = 0.
    mean = (-40 + 10 + 10 + 0) / 4
    expected = (1600 + 100 + 100 + 0) / 4 - mean * mean
    assert laplacian_variance(pixels) == pytest.approx(expected)


def test_blur_score_is_clamped():
    assert blur_score_from_variance(-5) == 0
    assert blur_score_from_variance(100) == 5
    assert blur_score_from_variance(10_000) == 100


def test_custom_threshold(images):
    data = images["checkerboard"]()
    assert detect_blur(data, threshold=101).is_blurry is True


@pytest.mark.parametrize("value, expected", [(0, 0), (15, 0), (16, 32), (47, 32), (250, 255), (255, 255)])
def test_quantize_channel(value, expected):
    assert quantize_channel(value) == expected


def test_quantize_channel_on_arrays():
    channels = np.array([[0, 16, 250], [47, 255, 15]])
    assert quantize_channel(channels).tolist() == [[0, 32, 255], [32, 255, 0]]


def test_laplacian_variance_rejects_tiny_arrays():
    with pytest.raises(ValueError):
        laplacian_variance(np.zeros((2, 5)))


def test_rgb_to_hex_clamps():
    assert rgb_to_hex(255, 0, 16) == "#ff0010"
    assert rgb_to_hex(300, -1, 0) == "#ff0000"


def test_solid_image_has_one_dominant_color(images):
    colors = extract_dominant_colors(images["solid"]((250, 10, 10)))
    assert len(colors) == 1
    assert colors[0].hex == "#ff0000"
    assert colors[0].rgb == (255, 0, 0)
    assert colors[0].percentage == 100


def test_two_color_split_is_ranked_by_frequency():
    image = Image.new("RGB", (100, 100), (0, 0, 250))
    image.paste((250, 10, 10), (0, 0, 100, 70))
    colors = extract_dominant_colors(_png(image), 2)
    assert [color.hex for color in colors] == ["#ff0000", "#0000ff"]
    assert abs(colors[0].percentage - 70) <= 2
    assert abs(colors[1].percentage - 30) <= 2


def test_alpha_channel_is_dropped():
    image = Image.new("RGBA", (50, 50), (0, 200, 0, 0))
    colors = extract_dominant_colors(_png(image), 1)
    assert colors[0].hex == "#00c000"


@pytest.mark.parametrize("k", [1, 3, 5, 8])
def test_dominant_colors_respect_k_and_order(images, k):
    colors = extract_dominant_colors(images["noise"](), k)
    assert len(colors) <= k
    assert all(0 <= color.percentage <= 100 for color in colors)
    percentages = [color.percentage for color in colors]
    assert percentages == sorted(percentages, reverse=True)


def test_dominant_colors_failure_returns_empty():
    assert extract_dominant_colors(b"garbage") == []
    assert extract_dominant_colors(b"garbage", 0) == []


def test_analyze_image_reports_dimensions(images):
    analysis = analyze_image(images["solid"]((10, 20, 30), size=(120, 80)))
    assert analysis.dimensions == (120, 80)
    assert len(analysis.colors) == 1
    assert analysis.quality.is_blurry is True


def test_analyze_image_never_raises():
    analysis = analyze_image(b"definitely not an image")
    assert analysis.dimensions is None
    assert analysis.colors == []
    assert (analysis.quality.is_blurry, analysis.quality.blur_score) == (False, 50)
