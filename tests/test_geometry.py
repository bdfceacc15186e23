from __future__ import annotations

import pytest

from image_transform.errors import InvalidDimensionSpec, OutOfBoundsCrop
from image_transform.geometry import (
    CropAnchor,
    CropRect,
    Dimensions,
    normalize_dimensions,
    plan_crop,
    plan_scale_and_crop,
    plan_scale_to_fit,
    round_half_up,
)

CURRENT = Dimensions(1600, 1200)


def test_round_half_up_rounds_away_from_zero():
    assert round_half_up(50.5) == 51
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert round_half_up(-2.5) == -3
    assert round_half_up(0.0) == 0


@pytest.mark.parametrize(
    "width, height, expected",
    [
        ("800xAUTO", None, Dimensions(800, 600)),
        ("AUTOx300", None, Dimensions(400, 300)),
        ("640x480", None, Dimensions(640, 480)),
        (800, None, Dimensions(800, 600)),
        (None, 600, Dimensions(800, 600)),
        ("AUTO", 300, Dimensions(400, 300)),
        ("800", "AUTO", Dimensions(800, 600)),
        (100, 100, Dimensions(100, 100)),
    ],
)
def test_normalize_dimensions(width, height, expected):
    assert normalize_dimensions(width, height, CURRENT) == expected


def test_normalize_dimensions_packed_string_overrides_height():
    assert normalize_dimensions("800xAUTO", 50, CURRENT) == Dimensions(800, 600)


def test_normalize_dimensions_never_resolves_to_zero():
    assert normalize_dimensions(10, None, Dimensions(10000, 10)) == Dimensions(10, 1)


@pytest.mark.parametrize(
    "width, height",
    [
        ("AUTOxAUTO", None),
        (None, None),
        ("AUTO", "AUTO"),
        ("wide", None),
        ("12x", None),
        (0, 100),
        (-5, None),
        (100, "tall"),
    ],
)
def test_normalize_dimensions_rejects_unresolvable_specs(width, height):
    with pytest.raises(InvalidDimensionSpec):
        normalize_dimensions(width, height, CURRENT)


def test_dimensions_must_be_positive():
    with pytest.raises(InvalidDimensionSpec):
        Dimensions(0, 10)


def test_crop_anchor_parse():
    assert CropAnchor.parse("top-left") == CropAnchor("top", "left")
    assert CropAnchor.parse("Bottom-Right") == CropAnchor("bottom", "right")
    assert CropAnchor() == CropAnchor("center", "center")
    with pytest.raises(InvalidDimensionSpec):
        CropAnchor.parse("middle-left")
    with pytest.raises(InvalidDimensionSpec):
        CropAnchor.parse("top")


def test_scale_to_fit_meets_the_tighter_side():
    assert plan_scale_to_fit(Dimensions(800, 600), True, CURRENT) == Dimensions(800, 600)
    assert plan_scale_to_fit(Dimensions(400, 400), True, Dimensions(1000, 500)) == Dimensions(400, 200)


def test_scale_to_fit_leaves_small_images_alone_unless_asked():
    small = Dimensions(300, 200)
    assert plan_scale_to_fit(Dimensions(400, 400), False, small) == small
    assert plan_scale_to_fit(Dimensions(400, 400), True, small) == Dimensions(400, 267)


def test_scale_to_fit_never_overflows_target():
    currents = [Dimensions(w, h) for w in (1, 7, 99, 640, 1601, 4000) for h in (1, 3, 101, 480, 2999)]
    targets = [Dimensions(w, h) for w in (1, 50, 333, 800) for h in (1, 60, 250, 600)]
    for current in currents:
        for target in targets:
            result = plan_scale_to_fit(target, True, current)
            assert result.width <= target.width, (current, target, result)
            assert result.height <= target.height, (current, target, result)
            assert result.width == target.width or result.height == target.height, (current, target, result)


def test_scale_and_crop_horizontal_overflow_top_left():
    scaled, rect = plan_scale_and_crop(Dimensions(100, 100), True, CropAnchor("top", "left"), Dimensions(200, 100))
    assert scaled == Dimensions(200, 100)
    assert rect == CropRect(0, 0, 100, 100)


@pytest.mark.parametrize("horizontal, x1", [("left", 0), ("center", 50), ("right", 100)])
def test_scale_and_crop_horizontal_anchor(horizontal, x1):
    _, rect = plan_scale_and_crop(Dimensions(100, 100), True, CropAnchor("center", horizontal), Dimensions(200, 100))
    assert rect == CropRect(x1, 0, x1 + 100, 100)


@pytest.mark.parametrize("vertical, y1", [("top", 0), ("center", 100), ("bottom", 200)])
def test_scale_and_crop_vertical_anchor(vertical, y1):
    scaled, rect = plan_scale_and_crop(Dimensions(100, 100), True, CropAnchor(vertical, "left"), Dimensions(100, 300))
    assert scaled == Dimensions(100, 300)
    assert rect == CropRect(0, y1, 100, y1 + 100)


def test_scale_and_crop_center_rounds_half_away_from_zero():
    _, rect = plan_scale_and_crop(Dimensions(100, 100), True, CropAnchor(), Dimensions(201, 100))
    assert rect.x1 == 51


def test_scale_and_crop_exact_fit_is_a_full_crop():
    scaled, rect = plan_scale_and_crop(Dimensions(200, 100), True, CropAnchor("top", "right"), Dimensions(400, 200))
    assert scaled == Dimensions(200, 100)
    assert rect.covers(scaled)


def test_scale_and_crop_identity_when_not_scaling_small_images():
    current = Dimensions(50, 40)
    scaled, rect = plan_scale_and_crop(Dimensions(100, 100), False, CropAnchor(), current)
    assert scaled == current
    assert rect.covers(current)


def test_scale_and_crop_always_produces_target_size():
    currents = [Dimensions(w, h) for w in (3, 99, 640, 1601) for h in (5, 101, 480, 2999)]
    targets = [Dimensions(w, h) for w in (1, 50, 333, 800) for h in (1, 60, 250, 600)]
    anchors = [CropAnchor(v, h) for v in ("top", "center", "bottom") for h in ("left", "center", "right")]
    for current in currents:
        for target in targets:
            for anchor in anchors:
                scaled, rect = plan_scale_and_crop(target, True, anchor, current)
                assert rect.size == target
                assert 0 <= rect.x1 and rect.x2 <= scaled.width
                assert 0 <= rect.y1 and rect.y2 <= scaled.height


def test_plan_crop_accepts_rect_inside_bounds():
    rect = plan_crop(10, 20, 60, 80, Dimensions(100, 100))
    assert rect.as_box() == (10, 20, 50, 60)


def test_plan_crop_rejects_inverted_rect():
    with pytest.raises(InvalidDimensionSpec):
        plan_crop(10, 10, 5, 20, Dimensions(100, 100))
    with pytest.raises(InvalidDimensionSpec):
        plan_crop(10, 10, 20, 10, Dimensions(100, 100))


@pytest.mark.parametrize("rect", [(-1, 0, 50, 50), (0, -1, 50, 50), (50, 50, 101, 60), (0, 0, 10, 101)])
def test_plan_crop_rejects_out_of_bounds(rect):
    with pytest.raises(OutOfBoundsCrop):
        plan_crop(*rect, Dimensions(100, 100))


@pytest.mark.parametrize("rect", [(0.9, 0, 10, 10), (0, 0, 10.5, 10), (0, 0, 10, "10"), (True, 0, 10, 10)])
def test_plan_crop_rejects_fractional_coordinates(rect):
    with pytest.raises(InvalidDimensionSpec):
        plan_crop(*rect, Dimensions(100, 100))


def test_plan_crop_accepts_whole_floats():
    rect = plan_crop(1.0, 0, 10.0, 10, Dimensions(100, 100))
    assert rect == CropRect(1, 0, 10, 10)
    assert isinstance(rect.x1, int)
