import numpy as np
import pytest

from plate_recognition.config import DetectionConfig
from plate_recognition.plate_detection import RegionCandidateFinder, is_plate_candidate

# width, height, area, extent, solidity
GOOD = (200, 50, 8000, 0.8, 0.9)


def test_plate_geometry_accepted():
    assert is_plate_candidate(*GOOD)


@pytest.mark.parametrize("field,value", [
    (0, 80),        # aspect 1.6
    (0, 400),       # aspect 8.0
    (2, 700),       # area too small
    (2, 70000),     # area too large
    (3, 0.2),       # extent
    (4, 0.2),       # solidity
])
def test_single_violation_rejects(field, value):
    args = list(GOOD)
    args[field] = value
    assert not is_plate_candidate(*args)


def test_minimum_size():
    # aspect 2.0, area and shape fine, but narrower than 60 px
    assert not is_plate_candidate(58, 29, 1500, 0.9, 0.9)
    # aspect 5.0, but shorter than 15 px
    assert not is_plate_candidate(70, 14, 900, 0.95, 0.95)
    assert is_plate_candidate(60, 15, 850, 0.95, 0.95)


def test_inclusive_bounds():
    assert is_plate_candidate(180, 100, 800, 0.25, 0.25)
    assert is_plate_candidate(700, 100, 60000, 0.9, 0.9)


def test_overridable_thresholds():
    config = DetectionConfig(min_width=250)
    assert not is_plate_candidate(*GOOD, config=config)


def test_blank_image_has_no_candidates(blank_image):
    assert RegionCandidateFinder().find(blank_image) == []


def test_blank_image_has_no_edges(blank_image):
    finder = RegionCandidateFinder()
    edges = finder.detect_edges(finder.preprocess(blank_image))
    assert not edges.any()


def test_plate_found_in_scene(scene):
    image, (px, py, pw, ph) = scene
    candidates = RegionCandidateFinder().find(image)
    assert candidates
    h, w = image.shape
    for c in candidates:
        assert c.x >= 0 and c.y >= 0
        assert c.x + c.width <= w and c.y + c.height <= h
    centers = [(c.x + c.width / 2.0, c.y + c.height / 2.0) for c in candidates]
    assert any(px <= cx <= px + pw and py <= cy <= py + ph for cx, cy in centers)


def test_color_input_accepted(scene):
    image, _ = scene
    bgr = np.dstack([image] * 3)
    gray_result = RegionCandidateFinder().find(image)
    color_result = RegionCandidateFinder().find(bgr)
    assert [c.bbox for c in color_result] == [c.bbox for c in gray_result]
