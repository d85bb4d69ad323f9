import numpy as np

from plate_recognition.config import ValidationConfig
from plate_recognition.models import Candidate
from plate_recognition.plate_validation import PlateValidator, is_aligned
from plate_recognition.utils import count_components


def full_candidate(image):
    h, w = image.shape[:2]
    return Candidate(x=0, y=0, width=w, height=h, area=w * h, extent=1.0, solidity=1.0)


def two_blob_crop(second_top):
    """20x40 crop, bright 6x5 blobs; first blob centroid row 3.5"""
    crop = np.zeros((20, 40), dtype=np.uint8)
    crop[1:7, 5:10] = 255
    crop[second_top:second_top + 6, 25:30] = 255
    return crop


def test_alignment_threshold_is_strict():
    # sample std of [0, 3, 6] is exactly 3.0 == 0.3 * 10
    assert not is_aligned([0.0, 3.0, 6.0], 10)
    assert is_aligned([0.0, 3.0, 6.0], 10.5)


def test_alignment_uses_sample_deviation():
    # population std of [2, 8] is 3.0, sample std is 3 * sqrt(2)
    assert not is_aligned([2.0, 8.0], 10.5)
    assert not is_aligned([2.0, 8.0], 14.0)
    assert is_aligned([2.0, 8.0], 14.5)


def test_alignment_needs_two_components():
    assert not is_aligned([5.0], 100)
    assert not is_aligned([], 100)


def test_centroid_spread_boundary_on_crop():
    validator = PlateValidator()
    # limit is 0.3 * 20 = 6.0, i.e. a centroid gap of 6 * sqrt(2) ~ 8.49
    # centroids 3.5 and 13.5: sample std 7.07 -> rejected
    far = two_blob_crop(11)
    assert not validator.validate(far, full_candidate(far))
    # centroids 3.5 and 12.5: sample std 6.36 -> rejected
    just_outside = two_blob_crop(10)
    assert not validator.validate(just_outside, full_candidate(just_outside))
    # centroids 3.5 and 11.5: sample std 5.66 -> accepted
    inside = two_blob_crop(9)
    assert validator.validate(inside, full_candidate(inside))


def test_single_component_rejected():
    crop = np.zeros((20, 40), dtype=np.uint8)
    crop[5:15, 10:18] = 255
    assert not PlateValidator().validate(crop, full_candidate(crop))


def test_complement_preferred_for_dark_characters():
    crop = np.full((30, 100), 255, dtype=np.uint8)
    for i in range(4):
        crop[5:25, 10 + i * 22:20 + i * 22] = 0
    mask = PlateValidator().choose_binarization(crop)
    assert count_components(mask) == 4
    assert PlateValidator().validate(crop, full_candidate(crop))


def test_too_many_components_rejected():
    crop = np.zeros((20, 200), dtype=np.uint8)
    for i in range(18):
        crop[5:12, 3 + i * 11:8 + i * 11] = 255
    assert not PlateValidator().validate(crop, full_candidate(crop))


def test_failure_accepts_by_default(monkeypatch):
    validator = PlateValidator()

    def boom(plate):
        raise ValueError("broken crop")

    monkeypatch.setattr(validator, "validate_content", boom)
    crop = two_blob_crop(13)
    assert validator.validate(crop, full_candidate(crop)) is True


def test_failure_default_is_configurable(monkeypatch):
    validator = PlateValidator(ValidationConfig(accept_on_error=False))
    monkeypatch.setattr(validator, "validate_content", lambda plate: 1 / 0)
    crop = two_blob_crop(13)
    assert validator.validate(crop, full_candidate(crop)) is False


def test_filter_keeps_order():
    image = np.zeros((20, 80), dtype=np.uint8)
    image[1:7, 5:10] = 255
    image[2:8, 25:30] = 255
    good_a = Candidate(x=0, y=0, width=40, height=20, area=800, extent=1.0, solidity=1.0)
    empty = Candidate(x=40, y=0, width=40, height=20, area=800, extent=1.0, solidity=1.0)
    good_b = Candidate(x=0, y=0, width=35, height=20, area=700, extent=1.0, solidity=1.0)
    kept = PlateValidator().filter(image, [good_a, empty, good_b])
    assert kept == [good_a, good_b]
