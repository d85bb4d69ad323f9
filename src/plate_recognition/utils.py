import os
from typing import List, Tuple

import cv2
import numpy as np
from skimage import measure

from .errors import InputError


def load_image(path: str) -> np.ndarray:
    """Read an image from disk in OpenCV (BGR) order, raising InputError on failure"""
    if not path or not os.path.isfile(path):
        raise InputError(f"Image not found: {path}")
    image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if image is None or image.size == 0:
        raise InputError(f"Failed to read image: {path}")
    return image


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Return a uint8 single-channel copy of a grayscale, BGR or BGRA image"""
    if image is None or not isinstance(image, np.ndarray) or image.size == 0:
        raise InputError("Empty image")
    if image.ndim == 3 and image.shape[2] == 1:
        image = image[:, :, 0]
    if image.ndim == 3:
        if image.shape[2] == 3:
            image = cv2.cvtColor(_as_uint8(image), cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            image = cv2.cvtColor(_as_uint8(image), cv2.COLOR_BGRA2GRAY)
        else:
            raise InputError(f"Unsupported channel count: {image.shape[2]}")
    elif image.ndim != 2:
        raise InputError(f"Unsupported image shape: {image.shape}")
    return _as_uint8(image).copy()


def _as_uint8(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint8:
        return image
    if image.dtype == bool:
        return image.astype(np.uint8) * 255
    data = image.astype(np.float64)
    # floating images in [0, 1] are scaled to full range
    if np.issubdtype(image.dtype, np.floating) and data.max(initial=0.0) <= 1.0:
        data = data * 255.0
    return np.clip(data, 0, 255).astype(np.uint8)


def crop(image: np.ndarray, bbox: Tuple[int, int, int, int], padding: int = 0) -> np.ndarray:
    """Crop (x, y, w, h) with optional padding, clamped to the image bounds"""
    x, y, w, h = bbox
    img_h, img_w = image.shape[:2]
    x1 = max(0, x - padding)
    y1 = max(0, y - padding)
    x2 = min(img_w, x + w + padding)
    y2 = min(img_h, y + h + padding)
    return image[y1:y2, x1:x2].copy()


def label_components(mask: np.ndarray) -> Tuple[np.ndarray, int]:
    """8-connected labelling; labels follow raster-scan order of first pixel"""
    labels, num = measure.label(np.asarray(mask, dtype=bool), connectivity=2, return_num=True)
    return labels, num


def count_components(mask: np.ndarray) -> int:
    return label_components(mask)[1]


def component_props(mask: np.ndarray) -> List:
    labels, _ = label_components(mask)
    return measure.regionprops(labels)


def remove_small_components(mask: np.ndarray, min_area: int) -> np.ndarray:
    """Drop 8-connected components with fewer than min_area pixels"""
    labels, num = label_components(mask)
    if num == 0:
        return np.zeros(mask.shape, dtype=bool)
    sizes = np.bincount(labels.ravel())
    keep = sizes >= min_area
    keep[0] = False
    return keep[labels]


def ink_map(image: np.ndarray) -> np.ndarray:
    """
    Intensities scaled to [0, 1] with character ink high. Glyphs come in both
    polarities; the Otsu majority class is taken to be the paper.
    """
    gray = to_grayscale(image)
    if gray.min() == gray.max():
        # no contrast, no ink
        return np.zeros(gray.shape, dtype=np.float64)
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    ink = gray.astype(np.float64) / 255.0
    if np.count_nonzero(binary) > binary.size / 2.0:
        ink = 1.0 - ink
    return ink


def bbox_of(region) -> Tuple[int, int, int, int]:
    """(x, y, w, h) of a skimage region"""
    min_row, min_col, max_row, max_col = region.bbox
    return (min_col, min_row, max_col - min_col, max_row - min_row)
