import logging
from typing import List, Optional, Sequence

import cv2
import numpy as np

from .config import ValidationConfig
from .models import Candidate
from .utils import bbox_of, component_props, count_components, crop, to_grayscale

logger = logging.getLogger(__name__)


def otsu_mask(gray: np.ndarray) -> np.ndarray:
    """Foreground = pixels brighter than the Otsu level"""
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return binary > 0


def is_aligned(y_coords: Sequence[float], crop_height: int,
               config: Optional[ValidationConfig] = None) -> bool:
    """True when enough character centroids sit on one text line"""
    config = config or ValidationConfig()
    if len(y_coords) < config.min_char_like:
        return False
    # sample standard deviation (N-1)
    spread = float(np.std(np.asarray(y_coords, dtype=np.float64), ddof=1))
    return spread < crop_height * config.max_centroid_spread


class PlateValidator:
    """
    Re-binarizes each candidate crop and checks that it holds a row of
    character-like blobs. Computation faults accept the candidate.
    """

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or ValidationConfig()

    def choose_binarization(self, plate: np.ndarray) -> np.ndarray:
        """Otsu or its complement, whichever yields a plausible component count"""
        cfg = self.config
        otsu = otsu_mask(plate)
        methods = [otsu, ~otsu]
        best_method, best_count = 0, 0
        for idx, mask in enumerate(methods):
            num = count_components(mask)
            if cfg.min_preferred_count <= num <= cfg.max_preferred_count and num > best_count:
                best_method, best_count = idx, num
        return methods[best_method]

    def validate_content(self, plate: np.ndarray) -> bool:
        cfg = self.config
        mask = self.choose_binarization(plate)
        regions = component_props(mask)
        if not cfg.min_components <= len(regions) <= cfg.max_components:
            return False

        plate_h, plate_w = plate.shape[:2]
        max_area = plate_h * plate_w * cfg.max_char_area_fraction
        y_coords: List[float] = []
        for region in regions:
            _, _, w, h = bbox_of(region)
            aspect = h / float(w)
            if (cfg.min_char_aspect <= aspect <= cfg.max_char_aspect
                    and cfg.min_char_area <= region.area <= max_area):
                y_coords.append(float(region.centroid[0]))

        return is_aligned(y_coords, plate_h, cfg)

    def validate(self, image: np.ndarray, candidate: Candidate) -> bool:
        try:
            plate = crop(to_grayscale(image), candidate.bbox)
            return self.validate_content(plate)
        except Exception as exc:
            logger.warning("Validation failed for candidate %s (%s); accepting",
                           candidate.bbox, exc)
            return self.config.accept_on_error

    def filter(self, image: np.ndarray, candidates: List[Candidate]) -> List[Candidate]:
        """Keep the validated candidates, preserving their order"""
        plates = [c for c in candidates if self.validate(image, c)]
        logger.info("Validated %d plates from %d candidates", len(plates), len(candidates))
        return plates
