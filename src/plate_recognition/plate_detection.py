import logging
from typing import List, Optional

import cv2
import numpy as np
from scipy import ndimage

from .config import DetectionConfig
from .models import Candidate
from .utils import bbox_of, component_props, remove_small_components, to_grayscale

logger = logging.getLogger(__name__)


def is_plate_candidate(width: float, height: float, area: float, extent: float,
                       solidity: float, config: Optional[DetectionConfig] = None) -> bool:
    """Geometric plate test: every condition must hold"""
    config = config or DetectionConfig()
    if height <= 0:
        return False
    aspect_ratio = width / float(height)
    return (config.min_aspect_ratio <= aspect_ratio <= config.max_aspect_ratio
            and config.min_area <= area <= config.max_area
            and extent >= config.min_extent
            and solidity >= config.min_solidity
            and width >= config.min_width
            and height >= config.min_height)


class RegionCandidateFinder:
    """
    Edge and morphology based search for plate-shaped regions:
    - smooth, equalize and denoise the grayscale image
    - threshold the Sobel gradient magnitude
    - bridge character strokes horizontally and fill the plate body
    - keep connected components whose geometry looks like a plate
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def preprocess(self, gray: np.ndarray) -> np.ndarray:
        """Gaussian blur, CLAHE and a light median filter"""
        cfg = self.config
        blurred = cv2.GaussianBlur(gray, (0, 0), cfg.gaussian_sigma)
        clahe = cv2.createCLAHE(clipLimit=cfg.clahe_clip_limit, tileGridSize=tuple(cfg.clahe_tile_grid))
        enhanced = clahe.apply(blurred)
        return cv2.medianBlur(enhanced, cfg.median_ksize)

    def detect_edges(self, image: np.ndarray) -> np.ndarray:
        """Sobel magnitude thresholded at a multiple of its mean energy"""
        img = image.astype(np.float64)
        gx = cv2.Sobel(img, cv2.CV_64F, 1, 0, ksize=3)
        gy = cv2.Sobel(img, cv2.CV_64F, 0, 1, ksize=3)
        energy = gx * gx + gy * gy
        cutoff = self.config.edge_scale * energy.mean()
        if cutoff <= 0:
            return np.zeros(image.shape, dtype=bool)
        edges = energy > cutoff
        return remove_small_components(edges, self.config.min_edge_area)

    def morphological_processing(self, edges: np.ndarray) -> np.ndarray:
        """Connect characters into a solid plate body"""
        cfg = self.config
        rows, cols = cfg.bridge_kernel
        se_bridge = cv2.getStructuringElement(cv2.MORPH_RECT, (cols, rows))
        rows, cols = cfg.close_kernel
        se_close = cv2.getStructuringElement(cv2.MORPH_RECT, (cols, rows))

        morph = edges.astype(np.uint8) * 255
        morph = cv2.morphologyEx(morph, cv2.MORPH_CLOSE, se_bridge)
        morph = cv2.morphologyEx(morph, cv2.MORPH_CLOSE, se_close)
        filled = ndimage.binary_fill_holes(morph > 0)
        return remove_small_components(filled, cfg.min_region_area)

    def find_candidates(self, mask: np.ndarray) -> List[Candidate]:
        """Connected components of the morphology mask that pass the plate geometry test"""
        regions = component_props(mask)
        logger.debug("Analyzing %d connected components", len(regions))

        candidates: List[Candidate] = []
        for region in regions:
            x, y, w, h = bbox_of(region)
            area = int(region.area)
            extent = float(region.extent)
            solidity = float(region.solidity)
            if is_plate_candidate(w, h, area, extent, solidity, self.config):
                candidate = Candidate(x=x, y=y, width=w, height=h, area=area,
                                      extent=extent, solidity=solidity)
                candidates.append(candidate)
                logger.debug("Candidate %d: AR=%.2f, Area=%d, W=%d, H=%d",
                             len(candidates), candidate.aspect_ratio, area, w, h)

        if candidates:
            logger.info("Found %d candidates", len(candidates))
        else:
            logger.info("No suitable candidates found")
        return candidates

    def find(self, image: np.ndarray) -> List[Candidate]:
        """Full chain from an image to plate candidates in raster-scan order"""
        gray = to_grayscale(image)
        processed = self.preprocess(gray)
        edges = self.detect_edges(processed)
        morph = self.morphological_processing(edges)
        return self.find_candidates(morph)
