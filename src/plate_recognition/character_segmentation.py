import logging
from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np
from scipy import ndimage

from .config import BinarizationConfig, ExtractionConfig, PipelineConfig, RepairConfig
from .models import BinarizationVariant, Glyph
from .plate_validation import otsu_mask
from .utils import (bbox_of, component_props, count_components, crop,
                    remove_small_components, to_grayscale)

logger = logging.getLogger(__name__)

VARIANT_NAMES = ("adaptive-bright", "adaptive-dark", "otsu", "inverted-otsu")


def enhance_plate(plate: np.ndarray, config: Optional[BinarizationConfig] = None) -> np.ndarray:
    """Very light median filtering then moderate CLAHE, keeping stroke structure"""
    config = config or BinarizationConfig()
    gray = to_grayscale(plate)
    filtered = ndimage.median_filter(gray, size=config.median_size)
    clahe = cv2.createCLAHE(clipLimit=config.clahe_clip_limit, tileGridSize=tuple(config.clahe_tile_grid))
    return clahe.apply(filtered)


class AdaptiveBinarizer:
    """
    Builds four binarizations of an enhanced plate and keeps the one with the
    most components sized like characters.
    """

    def __init__(self, config: Optional[BinarizationConfig] = None):
        self.config = config or BinarizationConfig()

    def _adaptive(self, enhanced: np.ndarray, bright: bool) -> np.ndarray:
        """Pixel above a scaled local mean; the dark variant works on the complement"""
        cfg = self.config
        image = enhanced if bright else 255 - enhanced
        h, w = image.shape[:2]
        ksize = (2 * (w // cfg.adaptive_window_divisor) + 1,
                 2 * (h // cfg.adaptive_window_divisor) + 1)
        local_mean = cv2.boxFilter(image.astype(np.float64), -1, ksize,
                                   borderType=cv2.BORDER_REPLICATE)
        scale = cfg.adaptive_base_scale + (1.0 - cfg.adaptive_sensitivity)
        return image.astype(np.float64) > scale * local_mean

    def score(self, mask: np.ndarray) -> int:
        """Count components inside the character size envelope"""
        cfg = self.config
        h, w = mask.shape[:2]
        valid = 0
        for region in component_props(mask):
            _, _, bw, bh = bbox_of(region)
            if (cfg.min_area < region.area < h * w * cfg.max_area_fraction
                    and h * cfg.min_height_fraction < bh < h * cfg.max_height_fraction
                    and cfg.min_width < bw < w * cfg.max_width_fraction):
                valid += 1
        return valid

    def variants(self, enhanced: np.ndarray) -> List[BinarizationVariant]:
        otsu = otsu_mask(enhanced)
        masks = [
            self._adaptive(enhanced, bright=True),
            self._adaptive(enhanced, bright=False),
            otsu,
            ~otsu,
        ]
        return [BinarizationVariant(name=name, mask=mask, score=self.score(mask))
                for name, mask in zip(VARIANT_NAMES, masks)]

    @staticmethod
    def select(variants: List[BinarizationVariant]) -> BinarizationVariant:
        """Highest score wins; ties keep the earliest variant"""
        if not variants:
            raise ValueError("No binarization variants to choose from")
        best = variants[0]
        for variant in variants[1:]:
            if variant.score > best.score:
                best = variant
        return best

    def binarize(self, enhanced: np.ndarray) -> BinarizationVariant:
        variants = self.variants(enhanced)
        best = self.select(variants)
        logger.debug("Binarization scores: %s",
                     ", ".join(f"{v.name}={v.score}" for v in variants))
        logger.info("Selected thresholding method: %s (found %d potential characters)",
                    best.name, best.score)
        return best


class MorphologicalRepair:
    """Gentle, conditional closing/opening so character shapes survive"""

    def __init__(self, config: Optional[RepairConfig] = None):
        self.config = config or RepairConfig()
        self.kernel = cv2.getStructuringElement(cv2.MORPH_CROSS, (3, 3))

    def _morph(self, mask: np.ndarray, op: int) -> np.ndarray:
        return cv2.morphologyEx(mask.astype(np.uint8), op, self.kernel) > 0

    def repair(self, mask: np.ndarray) -> np.ndarray:
        cfg = self.config
        repaired = mask
        count = count_components(repaired)

        # broken strokes: close tiny gaps, drop specks
        if count > cfg.max_fragments:
            repaired = self._morph(repaired, cv2.MORPH_CLOSE)
            repaired = remove_small_components(repaired, cfg.min_fragment_area)
            count = count_components(repaired)
            logger.debug("Closed fragmented mask: %d components", count)

        # merged characters: try to pull them apart
        if count < cfg.min_components:
            opened = self._morph(repaired, cv2.MORPH_OPEN)
            opened_count = count_components(opened)
            if count < opened_count < cfg.max_opened_components:
                logger.debug("Opened merged mask: %d -> %d components", count, opened_count)
                repaired = opened

        return repaired


class CharacterExtractor:
    """Filters, orders and crops character components into canonical glyphs"""

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()

    def is_character(self, region, mask_shape) -> bool:
        cfg = self.config
        img_h, img_w = mask_shape[:2]
        min_area = max(cfg.min_area, img_h * img_w * cfg.min_area_fraction)
        max_area = img_h * img_w * cfg.max_area_fraction
        _, _, w, h = bbox_of(region)
        aspect_ratio = w / float(h)
        return (min_area <= region.area <= max_area
                and img_h * cfg.min_height_fraction <= h <= img_h * cfg.max_height_fraction
                and cfg.min_width <= w <= img_w * cfg.max_width_fraction
                and cfg.min_aspect_ratio <= aspect_ratio <= cfg.max_aspect_ratio
                and region.extent >= cfg.min_extent
                and region.solidity >= cfg.min_solidity)

    def extract(self, mask: np.ndarray, enhanced: np.ndarray) -> List[Glyph]:
        """Crop glyphs from the enhanced grayscale (not the mask), left to right"""
        cfg = self.config
        regions = component_props(mask)
        boxes = [bbox_of(r) for r in regions if self.is_character(r, mask.shape)]
        boxes.sort(key=lambda b: b[0] + b[2] / 2.0)

        rows, cols = cfg.glyph_size
        glyphs: List[Glyph] = []
        for idx, box in enumerate(boxes):
            char_img = crop(enhanced, box, padding=cfg.padding)
            resized = cv2.resize(char_img, (cols, rows), interpolation=cv2.INTER_LINEAR)
            glyphs.append(Glyph(index=idx, image=resized, bbox=box))

        logger.info("Valid characters detected: %d of %d objects", len(glyphs), len(regions))
        return glyphs


@dataclass
class SegmentationResult:
    glyphs: List[Glyph]
    variant: BinarizationVariant
    mask: np.ndarray       # repaired binary plate
    enhanced: np.ndarray


class CharacterSegmenter:
    def __init__(self, config: Optional[PipelineConfig] = None):
        config = config or PipelineConfig()
        self.binarization_config = config.binarization
        self.binarizer = AdaptiveBinarizer(config.binarization)
        self.repairer = MorphologicalRepair(config.repair)
        self.extractor = CharacterExtractor(config.extraction)

    def segment(self, plate: np.ndarray) -> SegmentationResult:
        enhanced = enhance_plate(plate, self.binarization_config)
        variant = self.binarizer.binarize(enhanced)
        mask = self.repairer.repair(variant.mask)
        glyphs = self.extractor.extract(mask, enhanced)
        return SegmentationResult(glyphs=glyphs, variant=variant, mask=mask, enhanced=enhanced)


def segment_plate(plate: np.ndarray, config: Optional[PipelineConfig] = None) -> SegmentationResult:
    """Split a plate crop into ordered, canonically sized character images"""
    return CharacterSegmenter(config).segment(plate)
