import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
from scipy.signal import find_peaks

from .config import FeatureConfig, TemplateConfig
from .models import UNKNOWN_SYMBOL, ClassificationVote, Glyph, GlyphReading
from .ocr_recognition import OracleVoter
from .utils import bbox_of, component_props, ink_map

logger = logging.getLogger(__name__)


def _resized_ink(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    rows, cols = size
    ink = ink_map(image).astype(np.float32)
    return cv2.resize(ink, (cols, rows), interpolation=cv2.INTER_LINEAR)


@dataclass
class TemplateFeatures:
    density: float
    aspect_ratio: float
    v_peaks: int
    h_peaks: int
    top_density: float
    mid_density: float
    bottom_density: float


class TemplateMatcher:
    """Projection profile and zone density rules"""

    name = "template"

    def __init__(self, config: Optional[TemplateConfig] = None):
        self.config = config or TemplateConfig()

    def features(self, image: np.ndarray) -> TemplateFeatures:
        small = _resized_ink(image, self.config.size)
        h, w = small.shape

        v_proj = small.sum(axis=1)
        h_proj = small.sum(axis=0)
        v_peaks = len(find_peaks(v_proj)[0])
        h_peaks = len(find_peaks(h_proj)[0])

        ink_rows, ink_cols = np.nonzero(small > 0.5)
        if ink_rows.size:
            ink_h = ink_rows.max() - ink_rows.min() + 1
            ink_w = ink_cols.max() - ink_cols.min() + 1
            aspect_ratio = ink_w / float(ink_h)
        else:
            aspect_ratio = w / float(h)

        # 1-based bands [1, t1], [t1, t2], [t2, h]; neighbours share a row
        t1 = int(np.floor(h / 3.0 + 0.5))
        t2 = int(np.floor(2 * h / 3.0 + 0.5))
        band_area = float(t1 * w)
        return TemplateFeatures(
            density=float(small.mean()),
            aspect_ratio=float(aspect_ratio),
            v_peaks=v_peaks,
            h_peaks=h_peaks,
            top_density=float(small[:t1].sum()) / band_area,
            mid_density=float(small[t1 - 1:t2].sum()) / band_area,
            bottom_density=float(small[t2 - 1:].sum()) / band_area,
        )

    def decide(self, f: TemplateFeatures) -> str:
        cfg = self.config
        if f.density < cfg.sparse_density:
            return "1"
        if f.aspect_ratio < cfg.narrow_aspect:
            return "1"
        if f.v_peaks <= 1 and f.h_peaks <= 2:
            # hollow in the middle vs filled
            return "0" if f.mid_density < cfg.hollow_mid_density else "8"
        if f.top_density > f.bottom_density * cfg.heavy_ratio:
            return "P"
        if f.bottom_density > f.top_density * cfg.heavy_ratio:
            return "L"
        if f.h_peaks >= cfg.bar_peaks:
            return "E"
        return UNKNOWN_SYMBOL

    def vote(self, image: np.ndarray) -> ClassificationVote:
        return ClassificationVote(self.decide(self.features(image)), self.name)


@dataclass
class ShapeFeatures:
    eccentricity: float
    solidity: float
    aspect_ratio: float
    component_count: int


class FeatureClassifier:
    """Rules on the largest ink component's shape"""

    name = "feature"

    def __init__(self, config: Optional[FeatureConfig] = None):
        self.config = config or FeatureConfig()

    def features(self, image: np.ndarray) -> Optional[ShapeFeatures]:
        small = _resized_ink(image, self.config.size)
        regions = component_props(small > 0.5)
        if not regions:
            return None
        main = max(regions, key=lambda r: r.area)
        _, _, w, h = bbox_of(main)
        return ShapeFeatures(
            eccentricity=float(main.eccentricity),
            solidity=float(main.solidity),
            aspect_ratio=w / float(h),
            component_count=len(regions),
        )

    def decide(self, f: Optional[ShapeFeatures]) -> str:
        cfg = self.config
        if f is None:
            return UNKNOWN_SYMBOL
        if f.aspect_ratio < cfg.narrow_aspect:
            return "1"
        if f.component_count >= 2 and f.solidity > cfg.multi_part_solidity:
            return "B"
        if f.eccentricity < cfg.round_eccentricity and f.solidity < cfg.hollow_solidity:
            return "0"
        if f.eccentricity > cfg.elongated_eccentricity:
            return "1"
        if f.solidity > cfg.solid_solidity:
            return "8" if f.aspect_ratio > cfg.square_aspect else "1"
        return UNKNOWN_SYMBOL

    def vote(self, image: np.ndarray) -> ClassificationVote:
        return ClassificationVote(self.decide(self.features(image)), self.name)


def resolve(votes: Sequence[ClassificationVote]) -> str:
    """
    First known vote in priority order. The last vote is terminal and is
    returned even when unknown.
    """
    if not votes:
        return UNKNOWN_SYMBOL
    for vote in votes[:-1]:
        if not vote.is_unknown:
            return vote.symbol
    last = votes[-1]
    return last.symbol if last.symbol else UNKNOWN_SYMBOL


class CharacterEnsemble:
    """OCR oracle, then template matcher, then feature classifier"""

    def __init__(self, ocr: Optional[OracleVoter] = None,
                 template: Optional[TemplateMatcher] = None,
                 feature: Optional[FeatureClassifier] = None):
        self.classifiers = [
            ocr or OracleVoter(None),
            template or TemplateMatcher(),
            feature or FeatureClassifier(),
        ]

    @staticmethod
    def _vote(classifier, image: np.ndarray) -> ClassificationVote:
        try:
            return classifier.vote(image)
        except Exception:
            logger.exception("Classifier %s failed; counting it as an abstention", classifier.name)
            return ClassificationVote(UNKNOWN_SYMBOL, classifier.name)

    def classify(self, glyph: Glyph) -> GlyphReading:
        votes = [self._vote(c, glyph.image) for c in self.classifiers]
        symbol = resolve(votes)
        logger.debug("Glyph %d votes: %s -> %s", glyph.index,
                     ", ".join(f"{v.classifier}={v.symbol}" for v in votes), symbol)
        return GlyphReading(glyph=glyph, symbol=symbol, votes=votes)

    def read(self, glyphs: Sequence[Glyph]) -> Tuple[str, List[GlyphReading]]:
        """Concatenate per-glyph symbols left to right"""
        ordered = sorted(glyphs, key=lambda g: g.center_x)
        readings = [self.classify(g) for g in ordered]
        return "".join(r.symbol for r in readings), readings
