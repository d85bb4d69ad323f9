import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import numpy as np

from .char_classifiers import CharacterEnsemble, FeatureClassifier, TemplateMatcher
from .character_segmentation import CharacterSegmenter, SegmentationResult
from .config import PipelineConfig
from .models import Candidate, PlateReading
from .ocr_recognition import OCROracle, OracleVoter, build_oracle
from .plate_detection import RegionCandidateFinder
from .plate_validation import PlateValidator
from .state_identification import identify_state
from .utils import crop, to_grayscale

logger = logging.getLogger(__name__)


class PlatePipeline:
    """
    Image -> plate candidates -> validated plates -> glyphs -> text.
    Every call is independent; nothing is cached between images.
    """

    def __init__(self, config: Optional[PipelineConfig] = None, oracle: Optional[OCROracle] = None):
        self.config = config or PipelineConfig()
        if oracle is None:
            oracle = build_oracle(self.config.ocr)
        self.finder = RegionCandidateFinder(self.config.detection)
        self.validator = PlateValidator(self.config.validation)
        self.segmenter = CharacterSegmenter(self.config)
        self.ensemble = CharacterEnsemble(
            ocr=OracleVoter(oracle, self.config.ocr),
            template=TemplateMatcher(self.config.template),
            feature=FeatureClassifier(self.config.feature),
        )

    def detect(self, image: np.ndarray) -> List[Candidate]:
        """Validated plate regions of an image"""
        gray = to_grayscale(image)
        candidates = self.finder.find(gray)
        if not candidates:
            return []
        return self.validator.filter(gray, candidates)

    def segment(self, plate: np.ndarray) -> SegmentationResult:
        return self.segmenter.segment(plate)

    def read_plate(self, gray: np.ndarray, candidate: Candidate) -> PlateReading:
        plate = crop(gray, candidate.bbox)
        segmentation = self.segment(plate)
        text, readings = self.ensemble.read(segmentation.glyphs)
        state = identify_state(text)
        logger.info("Plate at %s: '%s' (%s, %d glyphs)", candidate.bbox, text, state, len(readings))
        return PlateReading(candidate=candidate, method=segmentation.variant.name,
                            glyphs=readings, text=text, state=state,
                            plate_image=plate, binary_mask=segmentation.mask)

    def _read_plate_isolated(self, gray: np.ndarray, candidate: Candidate) -> Optional[PlateReading]:
        try:
            return self.read_plate(gray, candidate)
        except Exception:
            logger.exception("Failed to read plate at %s; skipping it", candidate.bbox)
            return None

    def process_image(self, image: np.ndarray) -> List[PlateReading]:
        gray = to_grayscale(image)
        plates = self.detect(gray)
        if not plates:
            logger.info("No license plates detected")
            return []

        workers = max(1, int(self.config.max_workers))
        if workers > 1 and len(plates) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(lambda c: self._read_plate_isolated(gray, c), plates))
        else:
            results = [self._read_plate_isolated(gray, c) for c in plates]
        return [r for r in results if r is not None]
