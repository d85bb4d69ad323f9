import logging
import string
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Optional, Sequence

import cv2
import numpy as np
import pytesseract

from .config import OCRConfig
from .errors import OracleError
from .models import UNKNOWN_SYMBOL, ClassificationVote
from .utils import ink_map

logger = logging.getLogger(__name__)

ALPHANUMERIC = string.digits + string.ascii_uppercase
DIGITS = string.digits
LETTERS = string.ascii_uppercase

# Tried in order; the first non-empty answer wins
CHARSET_ATTEMPTS: Sequence[Optional[str]] = (None, ALPHANUMERIC, DIGITS, LETTERS)


@dataclass
class OracleResult:
    text: str
    confidence: float


class OCROracle(ABC):
    """
    Black-box text recognizer. Implementations raise OracleError on any
    failure, including running past their timeout.
    """

    @abstractmethod
    def recognize(self, image: np.ndarray, charset: Optional[str] = None) -> OracleResult:
        pass


class TesseractOracle(OCROracle):
    """pytesseract in single-character mode with an optional whitelist"""

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()

    def recognize(self, image: np.ndarray, charset: Optional[str] = None) -> OracleResult:
        tess_config = self.config.tesseract_config
        if charset:
            tess_config += f" -c tessedit_char_whitelist={charset}"
        try:
            data = pytesseract.image_to_data(image, config=tess_config,
                                             timeout=self.config.timeout_sec,
                                             output_type=pytesseract.Output.DICT)
        except (RuntimeError, OSError, ValueError) as exc:
            # pytesseract signals a timeout with a bare RuntimeError
            raise OracleError(f"Tesseract failed: {exc}") from exc

        words, confs = [], []
        for text, conf in zip(data.get("text", []), data.get("conf", [])):
            text = str(text).strip()
            if not text:
                continue
            words.append(text)
            try:
                value = float(conf)
            except (TypeError, ValueError):
                continue
            if value >= 0:
                confs.append(value / 100.0)
        confidence = float(np.mean(confs)) if confs else 0.0
        return OracleResult(text="".join(words), confidence=confidence)


class EasyOCROracle(OCROracle):
    """
    easyocr reader behind a single worker thread, so calls on the shared
    model never overlap. A call that runs past the timeout keeps the worker;
    until it finishes every new call fails fast instead of queueing.
    """

    def __init__(self, config: Optional[OCRConfig] = None, reader=None):
        self.config = config or OCRConfig()
        if reader is None:
            import easyocr
            reader = easyocr.Reader(list(self.config.languages), gpu=False)
        self.reader = reader
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="easyocr")
        self._lock = threading.Lock()
        self._stuck: Optional[Future] = None

    def _read(self, image: np.ndarray, charset: Optional[str]):
        return self.reader.readtext(image, allowlist=charset, detail=1)

    def recognize(self, image: np.ndarray, charset: Optional[str] = None) -> OracleResult:
        with self._lock:
            if self._stuck is not None and not self._stuck.done():
                raise OracleError("EasyOCR is still busy with a timed-out call")
            self._stuck = None
            future = self._executor.submit(self._read, image, charset)
        try:
            results = future.result(timeout=self.config.timeout_sec)
        except FutureTimeout as exc:
            # queued behind another caller and never started: just drop it
            if not future.cancel():
                with self._lock:
                    self._stuck = future
            raise OracleError(f"EasyOCR timed out after {self.config.timeout_sec}s") from exc
        except Exception as exc:
            raise OracleError(f"EasyOCR failed: {exc}") from exc

        if not results:
            return OracleResult(text="", confidence=0.0)
        # left to right
        results = sorted(results, key=lambda r: min(p[0] for p in r[0]))
        text = "".join(str(r[1]).strip() for r in results)
        confidence = float(np.mean([float(r[2]) for r in results]))
        return OracleResult(text=text, confidence=confidence)

    def close(self):
        self._executor.shutdown(wait=False)


def build_oracle(config: Optional[OCRConfig] = None) -> Optional[OCROracle]:
    """Oracle for the configured backend; 'none' disables OCR voting"""
    config = config or OCRConfig()
    backend = config.backend.lower()
    if backend == "tesseract":
        return TesseractOracle(config)
    if backend == "easyocr":
        return EasyOCROracle(config)
    if backend == "none":
        return None
    raise ValueError("Unsupported OCR backend: " + config.backend)


class OracleVoter:
    """Turns oracle answers into a single-character vote for one glyph"""

    name = "ocr"

    def __init__(self, oracle: Optional[OCROracle], config: Optional[OCRConfig] = None,
                 charsets: Sequence[Optional[str]] = CHARSET_ATTEMPTS):
        self.oracle = oracle
        self.config = config or OCRConfig()
        self.charsets = tuple(charsets)

    def prepare(self, glyph_image: np.ndarray) -> np.ndarray:
        """Dark ink on white paper, padded and upscaled, then binarized"""
        paper = ((1.0 - ink_map(glyph_image)) * 255.0).astype(np.uint8)
        pad = self.config.padding
        padded = cv2.copyMakeBorder(paper, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=255)
        scale = max(1, int(self.config.upscale))
        big = cv2.resize(padded, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)
        _, binary = cv2.threshold(big, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return binary

    def vote(self, glyph_image: np.ndarray) -> ClassificationVote:
        if self.oracle is None:
            return ClassificationVote(UNKNOWN_SYMBOL, self.name)
        prepared = self.prepare(glyph_image)
        for charset in self.charsets:
            try:
                result = self.oracle.recognize(prepared, charset)
            except OracleError as exc:
                logger.debug("OCR attempt failed, no vote: %s", exc)
                return ClassificationVote(UNKNOWN_SYMBOL, self.name)
            text = result.text.strip() if result.text else ""
            if text:
                return ClassificationVote(text[0].upper(), self.name)
        return ClassificationVote(UNKNOWN_SYMBOL, self.name)
