import numpy as np
import pytest

from plate_recognition.config import PipelineConfig
from plate_recognition.ocr_recognition import OCROracle, OracleResult


def draw_glyph_strip(count=7, height=80, width=360, glyph_w=12, glyph_h=36,
                     start_x=24, step=48, top=22, paper=200, ink=30):
    """Uniform paper with equally sized, well separated dark rectangles"""
    img = np.full((height, width), paper, dtype=np.uint8)
    for i in range(count):
        x = start_x + i * step
        img[top:top + glyph_h, x:x + glyph_w] = ink
    return img


def draw_scene(height=300, width=400):
    """Dark car body with one bright plate holding six dark characters"""
    img = np.full((height, width), 90, dtype=np.uint8)
    px, py, pw, ph = 100, 150, 200, 50
    img[py:py + ph, px:px + pw] = 230
    for i in range(6):
        cx = px + 16 + i * 30
        img[py + 10:py + 40, cx:cx + 12] = 20
    return img, (px, py, pw, ph)


class FakeOracle(OCROracle):
    """Answers from a list, one entry per call; records the charsets asked for"""

    def __init__(self, answers):
        self.answers = list(answers)
        self.charsets = []

    def recognize(self, image, charset=None):
        self.charsets.append(charset)
        text = self.answers.pop(0) if self.answers else ""
        return OracleResult(text=text, confidence=0.9)


class StubClassifier:
    def __init__(self, name, symbol):
        self.name = name
        self.symbol = symbol
        self.calls = 0

    def vote(self, image):
        from plate_recognition.models import ClassificationVote
        self.calls += 1
        return ClassificationVote(self.symbol, self.name)


@pytest.fixture
def glyph_strip():
    return draw_glyph_strip()


@pytest.fixture
def scene():
    return draw_scene()


@pytest.fixture
def blank_image():
    return np.full((240, 320), 128, dtype=np.uint8)


@pytest.fixture
def offline_config():
    return PipelineConfig.from_dict({"ocr": {"backend": "none"}})
