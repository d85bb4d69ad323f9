from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

UNKNOWN_SYMBOL = "?"


@dataclass
class Candidate:
    """
    A connected region whose geometry is plausible for a licence plate.
    Coordinates are 0-based pixels of the source image.
    """
    x: int
    y: int
    width: int
    height: int
    area: int
    extent: float
    solidity: float

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    @property
    def aspect_ratio(self) -> float:
        return self.width / float(self.height)

    def to_dict(self) -> dict:
        return {
            "bbox": list(self.bbox),
            "area": self.area,
            "extent": round(self.extent, 4),
            "solidity": round(self.solidity, 4),
        }


@dataclass
class BinarizationVariant:
    name: str
    mask: np.ndarray   # boolean, True = foreground
    score: int         # number of character-plausible components


@dataclass
class Glyph:
    """A single character cropped from the enhanced plate and resized."""
    index: int
    image: np.ndarray                 # uint8, canonical glyph size
    bbox: Tuple[int, int, int, int]   # (x, y, w, h) in plate coordinates

    @property
    def center_x(self) -> float:
        x, _, w, _ = self.bbox
        return x + w / 2.0


@dataclass
class ClassificationVote:
    symbol: str
    classifier: str

    @property
    def is_unknown(self) -> bool:
        return not self.symbol or self.symbol == UNKNOWN_SYMBOL


@dataclass
class GlyphReading:
    glyph: Glyph
    symbol: str
    votes: List[ClassificationVote] = field(default_factory=list)

    def vote_for(self, classifier: str) -> Optional[ClassificationVote]:
        for vote in self.votes:
            if vote.classifier == classifier:
                return vote
        return None


@dataclass
class PlateReading:
    """
    Result of reading one validated plate region.
    """
    candidate: Candidate
    method: str                       # name of the selected binarization variant
    glyphs: List[GlyphReading]
    text: str
    state: str
    plate_image: Optional[np.ndarray] = None
    binary_mask: Optional[np.ndarray] = None

    def to_dict(self) -> dict:
        """Serializable summary without the image payloads."""
        return {
            "text": self.text,
            "state": self.state,
            "method": self.method,
            "candidate": self.candidate.to_dict(),
            "glyphs": [
                {
                    "symbol": g.symbol,
                    "bbox": list(g.glyph.bbox),
                    "votes": {v.classifier: v.symbol for v in g.votes},
                }
                for g in self.glyphs
            ],
        }
