"""Classical licence plate location, character segmentation and recognition."""

from .config import PipelineConfig, load_config
from .errors import InputError, OracleError, PlateRecognitionError
from .models import Candidate, Glyph, PlateReading
from .plate_pipeline import PlatePipeline

__all__ = [
    "Candidate",
    "Glyph",
    "InputError",
    "OracleError",
    "PipelineConfig",
    "PlateReading",
    "PlatePipeline",
    "PlateRecognitionError",
    "load_config",
]

__version__ = "0.1.0"
