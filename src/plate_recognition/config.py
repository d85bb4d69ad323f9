from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic_settings import BaseSettings, SettingsConfigDict


class StageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")


class DetectionConfig(StageConfig):
    """Thresholds for locating plate-shaped regions in the full image"""
    gaussian_sigma: float = 1.0
    clahe_clip_limit: float = 2.0
    clahe_tile_grid: Tuple[int, int] = (8, 8)
    median_ksize: int = 3
    edge_scale: float = 4.0
    min_edge_area: int = 50
    # (rows, cols) of the horizontal bridging element
    bridge_kernel: Tuple[int, int] = (3, 15)
    close_kernel: Tuple[int, int] = (5, 5)
    min_region_area: int = 500
    min_aspect_ratio: float = 1.8
    max_aspect_ratio: float = 7.0
    min_area: int = 800
    max_area: int = 60000
    min_extent: float = 0.25
    min_solidity: float = 0.25
    min_width: int = 60
    min_height: int = 15


class ValidationConfig(StageConfig):
    min_preferred_count: int = 3
    max_preferred_count: int = 15
    min_components: int = 2
    max_components: int = 15
    min_char_aspect: float = 0.2
    max_char_aspect: float = 6.0
    min_char_area: int = 10
    max_char_area_fraction: float = 0.6
    min_char_like: int = 2
    max_centroid_spread: float = 0.3
    accept_on_error: bool = True


class BinarizationConfig(StageConfig):
    median_size: int = 2
    clahe_clip_limit: float = 2.0
    clahe_tile_grid: Tuple[int, int] = (8, 8)
    adaptive_sensitivity: float = 0.4
    # local mean is scaled by (adaptive_base_scale + 1 - sensitivity)
    adaptive_base_scale: float = 0.6
    # window is 2*floor(size / divisor) + 1 along each axis
    adaptive_window_divisor: int = 16
    min_area: int = 50
    max_area_fraction: float = 0.15
    min_height_fraction: float = 0.15
    max_height_fraction: float = 0.85
    min_width: int = 5
    max_width_fraction: float = 0.25


class RepairConfig(StageConfig):
    max_fragments: int = 15
    min_fragment_area: int = 15
    min_components: int = 4
    max_opened_components: int = 12


class ExtractionConfig(StageConfig):
    min_area: int = 30
    min_area_fraction: float = 0.002
    max_area_fraction: float = 0.2
    min_height_fraction: float = 0.1
    max_height_fraction: float = 0.9
    min_width: int = 3
    max_width_fraction: float = 0.3
    min_aspect_ratio: float = 0.1
    max_aspect_ratio: float = 3.0
    min_extent: float = 0.15
    min_solidity: float = 0.2
    padding: int = 2
    # (rows, cols)
    glyph_size: Tuple[int, int] = (64, 48)


class TemplateConfig(StageConfig):
    size: Tuple[int, int] = (32, 24)
    sparse_density: float = 0.2
    narrow_aspect: float = 0.4
    hollow_mid_density: float = 0.1
    heavy_ratio: float = 2.0
    bar_peaks: int = 3


class FeatureConfig(StageConfig):
    size: Tuple[int, int] = (48, 32)
    narrow_aspect: float = 0.3
    multi_part_solidity: float = 0.7
    round_eccentricity: float = 0.5
    hollow_solidity: float = 0.8
    elongated_eccentricity: float = 0.8
    solid_solidity: float = 0.9
    square_aspect: float = 0.8


class OCRConfig(StageConfig):
    backend: str = "tesseract"
    timeout_sec: float = 2.0
    languages: Tuple[str, ...] = ("en",)
    padding: int = 16
    upscale: int = 4
    tesseract_config: str = "--oem 3 --psm 10"


class PipelineConfig(BaseSettings):
    """
    All tuning constants, grouped by stage. Values come from keyword
    arguments, then PLATE_RECOGNITION_* environment variables (nested with
    '__', e.g. PLATE_RECOGNITION_OCR__BACKEND=none), then the defaults.
    """
    model_config = SettingsConfigDict(
        env_prefix="PLATE_RECOGNITION_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    binarization: BinarizationConfig = Field(default_factory=BinarizationConfig)
    repair: RepairConfig = Field(default_factory=RepairConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    template: TemplateConfig = Field(default_factory=TemplateConfig)
    feature: FeatureConfig = Field(default_factory=FeatureConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    max_workers: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build a config from nested dicts, overriding only the keys given"""
        return cls(**data)


def load_config(path: str) -> PipelineConfig:
    with open(path, "r", encoding="utf-8") as fh:
        data = TypeAdapter(Dict[str, Any]).validate_json(fh.read())
    return PipelineConfig.from_dict(data)
