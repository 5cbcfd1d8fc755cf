from __future__ import annotations

from dataclasses import dataclass

from warranty_activation.core.config import Settings, settings


@dataclass(frozen=True)
class PipelineConfig:
    """Explicit knobs for the classification pipeline.

    Extractor, classifier and worker take this object instead of reading the
    global settings, so tests can build one inline.
    """

    window_days: int = 21
    ocr_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.window_days < 0:
            raise ValueError("window_days must be >= 0")
        if not self.ocr_timeout_seconds or self.ocr_timeout_seconds <= 0:
            raise ValueError("ocr_timeout_seconds must be a positive number")

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> PipelineConfig:
        source = source or settings
        return cls(
            window_days=int(source.warranty_date_window),
            ocr_timeout_seconds=float(source.ocr_timeout_seconds),
        )
