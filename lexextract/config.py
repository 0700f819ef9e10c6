"""Configuration module for lexextract."""

import os
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from .exceptions import ConfigurationError
from .models import OCROptions, OCRProgressCallback

ENV_PREFIX = "LEXEXTRACT_"
WORKER_MODES = ("process", "thread")


@dataclass
class Config:
    """Configuration class for document extraction."""

    max_pages: int = 100
    pdf_confidence: float = 0.95
    ocr_language: str = "eng"
    ocr_confidence_floor: float = 0.0
    ocr_request_timeout: Optional[float] = None  # None waits forever
    worker_mode: str = "process"  # "process" or "thread"
    tesseract_cmd: Optional[str] = None  # Path to the tesseract binary
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ConfigurationError(f"max_pages must be positive, got {self.max_pages}")
        if not 0.0 <= self.pdf_confidence <= 1.0:
            raise ConfigurationError("pdf_confidence must be within [0, 1]")
        if not 0.0 <= self.ocr_confidence_floor <= 1.0:
            raise ConfigurationError("ocr_confidence_floor must be within [0, 1]")
        if self.ocr_request_timeout is not None and self.ocr_request_timeout <= 0:
            raise ConfigurationError("ocr_request_timeout must be positive")
        if self.worker_mode not in WORKER_MODES:
            raise ConfigurationError(
                f"worker_mode must be one of {', '.join(WORKER_MODES)}, "
                f"got '{self.worker_mode}'"
            )

    def ocr_options(self, on_progress: Optional[OCRProgressCallback] = None) -> OCROptions:
        """Build per-request OCR options from this configuration."""
        return OCROptions(
            language=self.ocr_language,
            confidence_floor=self.ocr_confidence_floor,
            on_progress=on_progress,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Create a configuration from ``LEXEXTRACT_*`` environment variables.

        Raises:
            ConfigurationError: If a variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        def read(name: str, field_name: str, parse: Callable[[str], Any]) -> None:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or not raw.strip():
                return
            try:
                values[field_name] = parse(raw.strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"{ENV_PREFIX}{name} has an invalid value '{raw}': {e}"
                ) from e

        read("MAX_PAGES", "max_pages", int)
        read("OCR_LANGUAGE", "ocr_language", str)
        read("OCR_CONFIDENCE_FLOOR", "ocr_confidence_floor", float)
        read("OCR_TIMEOUT", "ocr_request_timeout", float)
        read("WORKER_MODE", "worker_mode", str.lower)
        read("TESSERACT_CMD", "tesseract_cmd", str)
        read("VERBOSE", "verbose", _parse_bool)

        return cls(**values)

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return asdict(self)


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError("expected a boolean")
