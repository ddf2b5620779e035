"""Runtime settings read from environment variables."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


@dataclass(frozen=True, slots=True)
class EditorSettings:
    debounce_delay: float = 0.5
    max_history_length: int = 20
    processing_url: str | None = None
    request_timeout: float = 60.0
    preview_max_side: int = 1080
    preview_quality: int = 80
    dcraw_bin: str = "dcraw_emu"
    exiftool_bin: str = "exiftool"
    tool_timeout: float = 120.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EditorSettings":
        return cls(
            debounce_delay=_env_float("QUIKLENS_DEBOUNCE_MS", 500.0) / 1000.0,
            max_history_length=max(1, _env_int("QUIKLENS_MAX_HISTORY", 20)),
            processing_url=os.getenv("QUIKLENS_PROCESSING_URL") or None,
            request_timeout=_env_float("QUIKLENS_REQUEST_TIMEOUT", 60.0),
            preview_max_side=_env_int("QUIKLENS_PREVIEW_MAX_SIDE", 1080),
            preview_quality=_env_int("QUIKLENS_PREVIEW_QUALITY", 80),
            dcraw_bin=os.getenv("QUIKLENS_DCRAW_BIN", "dcraw_emu"),
            exiftool_bin=os.getenv("QUIKLENS_EXIFTOOL_BIN", "exiftool"),
            tool_timeout=_env_float("QUIKLENS_TOOL_TIMEOUT", 120.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> EditorSettings:
    return EditorSettings.from_env()


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once; later calls only adjust the level."""
    level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("quiklens").setLevel(getattr(logging, level, logging.INFO))
