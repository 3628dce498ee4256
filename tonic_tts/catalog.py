from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from tonic_tts.sources import (
    CONFIG_FILE,
    DURATION_PREDICTOR_FILE,
    TEXT_ENCODER_FILE,
    UNICODE_INDEXER_FILE,
    VECTOR_ESTIMATOR_FILE,
    VOCODER_FILE,
)

MODEL_FILES: Tuple[str, ...] = tuple(
    f"onnx/{name}"
    for name in (
        CONFIG_FILE,
        UNICODE_INDEXER_FILE,
        DURATION_PREDICTOR_FILE,
        TEXT_ENCODER_FILE,
        VECTOR_ESTIMATOR_FILE,
        VOCODER_FILE,
    )
)

VOICE_STYLES: Tuple[str, ...] = ("M1", "M2", "M3", "M4", "M5", "F1", "F2", "F3", "F4", "F5")


def voice_label(name: str) -> str:
    """``"M3"`` → ``"M3 - Male Voice 3"``."""
    gender = {"M": "Male", "F": "Female"}.get(name[:1], "Custom")
    return f"{name} - {gender} Voice {name[1:]}"


def voice_style_file(name: str) -> str:
    return f"voice_styles/{name}.json"


def download_manifest() -> List[str]:
    """Relative paths of every file a models directory must contain."""
    return [*MODEL_FILES, *(voice_style_file(voice) for voice in VOICE_STYLES)]


class ModelStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    downloaded: bool
    models_dir: str
    missing_files: List[str] = Field(default_factory=list)
    total_files: int
    downloaded_files: int


def check_models(models_dir: Path | str) -> ModelStatus:
    """Report which required files are present under ``models_dir``."""
    root = Path(models_dir)
    expected = download_manifest()
    missing = [rel for rel in expected if not (root / rel).is_file()]
    return ModelStatus(
        downloaded=not missing,
        models_dir=str(root),
        missing_files=missing,
        total_files=len(expected),
        downloaded_files=len(expected) - len(missing),
    )
