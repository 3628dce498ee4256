from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tonic_tts.errors import ConfigLoadError
from tonic_tts.sources import SourceLike, as_source

MODELS_DIR = Path(os.environ.get("TONIC_MODELS_DIR", "assets"))

DEFAULT_TOTAL_STEPS = 5
DEFAULT_SPEED = 1.05
DEFAULT_SILENCE_SECONDS = 0.3

# ---------- Model configuration (tts.json) ----------


class AEConfig(BaseModel):
    """Autoencoder block: output audio rate and latent frame size."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    sample_rate: int = Field(gt=0, description="Waveform samples per second.")
    base_chunk_size: int = Field(gt=0, description="Waveform samples per latent frame before compression.")


class TTLConfig(BaseModel):
    """Text-to-latent block: how latent frames are stacked into channels."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    chunk_compress_factor: int = Field(gt=0)
    latent_dim: int = Field(gt=0)


class TTSConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    ae: AEConfig
    ttl: TTLConfig

    @property
    def sample_rate(self) -> int:
        return self.ae.sample_rate

    @property
    def chunk_size(self) -> int:
        """Waveform samples covered by one compressed latent frame."""
        return self.ae.base_chunk_size * self.ttl.chunk_compress_factor

    @property
    def latent_channels(self) -> int:
        return self.ttl.latent_dim * self.ttl.chunk_compress_factor


def load_config(source: SourceLike) -> TTSConfig:
    """Parse ``tts.json`` from a path or buffer.

    Raises:
        ConfigLoadError: If the payload is missing, not JSON, or lacks a required field.
    """

    src = as_source(source)
    try:
        cfg = TTSConfig.model_validate_json(src.read_bytes())
    except (OSError, ValidationError) as exc:
        raise ConfigLoadError(src.describe(), str(exc)) from exc
    logger.debug(
        "config.loaded source={source} sample_rate={sr} chunk_size={chunk} channels={channels}",
        source=src.describe(),
        sr=cfg.sample_rate,
        chunk=cfg.chunk_size,
        channels=cfg.latent_channels,
    )
    return cfg


# ---------- Runtime settings ----------

_GPU_PROVIDERS = (
    "CUDAExecutionProvider",
    "CoreMLExecutionProvider",
    "DmlExecutionProvider",
)


class EngineSettings(BaseModel):
    """Runtime knobs for building ONNX sessions and default synthesis parameters."""

    model_config = ConfigDict(extra="forbid")

    models_dir: Path = Field(default_factory=lambda: MODELS_DIR)
    use_gpu: bool = False
    providers: Optional[List[str]] = Field(
        default=None, description="Explicit provider list; overrides `use_gpu` when set."
    )
    intra_op_threads: Optional[int] = Field(default=None, ge=1)
    inter_op_threads: Optional[int] = Field(default=None, ge=1)

    total_steps: int = Field(default=DEFAULT_TOTAL_STEPS, ge=0)
    speed: float = Field(default=DEFAULT_SPEED, gt=0)
    silence_seconds: float = Field(default=DEFAULT_SILENCE_SECONDS, ge=0)

    @property
    def onnx_dir(self) -> Path:
        return self.models_dir / "onnx"

    @property
    def voice_styles_dir(self) -> Path:
        return self.models_dir / "voice_styles"

    @classmethod
    def from_env(cls, **overrides) -> "EngineSettings":
        """Read ``ONNX_PROVIDER``, ``ORT_INTRA`` and ``ORT_INTER`` unless overridden."""
        values = {}
        if provider := os.environ.get("ONNX_PROVIDER"):
            values["providers"] = [provider]
        if intra := os.environ.get("ORT_INTRA"):
            values["intra_op_threads"] = int(intra)
        if inter := os.environ.get("ORT_INTER"):
            values["inter_op_threads"] = int(inter)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def resolve_providers(self, available: List[str]) -> List[str]:
        """Pick execution providers from those the installed runtime offers."""
        if self.providers:
            return list(self.providers)
        if self.use_gpu:
            for provider in _GPU_PROVIDERS:
                if provider in available:
                    return [provider, "CPUExecutionProvider"]
        return ["CPUExecutionProvider"]
