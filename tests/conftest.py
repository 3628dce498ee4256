import json
from pathlib import Path
from typing import Any, Dict, List, Mapping

import numpy as np
import pytest

from tonic_tts.config import TTSConfig
from tonic_tts.engine import TextToSpeech
from tonic_tts.errors import Stage
from tonic_tts.style import VoiceStyle, load_voice_style
from tonic_tts.vocab import UnicodeIndexer

SAMPLE_RATE = 100
BASE_CHUNK_SIZE = 2
COMPRESS = 2
LATENT_DIM = 3

CONFIG_PAYLOAD: Dict[str, Any] = {
    "ae": {"sample_rate": SAMPLE_RATE, "base_chunk_size": BASE_CHUNK_SIZE, "encoder": {}},
    "ttl": {"chunk_compress_factor": COMPRESS, "latent_dim": LATENT_DIM},
    "version": "test",
}

# Covers ASCII only; anything above U+00FF is out of the table.
INDEX_TABLE: List[int] = [cp + 1 for cp in range(256)]


def style_payload(ttl_dims=(1, 2, 4), dp_dims=(1, 2, 3), fill: float = 0.1) -> Dict[str, Any]:
    def block(dims):
        batch, rows, cols = dims
        return {
            "data": [[[fill] * cols for _ in range(rows)] for _ in range(batch)],
            "dims": list(dims),
            "type": "float32",
        }

    return {"style_ttl": block(ttl_dims), "style_dp": block(dp_dims)}


@pytest.fixture()
def models_dir(tmp_path: Path) -> Path:
    """A models directory with config, index and voice styles but no ONNX graphs."""
    root = tmp_path / "assets"
    onnx_dir = root / "onnx"
    voices_dir = root / "voice_styles"
    onnx_dir.mkdir(parents=True)
    voices_dir.mkdir(parents=True)
    (onnx_dir / "tts.json").write_text(json.dumps(CONFIG_PAYLOAD))
    (onnx_dir / "unicode_indexer.json").write_text(json.dumps(INDEX_TABLE))
    for idx, name in enumerate(("M1", "F1"), start=1):
        (voices_dir / f"{name}.json").write_text(json.dumps(style_payload(fill=0.1 * idx)))
    return root


@pytest.fixture()
def cfg() -> TTSConfig:
    return TTSConfig.model_validate(CONFIG_PAYLOAD)


@pytest.fixture()
def indexer() -> UnicodeIndexer:
    return UnicodeIndexer(INDEX_TABLE)


@pytest.fixture()
def style(models_dir: Path) -> VoiceStyle:
    return load_voice_style(models_dir / "voice_styles" / "M1.json")


class FakeStage:
    """Deterministic stand-in for an ONNX session that records every feed."""

    def __init__(self, stage: Stage, seconds: float = 0.5, fail: bool = False) -> None:
        self.stage = stage
        self.seconds = seconds
        self.fail = fail
        self.calls: List[Dict[str, np.ndarray]] = []

    def run(self, feed: Mapping[str, np.ndarray]) -> List[np.ndarray]:
        self.calls.append({name: np.array(value) for name, value in feed.items()})
        if self.fail:
            raise RuntimeError(f"{self.stage.value} exploded")
        if self.stage is Stage.DURATION_PREDICTOR:
            batch = feed["text_ids"].shape[0]
            return [np.full(batch, self.seconds, dtype=np.float32)]
        if self.stage is Stage.TEXT_ENCODER:
            batch, length = feed["text_ids"].shape
            return [np.ones((batch, 4, length), dtype=np.float32)]
        if self.stage is Stage.VECTOR_ESTIMATOR:
            return [feed["noisy_latent"] + 1.0]
        latent = feed["latent"]
        frames = latent.shape[-1]
        return [np.full((latent.shape[0], frames * BASE_CHUNK_SIZE * COMPRESS), 0.5, dtype=np.float32)]


@pytest.fixture()
def fake_stages() -> Dict[Stage, FakeStage]:
    return {stage: FakeStage(stage) for stage in Stage}


@pytest.fixture()
def engine(cfg: TTSConfig, indexer: UnicodeIndexer, fake_stages: Dict[Stage, FakeStage]) -> TextToSpeech:
    return TextToSpeech(cfg, indexer, fake_stages, seed=1234)
