"""Round trip through the real ONNX graphs; skipped unless the model files are present."""

import numpy as np
import pytest

from tonic_tts.catalog import check_models
from tonic_tts.config import EngineSettings
from tonic_tts.engine import load_text_to_speech
from tonic_tts.style import load_voice_style

settings = EngineSettings.from_env()
pytestmark = pytest.mark.skipif(
    not check_models(settings.models_dir).downloaded,
    reason=f"model files not found under {settings.models_dir}",
)


def test_real_models_synthesize_short_text() -> None:
    engine = load_text_to_speech(settings.onnx_dir, settings=settings, seed=0)
    style = load_voice_style(settings.voice_styles_dir / "M1.json")

    wav, duration = engine.synthesize("Hello world.", "en", style, total_steps=2, speed=1.05, silence_seconds=0.3)

    assert duration > 0
    assert wav.dtype == np.float32
    assert wav.shape[0] == pytest.approx(duration * engine.sample_rate, abs=2)
    assert np.isfinite(wav).all()
