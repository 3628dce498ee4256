import json
from pathlib import Path

import numpy as np
import pytest

from conftest import style_payload
from tonic_tts.errors import StyleLoadError
from tonic_tts.style import VoiceStyle, load_voice_style, load_voice_styles


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload))
    return path


def test_loads_declared_shapes(style: VoiceStyle) -> None:
    assert style.ttl.shape == (1, 2, 4)
    assert style.dp.shape == (1, 2, 3)
    assert style.batch_size == 1
    np.testing.assert_allclose(style.ttl, 0.1)


def test_loads_from_buffer() -> None:
    style = load_voice_style(json.dumps(style_payload(fill=0.7)).encode())
    np.testing.assert_allclose(style.dp, 0.7)


def test_arrays_are_read_only(style: VoiceStyle) -> None:
    with pytest.raises(ValueError):
        style.ttl[0, 0, 0] = 1.0


def test_dims_must_match_data(tmp_path: Path) -> None:
    payload = style_payload()
    payload["style_ttl"]["dims"] = [1, 3, 4]
    with pytest.raises(StyleLoadError):
        load_voice_style(_write(tmp_path / "bad.json", payload))


@pytest.mark.parametrize("raw", [b"{", b"[]", b'{"style_ttl": {}}'])
def test_malformed_json_is_rejected(raw: bytes) -> None:
    with pytest.raises(StyleLoadError):
        load_voice_style(raw)


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(StyleLoadError) as excinfo:
        load_voice_style(tmp_path / "nope.json")
    assert "nope.json" in excinfo.value.source


def test_batch_load_stacks_in_order(models_dir: Path) -> None:
    voices = models_dir / "voice_styles"
    style = load_voice_styles([voices / "M1.json", voices / "F1.json"])
    assert style.ttl.shape == (2, 2, 4)
    assert style.dp.shape == (2, 2, 3)
    np.testing.assert_allclose(style.ttl[0], 0.1)
    np.testing.assert_allclose(style.ttl[1], 0.2)
    assert not style.ttl.flags.writeable


def test_batch_load_rejects_shape_mismatch(models_dir: Path, tmp_path: Path) -> None:
    odd = _write(tmp_path / "odd.json", style_payload(ttl_dims=(1, 3, 4)))
    with pytest.raises(StyleLoadError):
        load_voice_styles([models_dir / "voice_styles" / "M1.json", odd])


def test_batch_load_rejects_multi_voice_file(tmp_path: Path) -> None:
    multi = _write(tmp_path / "multi.json", style_payload(ttl_dims=(2, 2, 4), dp_dims=(2, 2, 3)))
    with pytest.raises(StyleLoadError):
        load_voice_styles([multi])


def test_batch_load_rejects_empty_list() -> None:
    with pytest.raises(StyleLoadError):
        load_voice_styles([])
