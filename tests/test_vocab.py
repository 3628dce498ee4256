from pathlib import Path

import numpy as np
import pytest

from tonic_tts.errors import IndexLoadError, InvalidLanguage
from tonic_tts.vocab import PAD_ID, UNKNOWN_ID, UnicodeIndexer, length_to_mask


def test_length_to_mask_shape_and_values() -> None:
    mask = length_to_mask([2, 0, 3])
    assert mask.shape == (3, 1, 3)
    assert mask.dtype == np.float32
    np.testing.assert_array_equal(mask[:, 0, :], [[1, 1, 0], [0, 0, 0], [1, 1, 1]])


def test_length_to_mask_respects_explicit_width() -> None:
    assert length_to_mask([1], 4).shape == (1, 1, 4)


def test_encode_pads_and_masks(indexer: UnicodeIndexer) -> None:
    text_ids, text_mask = indexer.encode(["Hi", "Hello"], ["en", "en"])

    # "<en>Hi.</en>" and "<en>Hello.</en>"
    assert text_ids.shape == (2, 15)
    assert text_ids.dtype == np.int64
    assert text_mask.shape == (2, 1, 15)
    expected_first = [ord(ch) + 1 for ch in "<en>Hi.</en>"]
    assert text_ids[0, :12].tolist() == expected_first
    assert (text_ids[0, 12:] == PAD_ID).all()
    assert text_mask[0, 0].sum() == 12
    assert text_mask[1, 0].sum() == 15


def test_code_points_outside_table_are_unknown(indexer: UnicodeIndexer) -> None:
    assert indexer.ids_for("a한").tolist() == [ord("a") + 1, UNKNOWN_ID]


def test_encode_rejects_count_mismatch(indexer: UnicodeIndexer) -> None:
    with pytest.raises(ValueError):
        indexer.encode(["one", "two"], ["en"])


def test_encode_rejects_unknown_language(indexer: UnicodeIndexer) -> None:
    with pytest.raises(InvalidLanguage):
        indexer.encode(["Hallo"], ["de"])


def test_table_is_read_only(indexer: UnicodeIndexer) -> None:
    with pytest.raises(ValueError):
        indexer.table[0] = 5


def test_load_from_models_dir(models_dir: Path) -> None:
    indexer = UnicodeIndexer.load(models_dir / "onnx" / "unicode_indexer.json")
    assert len(indexer) == 256


@pytest.mark.parametrize("payload", [b"not json", b'{"a": 1}', b"[1, 2.5]", b"[true]"])
def test_load_rejects_malformed_payload(payload: bytes) -> None:
    with pytest.raises(IndexLoadError):
        UnicodeIndexer.load(payload)


def test_load_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(IndexLoadError) as excinfo:
        UnicodeIndexer.load(tmp_path / "missing.json")
    assert "missing.json" in excinfo.value.source
