from __future__ import annotations

import json
from typing import List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from tonic_tts.errors import IndexLoadError
from tonic_tts.normalize import normalize
from tonic_tts.sources import SourceLike, as_source

UNKNOWN_ID = -1
PAD_ID = 0


def length_to_mask(lengths: Sequence[int], max_len: Optional[int] = None) -> np.ndarray:
    """Return a ``(batch, 1, max_len)`` float32 mask with ones on the first ``length`` positions."""

    lengths_arr = np.asarray(lengths, dtype=np.int64).reshape(-1)
    if max_len is None:
        max_len = int(lengths_arr.max()) if lengths_arr.size else 0
    positions = np.arange(max_len, dtype=np.int64)
    mask = positions[None, :] < lengths_arr[:, None]
    return mask[:, None, :].astype(np.float32)


class UnicodeIndexer:
    """Maps normalized text to model token ids, one id per code point."""

    def __init__(self, table: Sequence[int]) -> None:
        self.table = np.asarray(table, dtype=np.int64)
        self.table.setflags(write=False)

    def __len__(self) -> int:
        return int(self.table.shape[0])

    @classmethod
    def load(cls, source: SourceLike) -> "UnicodeIndexer":
        """Read the JSON array of ids indexed by code point.

        Raises:
            IndexLoadError: If the payload is unreadable or not a flat integer array.
        """
        src = as_source(source)
        try:
            payload = json.loads(src.read_bytes())
        except (OSError, ValueError) as exc:
            raise IndexLoadError(src.describe(), str(exc)) from exc
        if not isinstance(payload, list) or not all(
            isinstance(value, int) and not isinstance(value, bool) for value in payload
        ):
            raise IndexLoadError(src.describe(), "expected a JSON array of integers")
        logger.debug("vocab.loaded source={source} size={size}", source=src.describe(), size=len(payload))
        return cls(payload)

    def ids_for(self, text: str) -> np.ndarray:
        """Look up every code point of ``text``; out-of-table code points become ``UNKNOWN_ID``."""
        codepoints = np.fromiter((ord(ch) for ch in text), dtype=np.int64, count=len(text))
        ids = np.full(codepoints.shape, UNKNOWN_ID, dtype=np.int64)
        known = codepoints < len(self)
        ids[known] = self.table[codepoints[known]]
        return ids

    def encode(
        self, texts: Sequence[str], languages: Sequence[str]
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Normalize and index a batch of texts.

        Returns:
            ``(text_ids, text_mask)``: int64 ids of shape ``(batch, max_len)``
            right-padded with ``PAD_ID``, and the float32 mask of shape
            ``(batch, 1, max_len)``.

        Raises:
            InvalidLanguage: If any language is unsupported; nothing is encoded.
            ValueError: If ``texts`` and ``languages`` differ in length.
        """
        if len(texts) != len(languages):
            raise ValueError(
                f"Got {len(texts)} texts but {len(languages)} languages; counts must match."
            )
        processed: List[str] = [normalize(text, lang) for text, lang in zip(texts, languages)]
        lengths = [len(text) for text in processed]
        max_len = max(lengths, default=0)

        text_ids = np.full((len(processed), max_len), PAD_ID, dtype=np.int64)
        for row, text in enumerate(processed):
            text_ids[row, : len(text)] = self.ids_for(text)
        return text_ids, length_to_mask(lengths, max_len)
