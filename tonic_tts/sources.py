from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict


class ByteSource(ABC):
    """Where a startup resource comes from: a file on disk or an in-memory buffer."""

    @abstractmethod
    def read_bytes(self) -> bytes:
        """Return the full payload; raises ``OSError`` when it cannot be read."""

    @abstractmethod
    def describe(self) -> str:
        """Human-readable origin used in log lines and load errors."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()})"


class PathSource(ByteSource):
    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def exists(self) -> bool:
        return self.path.is_file()

    def describe(self) -> str:
        return str(self.path)


class BufferSource(ByteSource):
    def __init__(self, data: bytes, name: str = "<buffer>") -> None:
        self.data = bytes(data)
        self.name = name

    def read_bytes(self) -> bytes:
        return self.data

    def describe(self) -> str:
        return f"{self.name} ({len(self.data)} bytes)"


SourceLike = Union[ByteSource, str, os.PathLike, bytes, bytearray, memoryview]


def as_source(obj: SourceLike, name: Optional[str] = None) -> ByteSource:
    """Coerce paths and raw buffers into a :class:`ByteSource`."""

    if isinstance(obj, ByteSource):
        return obj
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return BufferSource(bytes(obj), name or "<buffer>")
    if isinstance(obj, (str, os.PathLike)):
        return PathSource(obj)
    raise TypeError(f"Cannot use {type(obj).__name__} as a byte source")


# ---------- Model bundle ----------

CONFIG_FILE = "tts.json"
UNICODE_INDEXER_FILE = "unicode_indexer.json"
DURATION_PREDICTOR_FILE = "duration_predictor.onnx"
TEXT_ENCODER_FILE = "text_encoder.onnx"
VECTOR_ESTIMATOR_FILE = "vector_estimator.onnx"
VOCODER_FILE = "vocoder.onnx"


class ModelBundle(BaseModel):
    """The six resources an engine is built from."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    config: ByteSource
    unicode_indexer: ByteSource
    duration_predictor: ByteSource
    text_encoder: ByteSource
    vector_estimator: ByteSource
    vocoder: ByteSource

    @classmethod
    def from_dir(cls, onnx_dir: Union[str, os.PathLike]) -> "ModelBundle":
        """Point every resource at its standard file name under ``onnx_dir``."""
        root = Path(onnx_dir)
        return cls(
            config=PathSource(root / CONFIG_FILE),
            unicode_indexer=PathSource(root / UNICODE_INDEXER_FILE),
            duration_predictor=PathSource(root / DURATION_PREDICTOR_FILE),
            text_encoder=PathSource(root / TEXT_ENCODER_FILE),
            vector_estimator=PathSource(root / VECTOR_ESTIMATOR_FILE),
            vocoder=PathSource(root / VOCODER_FILE),
        )

    @classmethod
    def from_bytes(
        cls,
        *,
        config: bytes,
        unicode_indexer: bytes,
        duration_predictor: bytes,
        text_encoder: bytes,
        vector_estimator: bytes,
        vocoder: bytes,
    ) -> "ModelBundle":
        return cls(
            config=BufferSource(config, CONFIG_FILE),
            unicode_indexer=BufferSource(unicode_indexer, UNICODE_INDEXER_FILE),
            duration_predictor=BufferSource(duration_predictor, DURATION_PREDICTOR_FILE),
            text_encoder=BufferSource(text_encoder, TEXT_ENCODER_FILE),
            vector_estimator=BufferSource(vector_estimator, VECTOR_ESTIMATOR_FILE),
            vocoder=BufferSource(vocoder, VOCODER_FILE),
        )

    def stage_sources(self) -> Dict[str, ByteSource]:
        return {
            "duration_predictor": self.duration_predictor,
            "text_encoder": self.text_encoder,
            "vector_estimator": self.vector_estimator,
            "vocoder": self.vocoder,
        }
