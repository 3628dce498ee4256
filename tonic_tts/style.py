from __future__ import annotations

import os
from typing import List, Sequence, Tuple, Union

import numpy as np
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from tonic_tts.errors import StyleLoadError
from tonic_tts.sources import ByteSource, SourceLike, as_source

# ---------- Persisted format ----------


class StyleComponent(BaseModel):
    """One named tensor block of a voice style file."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    data: List[List[List[float]]] = Field(description="Nested (batch, dim1, dim2) values.")
    dims: List[int] = Field(description="Declared shape (batch, dim1, dim2).")
    dtype: str = Field(default="float32", alias="type")

    @model_validator(mode="after")
    def _validate_dims(self) -> "StyleComponent":
        if len(self.dims) != 3:
            raise ValueError(f"dims must have 3 entries, got {self.dims}")
        if any(dim <= 0 for dim in self.dims):
            raise ValueError(f"dims must be positive, got {self.dims}")
        batch, dim1, dim2 = self.dims
        if len(self.data) != batch:
            raise ValueError(f"declared batch {batch} but data holds {len(self.data)}")
        for b, block in enumerate(self.data):
            if len(block) != dim1:
                raise ValueError(f"data[{b}] has {len(block)} rows, dims declare {dim1}")
            for r, row in enumerate(block):
                if len(row) != dim2:
                    raise ValueError(
                        f"data[{b}][{r}] has {len(row)} values, dims declare {dim2}"
                    )
        return self

    @property
    def item_shape(self) -> Tuple[int, int]:
        return self.dims[1], self.dims[2]

    def to_array(self) -> np.ndarray:
        return np.asarray(self.data, dtype=np.float32).reshape(self.dims)


class VoiceStyleFile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    style_ttl: StyleComponent
    style_dp: StyleComponent


# ---------- In-memory style ----------


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.ascontiguousarray(array, dtype=np.float32)
    array.setflags(write=False)
    return array


class VoiceStyle(BaseModel):
    """Speaker conditioning tensors; read-only and safe to share across calls."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ttl: np.ndarray = Field(description="Text-to-latent style tensor (batch, dim1, dim2).")
    dp: np.ndarray = Field(description="Duration-predictor style tensor (batch, dim1, dim2).")

    @model_validator(mode="after")
    def _validate_batch(self) -> "VoiceStyle":
        if self.ttl.ndim != 3 or self.dp.ndim != 3:
            raise ValueError("style tensors must be 3-dimensional")
        if self.ttl.shape[0] != self.dp.shape[0]:
            raise ValueError(
                f"style_ttl batch {self.ttl.shape[0]} != style_dp batch {self.dp.shape[0]}"
            )
        return self

    @classmethod
    def from_arrays(cls, ttl: np.ndarray, dp: np.ndarray) -> "VoiceStyle":
        return cls(ttl=_frozen(ttl), dp=_frozen(dp))

    @property
    def batch_size(self) -> int:
        return int(self.ttl.shape[0])


def _parse(src: ByteSource) -> VoiceStyleFile:
    try:
        return VoiceStyleFile.model_validate_json(src.read_bytes())
    except OSError as exc:
        raise StyleLoadError(src.describe(), f"cannot read: {exc}") from exc
    except ValidationError as exc:
        raise StyleLoadError(src.describe(), str(exc)) from exc


def load_voice_style(source: SourceLike) -> VoiceStyle:
    """Load one voice style from a JSON path or buffer, keeping its declared batch size."""

    src = as_source(source)
    parsed = _parse(src)
    style = VoiceStyle.from_arrays(parsed.style_ttl.to_array(), parsed.style_dp.to_array())
    logger.debug(
        "style.loaded source={source} ttl={ttl} dp={dp}",
        source=src.describe(),
        ttl=style.ttl.shape,
        dp=style.dp.shape,
    )
    return style


def load_voice_styles(sources: Sequence[Union[SourceLike, os.PathLike]]) -> VoiceStyle:
    """Stack single-voice style files into one batch, in the given order.

    Every file must hold exactly one voice and share the first file's per-voice
    shape. Values are written by offset into buffers allocated once up front.

    Raises:
        StyleLoadError: On an empty list, a missing or malformed file, or a shape mismatch.
    """

    srcs = [as_source(source) for source in sources]
    if not srcs:
        raise StyleLoadError("<none>", "no voice style files given")

    first = _parse(srcs[0])
    ttl_shape = first.style_ttl.item_shape
    dp_shape = first.style_dp.item_shape
    ttl = np.empty((len(srcs), *ttl_shape), dtype=np.float32)
    dp = np.empty((len(srcs), *dp_shape), dtype=np.float32)

    for i, src in enumerate(srcs):
        parsed = first if i == 0 else _parse(src)
        for name, component, expected in (
            ("style_ttl", parsed.style_ttl, ttl_shape),
            ("style_dp", parsed.style_dp, dp_shape),
        ):
            if component.dims[0] != 1:
                raise StyleLoadError(
                    src.describe(), f"{name} holds {component.dims[0]} voices; expected 1"
                )
            if component.item_shape != expected:
                raise StyleLoadError(
                    src.describe(),
                    f"{name} shape {component.item_shape} does not match batch shape {expected}",
                )
        ttl[i] = parsed.style_ttl.to_array()[0]
        dp[i] = parsed.style_dp.to_array()[0]

    logger.info("style.batch_loaded count={count}", count=len(srcs))
    return VoiceStyle.from_arrays(ttl, dp)
