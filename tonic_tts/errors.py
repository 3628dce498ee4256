from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Sequence


class Stage(str, Enum):
    """The four inference stages run for every chunk, in execution order."""

    DURATION_PREDICTOR = "duration_predictor"
    TEXT_ENCODER = "text_encoder"
    VECTOR_ESTIMATOR = "vector_estimator"
    VOCODER = "vocoder"


class TonicError(Exception):
    """Base class for every failure raised by the synthesis core."""


class InvalidLanguage(TonicError, ValueError):
    def __init__(self, language: str, supported: Sequence[str]) -> None:
        self.language = language
        self.supported = tuple(supported)
        super().__init__(
            f"Invalid language: {language!r}. Available: {', '.join(self.supported)}"
        )


class InvalidParameter(TonicError, ValueError):
    def __init__(self, name: str, value: Any, reason: str) -> None:
        self.name = name
        self.value = value
        super().__init__(f"Invalid {name}={value!r}: {reason}")


class ResourceLoadError(TonicError, RuntimeError):
    """A startup resource could not be read or parsed."""

    kind = "resource"

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load {self.kind} from {source}: {reason}")


class IndexLoadError(ResourceLoadError):
    kind = "unicode index"


class StyleLoadError(ResourceLoadError):
    kind = "voice style"


class ConfigLoadError(ResourceLoadError):
    kind = "config"


class ModelLoadError(ResourceLoadError):
    kind = "model"


class InferenceFailure(TonicError, RuntimeError):
    """A stage failed to execute; no audio is produced for the request."""

    def __init__(self, stage: Stage, cause: Optional[BaseException] = None, detail: str = "") -> None:
        self.stage = stage
        self.cause = cause
        message = detail or (f"{type(cause).__name__}: {cause}" if cause else "unknown error")
        super().__init__(f"Stage {stage.value} failed: {message}")


class EngineNotReady(TonicError, RuntimeError):
    def __init__(self, reason: str = "engine not loaded") -> None:
        super().__init__(f"TTS engine not ready: {reason}")
