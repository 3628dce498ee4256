from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import soundfile as sf
from loguru import logger
from pydub import AudioSegment

PCM16_SCALE = 32767.0


def samples_for(seconds: float, sample_rate: int) -> int:
    return int(round(seconds * sample_rate))


def trim_to_duration(wav: np.ndarray, duration: float, sample_rate: int) -> np.ndarray:
    """Cut ``wav`` to ``round(sample_rate * duration)`` samples, never past its end.

    A non-positive duration gives an empty array.
    """

    wav = np.asarray(wav, dtype=np.float32).reshape(-1)
    return wav[: max(0, min(samples_for(duration, sample_rate), wav.shape[0]))]


def assemble(
    waveforms: Sequence[np.ndarray],
    durations: Sequence[float],
    sample_rate: int,
    silence_seconds: float,
) -> Tuple[np.ndarray, float]:
    """Trim each chunk to its duration and join them with silence in between.

    Returns:
        ``(waveform, total_duration)`` where the duration is the sum of chunk
        durations plus ``(len(waveforms) - 1) * silence_seconds``.
    """

    if len(waveforms) != len(durations):
        raise ValueError(
            f"Got {len(waveforms)} waveforms but {len(durations)} durations."
        )
    silence = np.zeros(samples_for(silence_seconds, sample_rate), dtype=np.float32)

    pieces: List[np.ndarray] = []
    total = 0.0
    for i, (wav, duration) in enumerate(zip(waveforms, durations)):
        if i > 0:
            pieces.append(silence)
            total += silence_seconds
        pieces.append(trim_to_duration(wav, duration, sample_rate))
        total += float(duration)

    if not pieces:
        return np.zeros(0, dtype=np.float32), 0.0
    return np.concatenate(pieces), total


# ---------- Encoding ----------


def to_pcm16(wav: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and scale to signed 16-bit integers."""

    clipped = np.clip(np.asarray(wav, dtype=np.float32), -1.0, 1.0)
    return (clipped * PCM16_SCALE).astype(np.int16)


def encode_wav(wav: np.ndarray, sample_rate: int) -> bytes:
    """Mono 16-bit PCM WAV payload held in memory."""

    buf = BytesIO()
    sf.write(buf, to_pcm16(wav), sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


def write_wav(path: Path | str, wav: np.ndarray, sample_rate: int) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(path), to_pcm16(wav), sample_rate, format="WAV", subtype="PCM_16")
    logger.debug(
        "audio.saved path={path} seconds={seconds:.2f}",
        path=path,
        seconds=len(wav) / sample_rate,
    )
    return path


def export_audio(
    path: Path | str, wav: np.ndarray, sample_rate: int, fmt: Optional[str] = None
) -> Path:
    """Write ``wav`` to ``path``; non-WAV formats go through pydub (ffmpeg)."""

    path = Path(path)
    fmt = (fmt or path.suffix.lstrip(".") or "wav").lower()
    if fmt == "wav":
        return write_wav(path, wav, sample_rate)

    path.parent.mkdir(parents=True, exist_ok=True)
    buf = BytesIO(encode_wav(wav, sample_rate))
    segment = AudioSegment.from_file(buf, format="wav")
    segment.export(path, format=fmt)
    buf.close()
    logger.debug("audio.exported path={path} format={fmt}", path=path, fmt=fmt)
    return path
