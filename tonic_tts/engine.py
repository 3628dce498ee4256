"""
Synthesis engine: text → chunks → four ONNX stages per chunk → one waveform.

Per chunk the stages run strictly in sequence:

duration predictor → text encoder → vector estimator (``total_steps`` times) → vocoder

The engine is an explicit context object built once at startup by
:func:`load_text_to_speech`. It owns the stage executors, so a whole
``synthesize`` call holds the engine lock; voice styles are read-only and may
be shared freely between callers.
"""

from __future__ import annotations

import os
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from loguru import logger
from pydantic import BaseModel, ConfigDict

from tonic_tts.audio import assemble, trim_to_duration
from tonic_tts.chunking import chunk_text, max_chunk_length
from tonic_tts.config import EngineSettings, TTSConfig, load_config
from tonic_tts.errors import InferenceFailure, InvalidLanguage, InvalidParameter, Stage
from tonic_tts.normalize import AVAILABLE_LANGS, is_valid_lang
from tonic_tts.sources import ByteSource, ModelBundle
from tonic_tts.stages import OnnxStage, StageExecutor
from tonic_tts.style import VoiceStyle
from tonic_tts.utils import timed
from tonic_tts.vocab import UnicodeIndexer, length_to_mask

StageFactory = Callable[[Stage, ByteSource, EngineSettings], StageExecutor]


class SynthesisResult(BaseModel):
    """Audio for one chunk, already trimmed to its predicted duration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    waveform: np.ndarray
    duration: float


class SentenceAudio(BaseModel):
    """One queued sentence rendered on its own, tagged with its queue position."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    sentence_index: int
    waveform: np.ndarray
    duration: float
    sample_rate: int


def sample_noisy_latent(
    durations: np.ndarray,
    cfg: TTSConfig,
    rng: np.random.Generator,
) -> Tuple[np.ndarray, np.ndarray]:
    """Draw the initial latent and its frame mask from per-item durations (seconds).

    Returns:
        ``(latent, latent_mask)`` shaped ``(batch, latent_channels, frames)`` and
        ``(batch, 1, frames)``; frames past an item's own length are zeroed.
    """

    durations = np.asarray(durations, dtype=np.float32).reshape(-1)
    wav_lengths = (durations * cfg.sample_rate).astype(np.int64)
    wav_len_max = int(wav_lengths.max()) if wav_lengths.size else 0
    chunk_size = cfg.chunk_size

    latent_len = -(-wav_len_max // chunk_size)
    latent_lengths = -(-wav_lengths // chunk_size)

    latent = rng.standard_normal(
        (durations.shape[0], cfg.latent_channels, latent_len), dtype=np.float32
    )
    latent_mask = length_to_mask(latent_lengths, latent_len)
    return latent * latent_mask, latent_mask


def _check_params(total_steps: int, speed: float, silence_seconds: float = 0.0) -> None:
    if isinstance(total_steps, bool) or not isinstance(total_steps, (int, np.integer)):
        raise InvalidParameter("total_steps", total_steps, "must be an integer")
    if total_steps < 0:
        raise InvalidParameter("total_steps", total_steps, "must be >= 0")
    if not speed > 0:
        raise InvalidParameter("speed", speed, "must be > 0")
    if not silence_seconds >= 0:
        raise InvalidParameter("silence_seconds", silence_seconds, "must be >= 0")


class TextToSpeech:
    """Runs the four-stage pipeline over chunked text."""

    def __init__(
        self,
        cfg: TTSConfig,
        indexer: UnicodeIndexer,
        stages: Dict[Stage, StageExecutor],
        seed: Optional[int] = None,
    ) -> None:
        missing = [stage.value for stage in Stage if stage not in stages]
        if missing:
            raise ValueError(f"Missing stage executors: {', '.join(missing)}")
        self.cfg = cfg
        self.indexer = indexer
        self.stages = dict(stages)
        self.rng = np.random.default_rng(seed)
        self._lock = threading.Lock()

    @property
    def sample_rate(self) -> int:
        return self.cfg.sample_rate

    # —————————————————— Stage helpers ——————————————————

    def _run(self, stage: Stage, feed: Dict[str, np.ndarray]) -> np.ndarray:
        """Execute one stage and return its first output."""
        try:
            with timed(f"engine.{stage.value}"):
                outputs = self.stages[stage].run(feed)
        except InferenceFailure:
            raise
        except Exception as exc:  # executors surface opaque runtime errors
            logger.error("engine.stage_failed stage={stage} error={error}", stage=stage.value, error=exc)
            raise InferenceFailure(stage, exc) from exc
        if not outputs:
            raise InferenceFailure(stage, detail="stage returned no outputs")
        return np.asarray(outputs[0])

    @staticmethod
    def _broadcast_style(style: VoiceStyle, batch: int) -> Tuple[np.ndarray, np.ndarray]:
        if style.batch_size == batch:
            return style.ttl, style.dp
        if style.batch_size == 1:
            return (
                np.repeat(style.ttl, batch, axis=0),
                np.repeat(style.dp, batch, axis=0),
            )
        raise InvalidParameter(
            "style",
            style.batch_size,
            f"style batch must be 1 or match the {batch} texts",
        )

    def _infer(
        self,
        texts: Sequence[str],
        languages: Sequence[str],
        style: VoiceStyle,
        total_steps: int,
        speed: float,
        rng: np.random.Generator,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """One batched pass through all four stages.

        Returns:
            ``(wav, durations)``: untrimmed waveforms ``(batch, samples)`` and
            speed-adjusted durations in seconds ``(batch,)``.
        """
        batch = len(texts)
        text_ids, text_mask = self.indexer.encode(texts, languages)
        style_ttl, style_dp = self._broadcast_style(style, batch)

        raw = self._run(
            Stage.DURATION_PREDICTOR,
            {"text_ids": text_ids, "style_dp": style_dp, "text_mask": text_mask},
        )
        durations = raw.astype(np.float32).reshape(-1)
        if durations.shape[0] != batch:
            raise InferenceFailure(
                Stage.DURATION_PREDICTOR,
                detail=f"expected {batch} durations, got shape {raw.shape}",
            )
        durations = durations / np.float32(speed)

        text_emb = self._run(
            Stage.TEXT_ENCODER,
            {"text_ids": text_ids, "style_ttl": style_ttl, "text_mask": text_mask},
        )

        latent, latent_mask = sample_noisy_latent(durations, self.cfg, rng)
        total_step = np.full(batch, total_steps, dtype=np.float32)
        for step in range(total_steps):
            latent = self._run(
                Stage.VECTOR_ESTIMATOR,
                {
                    "noisy_latent": latent,
                    "text_emb": text_emb,
                    "style_ttl": style_ttl,
                    "latent_mask": latent_mask,
                    "text_mask": text_mask,
                    "current_step": np.full(batch, step, dtype=np.float32),
                    "total_step": total_step,
                },
            )

        wav = self._run(Stage.VOCODER, {"latent": latent})
        return wav.astype(np.float32).reshape(batch, -1), durations

    # —————————————————— Public calls ——————————————————

    def synthesize(
        self,
        text: str,
        language: str,
        style: VoiceStyle,
        total_steps: int,
        speed: float,
        silence_seconds: float,
        rng: Optional[np.random.Generator] = None,
    ) -> Tuple[np.ndarray, float]:
        """Render ``text`` as one waveform.

        The text is chunked by language-specific length, each chunk runs through
        the pipeline in order, and chunks are joined with ``silence_seconds`` of
        silence between them.

        Returns:
            ``(waveform, total_duration)``; empty text gives an empty waveform and 0.0.

        Raises:
            InvalidLanguage: Unsupported ``language``; raised before any stage runs.
            InvalidParameter: Bad ``speed``, ``total_steps``, ``silence_seconds`` or style batch.
            InferenceFailure: A stage failed; carries the stage that failed.
        """
        _check_params(total_steps, speed, silence_seconds)
        if not is_valid_lang(language):
            raise InvalidLanguage(language, AVAILABLE_LANGS)
        if style.batch_size != 1:
            raise InvalidParameter("style", style.batch_size, "synthesize takes a single voice")

        chunks = [chunk for chunk in chunk_text(text, max_chunk_length(language)) if chunk]
        if not chunks:
            logger.info("synthesize.empty_text lang={lang}", lang=language)
            return np.zeros(0, dtype=np.float32), 0.0

        logger.info(
            "synthesize.start chars={chars} chunks={count} lang={lang} steps={steps} speed={speed}",
            chars=len(text),
            count=len(chunks),
            lang=language,
            steps=total_steps,
            speed=speed,
        )
        results: List[SynthesisResult] = []
        with self._lock:
            rng = rng if rng is not None else self.rng
            for idx, chunk in enumerate(chunks, start=1):
                logger.debug("Chunk {} / {}: size={}", idx, len(chunks), len(chunk))
                wav, durations = self._infer([chunk], [language], style, total_steps, speed, rng)
                duration = float(durations[0])
                results.append(
                    SynthesisResult(
                        waveform=trim_to_duration(wav[0], duration, self.sample_rate),
                        duration=duration,
                    )
                )

        waveform, total = assemble(
            [result.waveform for result in results],
            [result.duration for result in results],
            self.sample_rate,
            silence_seconds,
        )
        logger.info(
            "synthesize.done seconds={seconds:.2f} samples={samples}",
            seconds=total,
            samples=waveform.shape[0],
        )
        return waveform, total

    def synthesize_sentence(
        self,
        text: str,
        sentence_index: int,
        language: str,
        style: VoiceStyle,
        total_steps: int,
        speed: float,
    ) -> SentenceAudio:
        """Render one queued sentence with no inter-chunk silence."""
        waveform, duration = self.synthesize(
            text, language, style, total_steps, speed, silence_seconds=0.0
        )
        return SentenceAudio(
            sentence_index=sentence_index,
            waveform=waveform,
            duration=duration,
            sample_rate=self.sample_rate,
        )

    def batch(
        self,
        texts: Sequence[str],
        languages: Sequence[str],
        style: VoiceStyle,
        total_steps: int,
        speed: float,
        rng: Optional[np.random.Generator] = None,
    ) -> Tuple[List[np.ndarray], List[float]]:
        """Render several short texts in one batched pass, without chunking or silence.

        Returns:
            Per-item waveforms trimmed to their own durations, and those durations.
        """
        _check_params(total_steps, speed)
        if not texts:
            return [], []
        if len(texts) != len(languages):
            raise InvalidParameter(
                "languages", len(languages), f"expected one language per text ({len(texts)})"
            )
        for language in languages:
            if not is_valid_lang(language):
                raise InvalidLanguage(language, AVAILABLE_LANGS)

        logger.info("batch.start items={count} steps={steps}", count=len(texts), steps=total_steps)
        with self._lock:
            wav, durations = self._infer(
                list(texts), list(languages), style, total_steps, speed,
                rng if rng is not None else self.rng,
            )
        waveforms = [
            trim_to_duration(row, float(duration), self.sample_rate)
            for row, duration in zip(wav, durations)
        ]
        return waveforms, [float(d) for d in durations]


def load_text_to_speech(
    models: Union[ModelBundle, str, os.PathLike],
    settings: Optional[EngineSettings] = None,
    stage_factory: Optional[StageFactory] = None,
    seed: Optional[int] = None,
) -> TextToSpeech:
    """Build the engine once, before serving any synthesis request.

    Args:
        models: A :class:`ModelBundle`, or the ONNX directory holding the standard files.
        settings: Session options and providers; defaults to :meth:`EngineSettings.from_env`.
        stage_factory: Builds one executor per stage; defaults to :meth:`OnnxStage.load`.
        seed: Seed for the latent noise generator.

    Raises:
        ConfigLoadError, IndexLoadError, ModelLoadError: A resource failed to load.
    """

    bundle = models if isinstance(models, ModelBundle) else ModelBundle.from_dir(models)
    settings = settings or EngineSettings.from_env()
    factory = stage_factory or OnnxStage.load

    with timed("engine.load"):
        cfg = load_config(bundle.config)
        indexer = UnicodeIndexer.load(bundle.unicode_indexer)
        stages = {
            Stage(name): factory(Stage(name), source, settings)
            for name, source in bundle.stage_sources().items()
        }
    logger.info(
        "engine.ready sample_rate={sr} vocab={vocab} stages={stages}",
        sr=cfg.sample_rate,
        vocab=len(indexer),
        stages=len(stages),
    )
    return TextToSpeech(cfg, indexer, stages, seed=seed)
