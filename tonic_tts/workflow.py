"""
Tonic TTS command line (text → chunks → ONNX stages → audio file)

Commands are exposed with ``fire``:

synthesize · batch · sentences · chunks · voices · languages · status · manifest

Models are read from ``--models-dir`` (default ``$TONIC_MODELS_DIR`` or
``./assets``), laid out as ``onnx/*`` plus ``voice_styles/*.json``. Output files
are never overwritten unless ``--force`` is given.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import fire
from loguru import logger

from tonic_tts.audio import export_audio
from tonic_tts.catalog import ModelStatus, VOICE_STYLES, check_models, download_manifest, voice_label
from tonic_tts.chunking import chunk_text, max_chunk_length, split_text_to_sentences
from tonic_tts.config import MODELS_DIR, EngineSettings
from tonic_tts.engine import TextToSpeech, load_text_to_speech
from tonic_tts.errors import EngineNotReady, InvalidLanguage
from tonic_tts.normalize import AVAILABLE_LANGS, LANGUAGE_NAMES, is_valid_lang
from tonic_tts.style import VoiceStyle, load_voice_style, load_voice_styles
from tonic_tts.utils import sanitize_filename


def _as_list(value: Sequence[str] | str) -> List[str]:
    """fire passes ``a,b`` as a tuple and ``a`` as a plain string.

    A plain string is one item even when it contains commas.
    """
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    return [str(item).strip() for item in value if str(item).strip()]


class Toolchain:
    """Text-to-speech synthesis exposed as CLI commands."""

    def __init__(
        self,
        debug: bool = False,
        models_dir: Path | str = MODELS_DIR,
        force: bool = False,
        use_gpu: bool = False,
        seed: Optional[int] = None,
    ) -> None:
        """Configure logging and where models come from.

        Args:
            debug: Log stage timings and per-chunk detail.
            models_dir: Directory holding ``onnx/`` and ``voice_styles/``.
            force: Overwrite existing output files.
            use_gpu: Prefer a GPU execution provider when one is installed.
            seed: Seed for the latent noise, for reproducible output.
        """
        logger.remove()
        logger.add(sys.stderr, level="DEBUG" if debug else "INFO")
        self.debug = debug
        self.force = force
        self.seed = seed
        self.settings = EngineSettings.from_env(models_dir=Path(models_dir), use_gpu=use_gpu)
        self._engine: Optional[TextToSpeech] = None

    # —————————————————— Utilities ——————————————————

    @property
    def engine(self) -> TextToSpeech:
        """Load the engine on first use; refuses when model files are missing."""
        if self._engine is None:
            status = check_models(self.settings.models_dir)
            missing_models = [f for f in status.missing_files if f.startswith("onnx/")]
            if missing_models:
                raise EngineNotReady(
                    f"{len(missing_models)} model files missing under {self.settings.models_dir}: "
                    + ", ".join(missing_models)
                )
            self._engine = load_text_to_speech(
                self.settings.onnx_dir, settings=self.settings, seed=self.seed
            )
        return self._engine

    def voice_file(self, voice_name: str) -> Path:
        """Resolve a voice name (``M1``) or an explicit JSON path."""
        candidate = Path(voice_name)
        if candidate.suffix == ".json":
            voice_file = candidate
        else:
            voice_file = self.settings.voice_styles_dir / f"{voice_name}.json"
        if not voice_file.exists():
            raise FileNotFoundError(f"Voice style {voice_file} does not exist.")
        return voice_file

    def _load_voice(self, voice_name: str) -> VoiceStyle:
        return load_voice_style(self.voice_file(voice_name))

    def _prepare_output(self, path: Path) -> Path:
        """Ensure an output file is writable, honoring the `--force` policy."""
        if path.exists():
            if not self.force:
                raise FileExistsError(f"Refusing to overwrite existing file: {path}")
            logger.warning("Overwriting existing file: {path}", path=path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def _read_text(text: str, text_file: Path | str) -> str:
        if text_file:
            text_path = Path(text_file)
            if not text_path.exists():
                raise FileNotFoundError(f"Text file {text_path} does not exist.")
            return text_path.read_text(encoding="utf-8")
        return text

    @staticmethod
    def _check_lang(lang: str) -> None:
        if not is_valid_lang(lang):
            raise InvalidLanguage(lang, AVAILABLE_LANGS)

    # —————————————————— Commands ——————————————————

    def synthesize(
        self,
        text: str = "",
        text_file: Path | str = "",
        lang: str = "en",
        voice: str = "M1",
        steps: Optional[int] = None,
        speed: Optional[float] = None,
        silence: Optional[float] = None,
        out: Path | str = "output.wav",
        fmt: Optional[str] = None,
    ) -> str:
        """Synthesize text (or a text file) into one audio file.

        Args:
            text: Text to speak; ignored when ``text_file`` is given.
            text_file: Path of a UTF-8 text file to speak.
            lang: Language code, one of ``languages``.
            voice: Voice style name or path to a style JSON.
            steps: Denoising steps; more is slower and cleaner.
            speed: Playback speed factor; above 1 speaks faster.
            silence: Seconds of silence between chunks.
            out: Output path; the suffix picks the format unless ``fmt`` is set.
            fmt: Explicit container format (wav, mp3, ogg, flac).

        Returns:
            The written file path.
        """
        body = self._read_text(text, text_file)
        self._check_lang(lang)
        style = self._load_voice(voice)
        out_path = self._prepare_output(Path(out))

        waveform, duration = self.engine.synthesize(
            body,
            lang,
            style,
            total_steps=self.settings.total_steps if steps is None else int(steps),
            speed=self.settings.speed if speed is None else float(speed),
            silence_seconds=self.settings.silence_seconds if silence is None else float(silence),
        )
        export_audio(out_path, waveform, self.engine.sample_rate, fmt)
        logger.info(
            "synthesize.saved path={path} seconds={seconds:.2f}",
            path=out_path,
            seconds=duration,
        )
        return str(out_path)

    def batch(
        self,
        texts: Sequence[str] | str,
        langs: Sequence[str] | str = "en",
        voices: Sequence[str] | str = "M1",
        steps: Optional[int] = None,
        speed: Optional[float] = None,
        out_dir: Path | str = "results",
    ) -> List[str]:
        """Synthesize several short texts in one batched pass, one file each.

        A single language or voice applies to every text; otherwise give one per text.
        """
        items = _as_list(texts)
        lang_list = _as_list(langs)
        voice_list = _as_list(voices)
        if len(lang_list) == 1:
            lang_list = lang_list * len(items)
        if len(voice_list) == 1:
            style = self._load_voice(voice_list[0])
        elif len(voice_list) == len(items):
            style = load_voice_styles([self.voice_file(name) for name in voice_list])
        else:
            raise ValueError(
                f"Got {len(voice_list)} voices for {len(items)} texts; give one or one per text."
            )

        waveforms, durations = self.engine.batch(
            items,
            lang_list,
            style,
            total_steps=self.settings.total_steps if steps is None else int(steps),
            speed=self.settings.speed if speed is None else float(speed),
        )
        written: List[str] = []
        for idx, (item, waveform, duration) in enumerate(zip(items, waveforms, durations), start=1):
            path = self._prepare_output(Path(out_dir) / f"{idx:03d}_{sanitize_filename(item, 20)}.wav")
            export_audio(path, waveform, self.engine.sample_rate, "wav")
            logger.info("batch.saved path={path} seconds={seconds:.2f}", path=path, seconds=duration)
            written.append(str(path))
        return written

    def sentences(self, text: str = "", text_file: Path | str = "") -> List[str]:
        """Split text into the sentences a playback queue would speak one by one."""
        return split_text_to_sentences(self._read_text(text, text_file))

    def chunks(self, text: str = "", text_file: Path | str = "", lang: str = "en") -> List[str]:
        """Show how text would be chunked for synthesis in ``lang``."""
        self._check_lang(lang)
        return chunk_text(self._read_text(text, text_file), max_chunk_length(lang))

    def voices(self) -> List[str]:
        return [voice_label(name) for name in VOICE_STYLES]

    def languages(self) -> List[str]:
        return [f"{code} - {LANGUAGE_NAMES[code]}" for code in AVAILABLE_LANGS]

    def status(self) -> Dict[str, object]:
        """Report which model and voice files are present."""
        status: ModelStatus = check_models(self.settings.models_dir)
        if status.missing_files:
            logger.warning(
                "status.missing count={count} models_dir={models_dir}",
                count=len(status.missing_files),
                models_dir=status.models_dir,
            )
        return status.model_dump()

    def manifest(self) -> List[str]:
        """Relative paths of every file the models directory must hold."""
        return download_manifest()


def main() -> None:
    fire.Fire(Toolchain)


if __name__ == "__main__":
    main()
