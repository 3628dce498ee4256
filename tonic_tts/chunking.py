from __future__ import annotations

import re
from typing import List

from loguru import logger

MAX_CHUNK_LENGTH = 300
_SHORT_CHUNK_LANGS = {"ko": 120}

_ABBREVIATIONS = (
    "Dr.",
    "Mr.",
    "Mrs.",
    "Ms.",
    "Prof.",
    "Sr.",
    "Jr.",
    "St.",
    "Ave.",
    "Rd.",
    "Blvd.",
    "Dept.",
    "Inc.",
    "Ltd.",
    "Co.",
    "Corp.",
    "etc.",
    "vs.",
    "i.e.",
    "e.g.",
    "Ph.D.",
)

_BOUNDARY_RE = re.compile(r"[.!?]\s+")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_CONTENT_RE = re.compile(r"[\s,]+")


def max_chunk_length(language: str) -> int:
    """Chunk bound for ``language``; scripts without word spacing get shorter chunks."""

    return _SHORT_CHUNK_LANGS.get(language, MAX_CHUNK_LENGTH)


def _ends_with_abbreviation(segment: str, punct: str) -> bool:
    tokens = segment.split()
    token = (tokens[-1] if tokens else "") + punct
    return any(token.endswith(abbrev) for abbrev in _ABBREVIATIONS)


def split_sentences(text: str) -> List[str]:
    """Split ``text`` at ``[.!?]`` + whitespace unless the boundary closes an abbreviation.

    Each sentence keeps its punctuation and trailing whitespace. Text without any
    accepted boundary comes back as a single sentence.
    """

    sentences: List[str] = []
    start = 0
    for match in _BOUNDARY_RE.finditer(text):
        punct = text[match.start()]
        if _ends_with_abbreviation(text[start : match.start()], punct):
            continue
        sentences.append(text[start : match.end()])
        start = match.end()

    if start < len(text):
        sentences.append(text[start:])
    return sentences or [text]


def split_text_to_sentences(text: str) -> List[str]:
    """Sentences for a sentence-by-sentence playback queue, trimmed and non-empty."""

    return [s.strip() for s in split_sentences(text) if s.strip()]


class _Packer:
    """Running buffer that flushes into ``chunks`` when the next piece would overflow."""

    def __init__(self, chunks: List[str], max_length: int) -> None:
        self.chunks = chunks
        self.max_length = max_length
        self.current = ""

    def add(self, piece: str, separator: str) -> None:
        if self.current and len(self.current) + len(separator) + len(piece) > self.max_length:
            self.flush()
        self.current = f"{self.current}{separator}{piece}" if self.current else piece

    def flush(self) -> None:
        if self.current.strip():
            self.chunks.append(self.current.strip())
        self.current = ""


def _pack_words(text: str, max_length: int) -> List[str]:
    chunks: List[str] = []
    packer = _Packer(chunks, max_length)
    for word in text.split():
        packer.add(word, " ")
    packer.flush()
    return chunks


def _pack_paragraph(paragraph: str, max_length: int, chunks: List[str]) -> None:
    packer = _Packer(chunks, max_length)
    for sentence in split_sentences(paragraph):
        sentence = sentence.strip()
        if not sentence:
            continue
        if len(sentence) <= max_length:
            packer.add(sentence, " ")
            continue

        # Comma parts never share a buffer with earlier sentences.
        packer.flush()
        for part in sentence.split(","):
            part = part.strip()
            if not part:
                continue
            if len(part) <= max_length:
                packer.add(part, ", ")
            else:
                # Words go straight to ``chunks``; flush first to keep reading order.
                packer.flush()
                chunks.extend(_pack_words(part, max_length))
    packer.flush()


def chunk_text(text: str, max_length: int = MAX_CHUNK_LENGTH) -> List[str]:
    """Pack ``text`` greedily into chunks of at most ``max_length`` characters.

    Paragraphs that fit are kept whole; longer ones are packed by sentence, then by
    comma-delimited part, then word by word. A single word longer than the bound
    becomes its own oversized chunk. Empty input yields ``[""]``.
    """

    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    text = text.strip()
    if not text:
        return [""]

    chunks: List[str] = []
    for paragraph in _PARAGRAPH_RE.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= max_length:
            chunks.append(paragraph)
        else:
            _pack_paragraph(paragraph, max_length, chunks)

    normalised_original = _CONTENT_RE.sub(" ", text).strip()
    normalised_joined = _CONTENT_RE.sub(" ", " ".join(chunks)).strip()
    if normalised_joined != normalised_original:
        logger.warning(
            "chunking.content_altered original_chars={} joined_chars={}",
            len(normalised_original),
            len(normalised_joined),
        )

    logger.debug(
        "chunking.done chars={chars} chunks={count} max_length={max_length}",
        chars=len(text),
        count=len(chunks),
        max_length=max_length,
    )
    return chunks or [""]
