import pytest

from tonic_tts.chunking import (
    MAX_CHUNK_LENGTH,
    chunk_text,
    max_chunk_length,
    split_sentences,
    split_text_to_sentences,
)


def test_abbreviation_does_not_end_a_sentence() -> None:
    assert split_text_to_sentences("Dr. Smith arrived. He left.") == [
        "Dr. Smith arrived.",
        "He left.",
    ]


def test_sentences_keep_punctuation_and_trailing_whitespace() -> None:
    assert split_sentences("Really? Yes!  Fine.") == ["Really? ", "Yes!  ", "Fine."]


def test_text_without_boundary_is_one_sentence() -> None:
    assert split_sentences("no punctuation here") == ["no punctuation here"]
    assert split_sentences("") == [""]


def test_empty_input_yields_single_empty_chunk() -> None:
    assert chunk_text("") == [""]
    assert chunk_text("   \n\n  ") == [""]


def test_short_text_is_one_chunk() -> None:
    assert chunk_text("Short text.") == ["Short text."]


def test_paragraphs_are_separate_chunks() -> None:
    assert chunk_text("First para.\n\nSecond para.") == ["First para.", "Second para."]


def test_long_paragraph_packs_by_sentence() -> None:
    text = " ".join(["One two three four five six."] * 6)
    chunks = chunk_text(text, 50)
    assert len(chunks) == 6
    assert all(len(chunk) <= 50 for chunk in chunks)
    assert " ".join(chunks) == text


def test_long_sentence_falls_back_to_commas() -> None:
    chunks = chunk_text("alpha beta, gamma delta, epsilon zeta.", 20)
    assert chunks == ["alpha beta", "gamma delta", "epsilon zeta."]


def test_comma_split_starts_a_new_chunk() -> None:
    text = "Short one. alpha beta, gamma delta, epsilon zeta eta theta."
    chunks = chunk_text(text, 30)
    assert chunks == ["Short one.", "alpha beta, gamma delta", "epsilon zeta eta theta."]
    assert all("., " not in chunk for chunk in chunks)


def test_long_part_falls_back_to_words() -> None:
    assert chunk_text("aaaa bbbb cccc dddd", 10) == ["aaaa bbbb", "cccc dddd"]


def test_oversized_word_becomes_its_own_chunk() -> None:
    assert chunk_text("tiny enormousword ok", 5) == ["tiny", "enormousword", "ok"]


def test_word_fallback_keeps_reading_order() -> None:
    text = "Short one. alpha beta gamma delta epsilon zeta eta. End."
    chunks = chunk_text(text, 20)
    assert chunks == [
        "Short one.",
        "alpha beta gamma",
        "delta epsilon zeta",
        "eta.",
        "End.",
    ]
    assert " ".join(chunks) == text


@pytest.mark.parametrize("max_length", [0, -5])
def test_rejects_non_positive_bound(max_length: int) -> None:
    with pytest.raises(ValueError):
        chunk_text("anything", max_length)


def test_language_specific_bounds() -> None:
    assert max_chunk_length("ko") == 120
    assert max_chunk_length("en") == MAX_CHUNK_LENGTH == 300
    assert max_chunk_length("fr") == 300


def test_korean_bound_splits_long_text() -> None:
    sentence = "가나다라마바사아자차 " * 5
    text = " ".join([sentence.strip() + "."] * 4)
    chunks = chunk_text(text, max_chunk_length("ko"))
    assert len(chunks) > 1
    assert all(len(chunk) <= 120 for chunk in chunks)
