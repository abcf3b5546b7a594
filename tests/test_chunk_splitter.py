import pytest

from voicer.services.tts.chunk_splitter import ChunkSplitter, split_into_chunks


def test_short_text_is_returned_unchanged():
    text = "  Hello there.  "
    assert ChunkSplitter(50).split(text) == [text]


def test_sentences_are_packed_greedily():
    splitter = ChunkSplitter(30)
    text = "First sentence. Second one! Third one? Fourth sentence here."

    chunks = splitter.split(text)

    assert chunks == ["First sentence. Second one!", "Third one?", "Fourth sentence here."]
    assert all(len(chunk) <= 30 for chunk in chunks)


def test_overlong_sentence_falls_back_to_paragraphs():
    paragraph_one = "word " * 8
    paragraph_two = "more " * 8
    text = f"{paragraph_one.strip()}\n\n{paragraph_two.strip()}"

    chunks = ChunkSplitter(45).split(text)

    assert chunks == [paragraph_one.strip(), paragraph_two.strip()]


def test_text_without_boundaries_is_hard_split():
    chunks = split_into_chunks("A" * 1500)

    assert [len(chunk) for chunk in chunks] == [1000, 500]


def test_hard_split_prefers_word_boundaries():
    text = " ".join(["alpha"] * 10)

    chunks = ChunkSplitter(20).split(text)

    assert chunks == ["alpha alpha alpha", "alpha alpha alpha", "alpha alpha alpha", "alpha"]


def test_chunks_are_trimmed_non_empty_and_preserve_content():
    text = "One. Two.   Three!\n\n  Four? " + "Five six seven. " * 10
    chunks = ChunkSplitter(40).split(text)

    assert all(chunk and chunk == chunk.strip() for chunk in chunks)
    assert "".join(chunks).replace(" ", "").replace("\n", "") == text.replace(
        " ", ""
    ).replace("\n", "")


def test_sentence_splitting_keeps_trailing_text():
    assert ChunkSplitter.split_sentences("Hi. There") == ["Hi.", " There"]


def test_rejects_non_positive_budget():
    with pytest.raises(ValueError):
        ChunkSplitter(0)
