import pytest

from src.knowledge.chunker import TextChunk, chunk_text
from fakes import words


class TestChunkText:
    def test_short_text_is_one_verbatim_chunk(self):
        text = "Line one.\n\n  Line   two with  odd spacing."
        assert chunk_text(text) == [TextChunk(index=0, content=text)]

    def test_exactly_window_size_is_one_chunk(self):
        text = words(800)
        chunks = chunk_text(text)
        assert len(chunks) == 1
        assert chunks[0].content == text

    def test_empty_text_has_no_chunks(self):
        assert chunk_text("") == []
        assert chunk_text("   \n\t ") == []

    def test_long_text_windows_and_overlap(self):
        text = words(2000)
        chunks = chunk_text(text)

        assert [c.index for c in chunks] == [0, 1, 2, 3]
        tokens = [c.content.split() for c in chunks]
        assert [len(t) for t in tokens] == [800, 800, 800, 200]
        assert tokens[0][0] == "w0"
        assert tokens[1][0] == "w600"
        assert tokens[3][0] == "w1800"
        assert tokens[3][-1] == "w1999"
        # consecutive windows share 200 words
        assert tokens[0][-200:] == tokens[1][:200]

    def test_windows_are_rejoined_with_single_spaces(self):
        text = "\n".join(words(900).split())
        chunks = chunk_text(text)
        assert len(chunks) == 2
        assert "\n" not in chunks[0].content

    def test_custom_window(self):
        chunks = chunk_text(words(10), chunk_size=4, overlap=1)
        assert [c.content for c in chunks] == [
            "w0 w1 w2 w3",
            "w3 w4 w5 w6",
            "w6 w7 w8 w9",
            "w9",
        ]

    @pytest.mark.parametrize("overlap", [800, 900])
    def test_overlap_must_be_smaller_than_window(self, overlap):
        with pytest.raises(ValueError):
            chunk_text(words(10), chunk_size=800, overlap=overlap)
