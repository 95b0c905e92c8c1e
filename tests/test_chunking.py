import pytest

from simple_rag_server.chunking.splitter import build_chunks, split_text
from simple_rag_server.core.errors import ValidationFailed


class TestSplitText:
    """Tests for the boundary-aware splitter."""

    def test_short_text_is_returned_untouched(self):
        assert split_text("  hello world  ", 1000, 200) == ["  hello world  "]

    def test_text_of_exactly_chunk_size_is_single_chunk(self):
        text = "x" * 10
        assert split_text(text, 10, 3) == [text]

    def test_cuts_on_word_boundary(self):
        chunks = split_text("aaaa bbbb cccc dddd", 10, 3)

        assert chunks == ["aaaa bbbb", "cccc dddd"]
        words = {"aaaa", "bbbb", "cccc", "dddd"}
        for chunk in chunks:
            assert set(chunk.split()) <= words

    def test_raw_cut_when_no_boundary_exists(self):
        assert split_text("a" * 25, 10, 2) == ["a" * 10, "a" * 10, "a" * 5]

    def test_boundary_in_first_half_is_ignored(self):
        text = "ab cdefghijklmnopqrstuvwxyz"

        chunks = split_text(text, 10, 2)

        # The only space sits at index 2, too early to keep half a chunk
        assert chunks == ["ab cdefghi", "jklmnopqrs", "tuvwxyz"]

    def test_newline_and_period_are_boundaries(self):
        text = "line one\nline two. line three"

        chunks = split_text(text, 12, 2)

        assert chunks[0] == "line one"
        assert all(len(c) <= 12 for c in chunks)

    def test_words_are_preserved_in_order(self):
        text = " ".join(f"w{i}" for i in range(300))

        chunks = split_text(text, 50, 10)

        assert len(chunks) > 1
        assert " ".join(chunks).split() == text.split()
        assert all(0 < len(c) <= 50 for c in chunks)

    def test_terminates_with_large_overlap(self):
        chunks = split_text("abcdefghij" * 10, 10, 9)

        assert chunks
        assert "".join(chunks) == "abcdefghij" * 10

    @pytest.mark.parametrize(
        "text, size, overlap",
        [
            ("", 10, 2),
            ("   ", 10, 2),
            ("some text", 10, 10),
            ("some text", 5, 8),
            ("some text", 10, -1),
        ],
    )
    def test_rejects_invalid_input(self, text, size, overlap):
        with pytest.raises(ValidationFailed):
            split_text(text, size, overlap)


class TestBuildChunks:
    """Tests for chunk record construction."""

    def test_ids_are_deterministic_and_indices_contiguous(self):
        chunks = build_chunks("doc_x", ["alpha", "beta", "gamma"])

        assert [c.id for c in chunks] == [
            "doc_x_chunk_000",
            "doc_x_chunk_001",
            "doc_x_chunk_002",
        ]
        assert [c.index for c in chunks] == [0, 1, 2]
        assert [c.size_chars for c in chunks] == [5, 4, 5]

    def test_payload_carries_metadata_and_content(self):
        chunk = build_chunks("doc_y", ["hello"], metadata={"source": "a.txt"})[0]

        payload = chunk.payload()

        assert payload["source"] == "a.txt"
        assert payload["content"] == "hello"
        assert payload["document_id"] == "doc_y"
        assert payload["chunk_index"] == 0
