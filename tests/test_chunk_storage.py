"""Tests for the on-disk chunk persistence engine."""

import os

import pytest

from chunkstore.chunk_storage import (
    chunk_exists,
    delete_chunk,
    delete_content_chunks,
    get_chunk_path,
    get_chunk_size,
    is_valid_content_id,
    list_content_ids,
    read_chunk,
    write_chunk,
)
from common.exceptions import ChunkWriteError, InvalidContentIdError

IV = b"\x01" * 16


class TestContentIdValidation:
    @pytest.mark.parametrize("content_id", [
        "abc",
        "0f8fad5b-d9cb-469f-a165-70867728950e",
        "file_1.part",
        "a" * 128,
    ])
    def test_valid_ids(self, content_id):
        assert is_valid_content_id(content_id)

    @pytest.mark.parametrize("content_id", [
        "",
        ".",
        "..",
        "../etc",
        "a/b",
        "a\\b",
        "with space",
        "a" * 129,
    ])
    def test_invalid_ids(self, content_id):
        assert not is_valid_content_id(content_id)

    def test_path_for_invalid_id_raises(self, chunks_dir):
        with pytest.raises(InvalidContentIdError):
            get_chunk_path("../escape", 0)

    def test_negative_index_raises(self, chunks_dir):
        with pytest.raises(ValueError):
            get_chunk_path("abc", -1)


class TestWriteAndRead:
    def test_layout_is_iv_then_ciphertext(self, chunks_dir):
        path = write_chunk("content-a", 3, b"ciphertext", IV)

        assert path == chunks_dir / "content-a" / "3.bin"
        assert path.read_bytes() == IV + b"ciphertext"

    def test_read_back(self, chunks_dir):
        write_chunk("content-a", 0, b"hello", IV)

        stored = read_chunk("content-a", 0)
        assert stored.data == b"hello"
        assert stored.iv == IV

    def test_rewrite_replaces_previous_bytes(self, chunks_dir):
        write_chunk("content-a", 0, b"first version", IV)
        write_chunk("content-a", 0, b"second", b"\x02" * 16)

        stored = read_chunk("content-a", 0)
        assert stored.data == b"second"
        assert stored.iv == b"\x02" * 16
        assert get_chunk_size("content-a", 0) == len(b"second")

    def test_no_temporary_files_left_behind(self, chunks_dir):
        write_chunk("content-a", 0, b"x" * 100, IV)
        write_chunk("content-a", 0, b"y" * 100, IV)

        assert sorted(os.listdir(chunks_dir / "content-a")) == ["0.bin"]

    def test_distinct_indices_use_distinct_files(self, chunks_dir):
        write_chunk("content-a", 0, b"zero", IV)
        write_chunk("content-a", 1, b"one", IV)
        write_chunk("content-b", 0, b"other", IV)

        assert read_chunk("content-a", 0).data == b"zero"
        assert read_chunk("content-a", 1).data == b"one"
        assert read_chunk("content-b", 0).data == b"other"

    def test_wrong_iv_width_rejected(self, chunks_dir):
        with pytest.raises(ChunkWriteError):
            write_chunk("content-a", 0, b"data", b"short")

        assert not chunk_exists("content-a", 0)

    def test_read_missing_chunk_raises(self, chunks_dir):
        with pytest.raises(FileNotFoundError):
            read_chunk("content-a", 0)

    def test_read_truncated_chunk_raises(self, chunks_dir):
        path = get_chunk_path("content-a", 0)
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\x00" * 5)

        with pytest.raises(OSError):
            read_chunk("content-a", 0)


class TestDeleteAndList:
    def test_delete_single_chunk(self, chunks_dir):
        write_chunk("content-a", 0, b"data", IV)

        assert delete_chunk("content-a", 0) is True
        assert delete_chunk("content-a", 0) is False
        assert not chunk_exists("content-a", 0)

    def test_delete_content_chunks(self, chunks_dir):
        write_chunk("content-a", 0, b"data", IV)
        write_chunk("content-a", 1, b"data", IV)

        assert delete_content_chunks("content-a") is True
        assert not (chunks_dir / "content-a").exists()
        assert delete_content_chunks("content-a") is False

    def test_list_content_ids(self, chunks_dir):
        assert list_content_ids() == []

        write_chunk("content-b", 0, b"data", IV)
        write_chunk("content-a", 0, b"data", IV)

        assert list_content_ids() == ["content-a", "content-b"]
