"""Tests for chunk and metadata ingestion."""

import json
import os
from dataclasses import replace

import pytest

from chunkstore.chunk_storage import read_chunk
from chunkstore.checksum_validator import compute_checksum
from common.constants import CHUNK_SIZE_BYTES
from common.types import ChunkMetadata
from contentstore import config
from conftest import encrypt_content, make_chunk_metadata, make_record, upload_content

IV = b"\x07" * 16


class TestSaveChunk:
    @pytest.mark.asyncio
    async def test_first_chunk_creates_record(self, store):
        metadata = ChunkMetadata(
            content_id="content-1",
            session_id="session-1",
            chunk_index=0,
            total_chunks=2,
            size=32,
            iv=IV,
            mime_type="image/png",
        )

        result = await store.save_chunk(b"\x00" * 32, metadata)

        assert result.success
        record = await store.get_content_metadata("content-1")
        assert record.session_id == "session-1"
        assert record.total_chunks == 2
        assert record.total_size is None
        assert record.content_type == "application/octet-stream"
        assert json.loads(record.additional_metadata) == {"mimeType": "image/png"}
        assert record.is_complete is False

    @pytest.mark.asyncio
    async def test_chunk_recorded_in_ledger_and_on_disk(self, store):
        data = b"\x11" * 48
        await store.save_chunk(data, make_chunk_metadata("content-1", 0, 2, data, IV))

        chunk = await store.get_chunk_metadata("content-1", 0)
        assert chunk.size == 48
        assert chunk.iv == IV
        assert chunk.checksum == compute_checksum(data)
        assert read_chunk("content-1", 0).data == data

    @pytest.mark.asyncio
    async def test_resend_same_index_is_idempotent(self, store):
        chunks = encrypt_content(os.urandom(CHUNK_SIZE_BYTES + 10))
        await store.save_content(make_record("content-1", total_size=CHUNK_SIZE_BYTES + 10, total_chunks=2))

        data, iv = chunks[0]
        first = await store.save_chunk(data, make_chunk_metadata("content-1", 0, 2, data, iv))
        second = await store.save_chunk(data, make_chunk_metadata("content-1", 0, 2, data, iv))

        assert first.success and second.success
        assert await store.ledger.count_chunks("content-1", 2) == 1
        assert read_chunk("content-1", 0).data == data

    @pytest.mark.parametrize("overrides, message", [
        ({"content_id": "../escape"}, "Invalid content id"),
        ({"total_chunks": 0}, "total_chunks must be positive"),
        ({"chunk_index": 2}, "out of range"),
        ({"chunk_index": -1}, "out of range"),
        ({"iv": b"\x00" * 12}, "IV must be 16 bytes"),
        ({"size": 999}, "does not match"),
    ])
    @pytest.mark.asyncio
    async def test_invalid_chunks_rejected(self, store, overrides, message):
        data = b"\x00" * 32
        metadata = replace(make_chunk_metadata("content-1", 0, 2, data, IV), **overrides)

        result = await store.save_chunk(data, metadata)

        assert result.success is False
        assert message in result.error

    @pytest.mark.asyncio
    async def test_chunk_from_other_session_rejected(self, store):
        data = b"\x00" * 32
        await store.save_chunk(data, make_chunk_metadata("content-1", 0, 2, data, IV))

        result = await store.save_chunk(
            data, make_chunk_metadata("content-1", 1, 2, data, IV, session_id="intruder")
        )

        assert result.success is False
        assert "different session" in result.error
        assert await store.get_chunk_metadata("content-1", 1) is None

    @pytest.mark.asyncio
    async def test_total_chunks_must_stay_consistent(self, store):
        data = b"\x00" * 32
        await store.save_chunk(data, make_chunk_metadata("content-1", 0, 2, data, IV))

        result = await store.save_chunk(data, make_chunk_metadata("content-1", 1, 3, data, IV))

        assert result.success is False
        assert "total chunks" in result.error

    @pytest.mark.asyncio
    async def test_ciphertext_size_enforced_when_size_known(self, store, diagnostics):
        await store.save_content(make_record("content-1", total_size=100, total_chunks=1))

        data = b"\x00" * 100
        result = await store.save_chunk(data, make_chunk_metadata("content-1", 0, 1, data, IV))

        assert result.success is False
        assert "expected 112 bytes" in result.error
        assert diagnostics.counts() == {"CipherLayoutViolation": 1}

    @pytest.mark.asyncio
    async def test_ciphertext_size_not_enforced_when_disabled(self, store, monkeypatch):
        monkeypatch.setattr(config, "STRICT_CIPHER_LAYOUT", False)
        await store.save_content(make_record("content-1", total_size=100, total_chunks=1))

        data = b"\x00" * 100
        result = await store.save_chunk(data, make_chunk_metadata("content-1", 0, 1, data, IV))

        assert result.success


class TestSaveContent:
    @pytest.mark.asyncio
    async def test_metadata_before_chunks(self, store):
        result = await store.save_content(make_record(
            "content-1", total_size=10, additional_metadata=json.dumps({"fileName": "a.txt"})
        ))

        assert result.success
        record = await store.get_content_metadata("content-1")
        assert record.total_size == 10
        assert record.is_complete is False

    @pytest.mark.asyncio
    async def test_metadata_after_chunks_merges(self, store):
        chunks = encrypt_content(b"hello world")
        data, iv = chunks[0]
        await store.save_chunk(data, make_chunk_metadata("content-1", 0, 1, data, iv))

        result = await store.save_content(make_record(
            "content-1",
            total_size=11,
            additional_metadata=json.dumps({"fileName": "hello.txt"}),
        ))

        assert result.success
        record = await store.get_content_metadata("content-1")
        assert record.total_size == 11
        assert record.is_complete is True
        assert json.loads(record.additional_metadata) == {"fileName": "hello.txt"}

    @pytest.mark.asyncio
    async def test_large_file_flag_from_threshold(self, store, monkeypatch):
        monkeypatch.setattr(config, "LARGE_FILE_THRESHOLD_BYTES", 1000)

        await store.save_content(make_record("big", total_size=1000, is_large_file=False))
        await store.save_content(make_record("small", total_size=999, is_large_file=False))

        assert (await store.get_content_metadata("big")).is_large_file is True
        assert (await store.get_content_metadata("small")).is_large_file is False

    @pytest.mark.asyncio
    async def test_session_change_rejected(self, store):
        await store.save_content(make_record("content-1"))

        result = await store.save_content(make_record("content-1", session_id="session-2"))

        assert result.success is False
        assert (await store.get_content_metadata("content-1")).session_id == "session-1"

    @pytest.mark.asyncio
    async def test_invalid_content_id(self, store):
        result = await store.save_content(make_record("bad/id"))

        assert result.success is False
        assert "Invalid content id" in result.error


class TestMarkContentComplete:
    @pytest.mark.asyncio
    async def test_unknown_content(self, store):
        result = await store.mark_content_complete("missing")

        assert result.success is False
        assert result.error == "Content not found: missing"

    @pytest.mark.asyncio
    async def test_does_not_complete_with_missing_chunks(self, store):
        await store.save_content(make_record("content-1", total_size=CHUNK_SIZE_BYTES + 1, total_chunks=2))

        result = await store.mark_content_complete("content-1")

        assert result.success
        assert (await store.get_content_metadata("content-1")).is_complete is False

    @pytest.mark.asyncio
    async def test_complete_content(self, store):
        await upload_content(store, "content-1", b"payload")

        result = await store.mark_content_complete("content-1")

        assert result.success
        assert (await store.get_content_metadata("content-1")).is_complete is True


class TestDeclaredSizeLayout:
    @pytest.mark.asyncio
    async def test_size_declared_after_wrong_chunk_is_rejected(self, store, diagnostics):
        data = b"\x00" * 100
        await store.save_chunk(data, make_chunk_metadata("content-1", 0, 1, data, IV))

        result = await store.save_content(make_record("content-1", total_size=50, total_chunks=1))

        assert result.success is False
        assert "expected 64 bytes, got 100" in result.error
        assert diagnostics.counts() == {"CipherLayoutViolation": 1}
        assert (await store.get_content_metadata("content-1")).total_size is None

        stream = await store.stream_content_for_download("content-1", lambda frame: None)
        assert stream.bytes_sent == 116
        assert stream.length_matches

    @pytest.mark.asyncio
    async def test_size_change_rechecks_stored_chunks(self, store):
        await upload_content(store, "content-1", b"hello world")

        result = await store.save_content(make_record("content-1", total_size=40, total_chunks=1))

        assert result.success is False
        assert "expected 48 bytes, got 16" in result.error
        assert (await store.get_content_metadata("content-1")).total_size == 11

    @pytest.mark.asyncio
    async def test_chunk_count_must_match_size(self, store):
        result = await store.save_content(make_record("content-1", total_size=100, total_chunks=3))

        assert result.success is False
        assert "split into 1" in result.error
        assert await store.get_content_metadata("content-1") is None

    @pytest.mark.asyncio
    async def test_chunk_count_from_chunks_must_match_later_size(self, store):
        data = b"\x00" * 112
        await store.save_chunk(data, make_chunk_metadata("content-1", 0, 3, data, IV))

        result = await store.save_content(make_record("content-1", total_size=100, total_chunks=0))

        assert result.success is False
        assert "declares 3 chunks" in result.error

    @pytest.mark.asyncio
    async def test_chunk_beyond_declared_size_rejected(self, store, diagnostics):
        await store.save_content(make_record("content-1", total_size=100, total_chunks=0))

        data = b"\x00" * 999
        result = await store.save_chunk(data, make_chunk_metadata("content-1", 2, 3, data, IV))

        assert result.success is False
        assert "beyond the declared content size" in result.error
        assert diagnostics.counts() == {"CipherLayoutViolation": 1}
        assert await store.get_chunk_metadata("content-1", 2) is None

    @pytest.mark.asyncio
    async def test_explicit_empty_size_is_checked(self, store):
        await store.save_content(make_record("empty", total_size=0, total_chunks=1))

        oversized = b"\x00" * 4096
        rejected = await store.save_chunk(oversized, make_chunk_metadata("empty", 0, 1, oversized, IV))

        data, iv = encrypt_content(b"")[0]
        accepted = await store.save_chunk(data, make_chunk_metadata("empty", 0, 1, data, iv))

        assert rejected.success is False
        assert "expected 16 bytes, got 4096" in rejected.error
        assert accepted.success and accepted.is_complete
        stream = await store.stream_content_for_download("empty", lambda frame: None)
        assert stream.bytes_sent == stream.declared_length == 32
