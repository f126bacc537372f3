"""Integration tests for the SQLite repositories."""

import json
import sqlite3

import pytest

from common.types import ChunkRecord, ContentRecord
from contentstore.database import get_db_connection
from contentstore.repositories.chunk_repository import ChunkRepository
from contentstore.repositories.content_repository import ContentRepository


def _record(content_id="content-1", **overrides) -> ContentRecord:
    fields = dict(
        content_id=content_id,
        session_id="session-1",
        content_type="image/png",
        total_chunks=3,
        total_size=1000,
        created_at=1_700_000_000_000,
        encryption_iv=b"\x01" * 16,
        additional_metadata=json.dumps({"fileName": "photo.png"}),
    )
    fields.update(overrides)
    return ContentRecord(**fields)


def _chunk(content_id="content-1", chunk_index=0, checksum="abc") -> ChunkRecord:
    return ChunkRecord(
        content_id=content_id,
        chunk_index=chunk_index,
        size=32,
        iv=b"\x02" * 16,
        checksum=checksum,
        created_at=1_700_000_000_000,
    )


class TestContentRepositoryUpsert:
    def test_create(self, test_db):
        stored = ContentRepository.upsert(_record())

        assert stored == _record()
        assert stored.is_complete is False
        assert ContentRepository.get_by_id("content-1") == stored

    def test_get_missing_returns_none(self, test_db):
        assert ContentRepository.get_by_id("missing") is None

    def test_update_never_blanks_set_fields(self, test_db):
        ContentRepository.upsert(_record())

        stored = ContentRepository.upsert(_record(
            content_type="",
            total_chunks=0,
            total_size=None,
            encryption_iv=b"",
            additional_metadata=None,
        ))

        assert stored.content_type == "image/png"
        assert stored.total_chunks == 3
        assert stored.total_size == 1000
        assert stored.encryption_iv == b"\x01" * 16
        assert json.loads(stored.additional_metadata) == {"fileName": "photo.png"}

    def test_update_merges_new_values(self, test_db):
        ContentRepository.upsert(_record(total_size=None, content_type=""))

        stored = ContentRepository.upsert(_record(total_size=5000, content_type="video/mp4"))

        assert stored.total_size == 5000
        assert stored.content_type == "video/mp4"

    def test_zero_size_is_distinct_from_unknown(self, test_db):
        assert ContentRepository.upsert(_record(total_size=None)).total_size is None

        assert ContentRepository.upsert(_record(total_size=0)).total_size == 0
        assert ContentRepository.upsert(_record(total_size=None)).total_size == 0

    def test_update_keeps_identity_and_flags(self, test_db):
        ContentRepository.upsert(_record())
        ContentRepository.set_complete("content-1")
        ContentRepository.set_pinned("content-1", True)

        stored = ContentRepository.upsert(_record(session_id="session-2", created_at=1))

        assert stored.session_id == "session-1"
        assert stored.created_at == 1_700_000_000_000
        assert stored.is_complete is True
        assert stored.is_pinned is True

    def test_large_file_flag_only_rises(self, test_db):
        ContentRepository.upsert(_record(is_large_file=True))

        stored = ContentRepository.upsert(_record(is_large_file=False))

        assert stored.is_large_file is True


class TestContentRepositoryMutations:
    def test_flags_on_missing_content(self, test_db):
        assert ContentRepository.set_complete("missing") is False
        assert ContentRepository.set_pinned("missing", True) is False
        assert ContentRepository.replace_additional_metadata("missing", "{}") is False

    def test_replace_additional_metadata(self, test_db):
        ContentRepository.upsert(_record())

        assert ContentRepository.replace_additional_metadata("content-1", '{"fileName": "b"}')
        assert ContentRepository.get_by_id("content-1").additional_metadata == '{"fileName": "b"}'

    def test_delete_cascades_to_chunks(self, test_db):
        ContentRepository.upsert(_record())
        ChunkRepository.upsert_chunk(_chunk(chunk_index=0))
        ChunkRepository.upsert_chunk(_chunk(chunk_index=1))

        assert ContentRepository.delete("content-1") is True
        assert ChunkRepository.get_chunks_by_content("content-1") == []
        assert ContentRepository.delete("content-1") is False


class TestContentRepositoryQueries:
    def test_list_by_session_orders_pinned_then_newest(self, test_db):
        ContentRepository.upsert(_record("old", created_at=1000))
        ContentRepository.upsert(_record("middle", created_at=2000))
        ContentRepository.upsert(_record("new", created_at=3000))
        ContentRepository.upsert(_record("other-session", session_id="session-2", created_at=4000))
        ContentRepository.set_pinned("old", True)

        records = ContentRepository.list_by_session("session-1", limit=10)

        assert [r.content_id for r in records] == ["old", "new", "middle"]
        assert ContentRepository.count_by_session("session-1") == 3
        assert ContentRepository.count_pinned("session-1") == 1

    def test_list_by_session_pages(self, test_db):
        for i in range(5):
            ContentRepository.upsert(_record(f"c{i}", created_at=1000 + i))

        page = ContentRepository.list_by_session("session-1", limit=2, offset=2)

        assert [r.content_id for r in page] == ["c2", "c1"]

    def test_list_unpinned_ids_skips_newest(self, test_db):
        for i in range(4):
            ContentRepository.upsert(_record(f"c{i}", created_at=1000 + i))
        ContentRepository.set_pinned("c0", True)

        assert ContentRepository.list_unpinned_ids("session-1") == ["c3", "c2", "c1"]
        assert ContentRepository.list_unpinned_ids("session-1", skip_newest=2) == ["c1"]

    def test_list_expired_ids_ignores_pinned(self, test_db):
        ContentRepository.upsert(_record("old", created_at=1000))
        ContentRepository.upsert(_record("old-pinned", created_at=1000))
        ContentRepository.upsert(_record("fresh", created_at=9000))
        ContentRepository.set_pinned("old-pinned", True)

        assert ContentRepository.list_expired_ids(5000) == ["old"]

    def test_list_all_ids(self, test_db):
        ContentRepository.upsert(_record("a"))
        ContentRepository.upsert(_record("b"))

        assert ContentRepository.list_all_ids() == {"a", "b"}


class TestChunkRepository:
    def test_upsert_overwrites_same_index(self, test_db):
        ContentRepository.upsert(_record())
        ChunkRepository.upsert_chunk(_chunk(checksum="first"))
        ChunkRepository.upsert_chunk(_chunk(checksum="second"))

        chunks = ChunkRepository.get_chunks_by_content("content-1")
        assert len(chunks) == 1
        assert chunks[0].checksum == "second"

    def test_chunks_ordered_by_index(self, test_db):
        ContentRepository.upsert(_record())
        for index in (2, 0, 1):
            ChunkRepository.upsert_chunk(_chunk(chunk_index=index))

        indices = [c.chunk_index for c in ChunkRepository.get_chunks_by_content("content-1")]
        assert indices == [0, 1, 2]

    def test_count_only_in_range(self, test_db):
        ContentRepository.upsert(_record())
        for index in (0, 1, 5):
            ChunkRepository.upsert_chunk(_chunk(chunk_index=index))

        assert ChunkRepository.count_chunks("content-1", 3) == 2

    def test_get_chunk(self, test_db):
        ContentRepository.upsert(_record())
        ChunkRepository.upsert_chunk(_chunk(chunk_index=1))

        assert ChunkRepository.get_chunk("content-1", 1) == _chunk(chunk_index=1)
        assert ChunkRepository.get_chunk("content-1", 0) is None

    def test_chunk_requires_content(self, test_db):
        with pytest.raises(sqlite3.IntegrityError):
            ChunkRepository.upsert_chunk(_chunk(content_id="missing"))


class TestDatabase:
    def test_wal_and_foreign_keys(self, test_db):
        with get_db_connection() as conn:
            assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
