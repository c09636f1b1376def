"""Tests for incremental indexing."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from sqlalchemy import func, select

from notesage.errors import SegmentationError, StoreError
from notesage.notes.indexer import (
    IncrementalIndexer,
    ReindexPolicy,
    compute_checksum,
    index_notes_dir,
)
from notesage.notes.schema import RawDocument
from notesage.notes.store import Document, NoteStore, Section


def doc(path: str, content: str, tags: list[str] | None = None) -> RawDocument:
    return RawDocument(path=path, content=content, tags=tags or [])


def count(store: NoteStore, model) -> int:
    with store.session() as session:
        return session.scalar(select(func.count()).select_from(model))


class TestComputeChecksum:
    def test_stable(self):
        assert compute_checksum("hello") == compute_checksum("hello")

    def test_sha256_base64(self):
        assert compute_checksum("") == "47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU="

    def test_differs(self):
        assert compute_checksum("a") != compute_checksum("b")


class TestIndexAll:
    def test_inserts_new_documents(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        result = indexer.index_all([
            doc("a.md", "# A\n\nalpha\n", tags=["x"]),
            doc("b.md", "beta\n"),
        ])
        assert result.changed_count == 2
        assert result.unchanged_count == 0
        assert sorted(result.modified) == ["a.md", "b.md"]
        assert result.failed == []
        assert count(store, Section) == 2

    def test_section_embedding_matches_content(self, store: NoteStore, embedder):
        IncrementalIndexer(store, embedder).index_all([doc("a.md", "# A\n\nalpha\n")])
        section = store.all_sections()[0]
        assert section.content == "# A\n\nalpha"
        assert embedder.calls == ["# A\n\nalpha"]
        assert section.embedding == embedder.embed("# A\n\nalpha")
        assert section.token_count == max(1, len(section.content) // 4)
        assert section.slug == "a"

    def test_rerun_is_noop(self, store: NoteStore, embedder):
        documents = [doc("a.md", "# A\n\nalpha\n"), doc("b.md", "beta\n")]
        indexer = IncrementalIndexer(store, embedder)
        indexer.index_all(documents)
        embedder.calls.clear()

        result = indexer.index_all(documents)
        assert result.changed_count == 0
        assert result.unchanged_count == 2
        assert result.modified == []
        assert embedder.calls == []
        assert count(store, Document) == 2
        assert count(store, Section) == 2

    def test_rerun_is_noop_under_checksum_policy(self, store: NoteStore, embedder):
        documents = [doc("a.md", "alpha\n")]
        indexer = IncrementalIndexer(store, embedder, policy=ReindexPolicy.CHECKSUM)
        indexer.index_all(documents)
        result = indexer.index_all(documents)
        assert result.changed_count == 0
        assert result.unchanged_count == 1
        assert count(store, Document) == 1

    def test_path_policy_ignores_edits(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder, policy=ReindexPolicy.PATH)
        indexer.index_all([doc("a.md", "old text\n")])

        result = indexer.index_all([doc("a.md", "new text\n")])
        assert result.unchanged_count == 1
        assert result.changed_count == 0
        assert [s.content for s in store.all_sections()] == ["old text"]

    def test_checksum_policy_replaces_edited(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder, policy=ReindexPolicy.CHECKSUM)
        indexer.index_all([doc("a.md", "old text\n", tags=["keep"])])

        result = indexer.index_all([doc("a.md", "new text\n", tags=["keep"])])
        assert result.changed_count == 1
        assert result.modified == ["a.md"]
        assert [s.content for s in store.all_sections()] == ["new text"]
        assert count(store, Document) == 1
        assert store.get_document("a.md").checksum == compute_checksum("new text\n")
        assert [t.name for t in store.list_tags()] == ["keep"]

    def test_checksum_covers_front_matter(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder, policy=ReindexPolicy.CHECKSUM)
        first = RawDocument(path="a.md", content="body\n", source="---\ntags: a\n---\nbody\n")
        second = RawDocument(path="a.md", content="body\n", source="---\ntags: b\n---\nbody\n")
        indexer.index_all([first])
        assert indexer.index_all([second]).changed_count == 1

    def test_embedding_failure_leaves_no_rows(self, store: NoteStore, make_embedder):
        embedder = make_embedder(fail_on=("poison",))
        indexer = IncrementalIndexer(store, embedder)
        result = indexer.index_all([
            doc("bad.md", "# A\n\nfine\n\n# B\n\npoison here\n"),
            doc("good.md", "all good\n"),
        ])
        assert result.failed == ["bad.md"]
        assert result.modified == ["good.md"]
        assert not store.exists("bad.md")
        assert [s.content for s in store.all_sections()] == ["all good"]

    def test_failed_document_is_retried_next_pass(self, store: NoteStore, make_embedder):
        failing = IncrementalIndexer(store, make_embedder(fail_on=("poison",)))
        failing.index_all([doc("a.md", "poison\n")])

        result = IncrementalIndexer(store, make_embedder()).index_all([doc("a.md", "poison\n")])
        assert result.changed_count == 1

    def test_segmentation_failure_records_document(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        with patch("notesage.notes.indexer.segment", side_effect=SegmentationError("bad")):
            result = indexer.index_all([doc("a.md", "whatever\n")])
        assert result.changed_count == 1
        assert store.exists("a.md")
        assert store.all_sections() == []

        # Not retried on the next pass
        assert indexer.index_all([doc("a.md", "whatever\n")]).unchanged_count == 1

    def test_store_error_skips_document(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        with patch.object(store, "exists", side_effect=[StoreError("down"), False]):
            result = indexer.index_all([doc("a.md", "one\n"), doc("b.md", "two\n")])
        assert result.failed == ["a.md"]
        assert result.modified == ["b.md"]

    def test_shared_refresh_version(self, store: NoteStore, embedder):
        IncrementalIndexer(store, embedder).index_all([doc("a.md", "one\n"), doc("b.md", "two\n")])
        a = store.get_document("a.md")
        b = store.get_document("b.md")
        assert a.refresh_version == b.refresh_version
        assert a.refreshed_at == b.refreshed_at

    def test_parallel_workers_match_serial(self, make_embedder):
        documents = [doc(f"n{i}.md", f"# N{i}\n\nbody {i}\n") for i in range(6)]
        serial = NoteStore("sqlite://")
        parallel = NoteStore("sqlite://")

        first = IncrementalIndexer(serial, make_embedder()).index_all(documents)
        second = IncrementalIndexer(parallel, make_embedder(), max_workers=4).index_all(documents)

        assert first.modified == second.modified
        assert [s.content for s in serial.all_sections()] == [s.content for s in parallel.all_sections()]

    def test_duplicate_tags_are_fine(self, store: NoteStore, embedder):
        IncrementalIndexer(store, embedder).index_all([
            doc("a.md", "one\n", tags=["t", "t"]),
            doc("b.md", "two\n", tags=["t"]),
        ])
        assert [t.name for t in store.list_tags()] == ["t"]


class TestPrune:
    def test_removes_missing_paths(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        indexer.index_all([doc("a.md", "one\n"), doc("b.md", "two\n")])

        removed = indexer.prune(["b.md"])
        assert removed == ["a.md"]
        assert store.list_paths() == ["b.md"]

    def test_nothing_to_remove(self, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        indexer.index_all([doc("a.md", "one\n")])
        assert indexer.prune(["a.md"]) == []


class TestIndexNotesDir:
    def test_indexes_project_notes(self, tmp_project: Path, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        result = index_notes_dir(tmp_project / "notes", indexer)
        assert sorted(result.modified) == ["gears.md", "journal/monday.md"]
        assert sorted(t.name for t in store.list_tags()) == ["cad", "design", "journal"]

    def test_prunes_deleted_files(self, tmp_project: Path, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        index_notes_dir(tmp_project / "notes", indexer)

        (tmp_project / "notes" / "gears.md").unlink()
        result = index_notes_dir(tmp_project / "notes", indexer)
        assert result.removed == ["gears.md"]
        assert result.unchanged_count == 1

    def test_prune_disabled(self, tmp_project: Path, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        index_notes_dir(tmp_project / "notes", indexer)

        (tmp_project / "notes" / "gears.md").unlink()
        result = index_notes_dir(tmp_project / "notes", indexer, prune=False)
        assert result.removed == []
        assert store.exists("gears.md")

    def test_unreadable_note_is_kept(self, tmp_project: Path, store: NoteStore, embedder):
        indexer = IncrementalIndexer(store, embedder)
        index_notes_dir(tmp_project / "notes", indexer)

        gears = tmp_project / "notes" / "gears.md"
        gears.write_bytes(gears.read_bytes() + b"\xff")
        result = index_notes_dir(tmp_project / "notes", indexer, prune=True)

        assert result.removed == []
        assert result.failed == ["gears.md"]
        assert store.exists("gears.md")
