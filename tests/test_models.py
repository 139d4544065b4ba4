"""Tests for path normalization, the Note model and note files on disk."""
import datetime

import pytest

from bedrock_notes.exceptions import ErrorCode, NoteNotFoundError, ValidationError
from bedrock_notes.models.schema import Note, SimilarityResult, normalize_note_path


class TestNormalizeNotePath:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("alpha", "alpha"),
            ("alpha.md", "alpha"),
            ("  alpha  ", "alpha"),
            ("[[projects/beta]]", "projects/beta"),
            ("projects\\beta.md", "projects/beta"),
            ("./projects//beta", "projects/beta"),
        ],
    )
    def test_relative_forms(self, tmp_path, value, expected):
        assert normalize_note_path(value, tmp_path) == expected

    def test_absolute_path_under_root(self, tmp_path):
        assert normalize_note_path(str(tmp_path / "projects" / "beta.md"), tmp_path) == "projects/beta"

    def test_absolute_path_outside_root(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            normalize_note_path("/etc/passwd", tmp_path / "notes")
        assert exc_info.value.code == ErrorCode.PATH_TRAVERSAL_DETECTED

    def test_parent_segments_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            normalize_note_path("projects/../../secret", tmp_path)

    @pytest.mark.parametrize("value", ["", "   ", "[[]]", ".md", "./"])
    def test_empty_rejected(self, tmp_path, value):
        with pytest.raises(ValidationError):
            normalize_note_path(value, tmp_path)


class TestNoteModel:
    def test_derived_properties(self):
        note = Note(
            path="projects/alpha",
            content="# Alpha Project\n\nsee [[beta]]\n\n## Linked From\n[[gamma]]\n",
        )
        assert note.display_path == "projects/alpha"
        assert note.name == "alpha"
        assert note.title == "Alpha Project"
        assert note.marker == "[[projects/alpha]]"
        assert note.forward_links == ["beta"]
        assert note.backlinks == ["gamma"]

    def test_title_falls_back_to_name(self):
        assert Note(path="projects/alpha", content="no heading").title == "alpha"

    def test_naive_timestamp_becomes_utc(self):
        note = Note(path="a", last_modified=datetime.datetime(2024, 1, 1))
        assert note.last_modified.tzinfo == datetime.timezone.utc

    def test_similarity_result_is_a_tuple(self):
        result = SimilarityResult("alpha", 1.0)
        path, similarity = result
        assert (path, similarity) == ("alpha", 1.0)


class TestNoteFiles:
    def test_file_layout(self, note_files):
        assert note_files.file_path("projects/beta") == note_files.root / "projects" / "beta.md"

    def test_create_is_idempotent(self, note_files):
        note, created = note_files.create("alpha")
        assert created
        assert note.content == "# alpha\n\n\n## Linked From\n"
        again, created_again = note_files.create("alpha")
        assert not created_again
        assert again.content == note.content

    def test_write_is_atomic_and_leaves_no_temp_files(self, note_files):
        note_files.write("alpha", "first")
        note = note_files.write("alpha", "second")
        assert note.content == "second"
        assert [p.name for p in note_files.root.iterdir()] == ["alpha.md"]

    def test_read_missing(self, note_files):
        with pytest.raises(NoteNotFoundError):
            note_files.read("ghost")

    def test_delete(self, note_files):
        note_files.create("alpha")
        note_files.delete("alpha")
        assert not note_files.exists("alpha")
        with pytest.raises(NoteNotFoundError):
            note_files.delete("alpha")

    def test_list_paths_skips_hidden_and_other_files(self, note_files):
        note_files.create("zeta")
        note_files.create("projects/alpha")
        (note_files.root / ".trash").mkdir()
        (note_files.root / ".trash" / "old.md").write_text("x", encoding="utf-8")
        (note_files.root / "image.png").write_bytes(b"\x89PNG")
        assert note_files.list_paths() == ["projects/alpha", "zeta"]

    def test_glob_prefix(self, note_files):
        note_files.create("projects/beta-notes")
        note_files.create("beta")
        note_files.create("alphabet")
        assert note_files.glob("beta") == ["beta", "projects/beta-notes"]

    def test_glob_escapes_wildcards(self, note_files):
        note_files.create("alpha")
        assert note_files.glob("*") == []
