"""Tests for the pure effect planner."""

import os

import pytest

from tests.fakes import VAULT, note_text
from fusen_vault.exceptions import ErrorCode, PathError, ValidationError
from fusen_vault.models.effects import Batch, RenameNote, WriteNote, flatten, is_noop
from fusen_vault.services.effect_planner import (
    all_unique_tags,
    build_create_note,
    handle_add_tag,
    handle_remove_tag,
    handle_save,
    handle_toggle_always_on_top,
    handle_update_geometry,
    plan_rename,
    record_from_content,
    round_half_away,
)
from fusen_vault.state import NoteMirror
from fusen_vault.storage.frontmatter_fields import extract_meta, split_frontmatter

PATH = os.path.join(VAULT, "0001_2026-01-01_Hello.md")


@pytest.fixture
def seeded():
    """Mirror holding one note, plus that note's header and body."""
    content = note_text()
    front, body = split_frontmatter(content)
    mirror = NoteMirror([record_from_content(PATH, content)])
    return mirror, front, body


class TestHandleSaveRename:
    """Saving with renaming allowed."""

    def test_rename_on_edit(self, seeded):
        """First line 'World' renames Hello -> World, then writes only at the new path."""
        mirror, front, body = seeded
        final_path, effect = handle_save(
            mirror, PATH, "World\nbody", body, front, True, today="2026-02-02"
        )

        new_path = os.path.join(VAULT, "0001_2026-01-01_World.md")
        assert final_path == new_path
        steps = flatten(effect)
        assert steps[0] == RenameNote(PATH, new_path)
        assert [type(s) for s in steps] == [RenameNote, WriteNote]
        assert steps[1].path == new_path
        assert all(s.path != PATH for s in steps if isinstance(s, WriteNote))
        assert "updated: 2026-02-02" in steps[1].content

    def test_rename_moves_mirror_record(self, seeded):
        mirror, front, body = seeded
        final_path, _ = handle_save(mirror, PATH, "World\nbody", body, front, True)
        assert mirror.find(PATH) is None
        record = mirror.find(final_path)
        assert record.context == "World"
        assert record.seq == 1

    def test_rename_keeps_creation_date_from_filename(self, seeded):
        mirror, front, body = seeded
        final_path, _ = handle_save(
            mirror, PATH, "World", body, front, True, today="2030-12-31"
        )
        assert os.path.basename(final_path) == "0001_2026-01-01_World.md"

    def test_same_title_does_not_rename(self, seeded):
        mirror, front, body = seeded
        final_path, effect = handle_save(mirror, PATH, "Hello\nchanged", body, front, True)
        assert final_path == PATH
        assert [type(s) for s in flatten(effect)] == [WriteNote]

    def test_empty_first_line_does_not_rename(self, seeded):
        mirror, front, body = seeded
        final_path, _ = handle_save(mirror, PATH, "\nsecond line", body, front, True)
        assert final_path == PATH

    def test_first_line_is_sanitized(self, seeded):
        mirror, front, body = seeded
        final_path, _ = handle_save(mirror, PATH, "a/b: c", body, front, True)
        assert os.path.basename(final_path) == "0001_2026-01-01_a b  c.md"

    def test_reserved_only_first_line_does_not_rename(self, seeded):
        mirror, front, body = seeded
        final_path, _ = handle_save(mirror, PATH, "///", body, front, True)
        assert final_path == PATH

    def test_second_identical_save_is_noop(self, seeded):
        mirror, front, body = seeded
        path1, effect1 = handle_save(
            mirror, PATH, "World\nnew", body, front, True, today="2026-02-02"
        )
        written = [s for s in flatten(effect1) if isinstance(s, WriteNote)][0]
        front2, body2 = split_frontmatter(written.content)

        path2, effect2 = handle_save(
            mirror, path1, body2, body2, front2, True, today="2026-03-03"
        )
        assert path2 == path1
        assert effect2 == Batch()
        assert mirror.find(path1).updated == "2026-02-02"


class TestHandleSaveNoRename:
    """Saving with renaming disabled."""

    def test_changed_body_writes_in_place(self, seeded):
        mirror, front, body = seeded
        final_path, effect = handle_save(
            mirror, PATH, "Totally different", body, front, False, today="2026-05-05"
        )
        assert final_path == PATH
        assert isinstance(effect, WriteNote)
        assert effect.path == PATH
        assert effect.content.endswith("\n\nTotally different")
        assert mirror.find(PATH).context == "Hello"
        assert mirror.find(PATH).updated == "2026-05-05"

    def test_unchanged_is_empty_batch(self, seeded):
        mirror, front, body = seeded
        _, effect = handle_save(mirror, PATH, body, body, front, False)
        assert is_noop(effect)

    def test_unchanged_keeps_mirrored_date(self, seeded):
        mirror, front, body = seeded
        handle_save(mirror, PATH, body, body, front, False, today="2099-01-01")
        assert mirror.find(PATH).updated == "2026-01-01"

    def test_color_change_counts_as_content_change(self, seeded):
        mirror, front, body = seeded
        new_front = front.replace("#f7e9b0", "#ffffff")
        _, effect = handle_save(mirror, PATH, body, body, new_front, False, today="2026-06-06")
        assert isinstance(effect, WriteNote)
        assert "updated: 2026-06-06" in effect.content
        assert mirror.find(PATH).background_color == "#ffffff"

    def test_tag_change_counts_as_content_change(self, seeded):
        mirror, front, body = seeded
        new_front = front.replace("x: 100", "tags: [a]\nx: 100")
        _, effect = handle_save(mirror, PATH, body, body, new_front, False, today="2026-06-06")
        assert "updated: 2026-06-06" in effect.content

    def test_geometry_drift_forces_write_without_new_date(self, seeded):
        mirror, front, body = seeded
        mirror.find(PATH).x = 55.0
        _, effect = handle_save(mirror, PATH, body, body, front, False, today="2099-01-01")
        assert isinstance(effect, WriteNote)
        assert "updated: 2026-01-01" in effect.content
        assert mirror.find(PATH).x == 100.0

    def test_unknown_note_is_written_and_added(self):
        mirror = NoteMirror()
        front, body = split_frontmatter(note_text())
        _, effect = handle_save(mirror, PATH, body, body, front, False, today="2026-07-07")
        assert isinstance(effect, WriteNote)
        assert mirror.find(PATH).updated == "2026-07-07"


class TestHandleSavePaths:
    """Path validation."""

    def test_no_parent(self):
        with pytest.raises(PathError) as exc:
            handle_save(NoteMirror(), "0001_2026-01-01_a.md", "b", "a", "", True)
        assert exc.value.code == ErrorCode.PATH_NO_PARENT

    def test_no_filename(self):
        with pytest.raises(PathError) as exc:
            handle_save(NoteMirror(), VAULT + os.sep, "b", "a", "", True)
        assert exc.value.code == ErrorCode.PATH_NO_FILENAME


class TestGeometry:
    """Tests for handle_update_geometry."""

    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (-0.5, -1), (2.4, 2), (2.5, 3), (-2.5, -3), (-2.6, -3), (0.0, 0)],
    )
    def test_round_half_away_from_zero(self, value, expected):
        assert round_half_away(value) == expected

    def test_writes_rounded_values(self, seeded):
        mirror, _, _ = seeded
        effect = handle_update_geometry(mirror, PATH, note_text(), 10.4, 20.5, 300.6, -2.5)
        assert isinstance(effect, WriteNote)
        fields = extract_meta(effect.content)
        assert fields.geometry == (10.0, 21.0, 301.0, -3.0)
        assert mirror.find(PATH).geometry == (10.0, 21.0, 301.0, -3.0)

    def test_keeps_everything_else(self, seeded):
        mirror, _, _ = seeded
        content = note_text(body="x: 1 stays in body")
        effect = handle_update_geometry(mirror, PATH, content, 1, 2, 3, 4)
        assert effect.content.endswith("\n\nx: 1 stays in body")
        assert "backgroundColor: #f7e9b0\n" in effect.content

    def test_short_keys_are_kept(self, mirror):
        content = "---\nw: 1\nh: 2\n---\n\nb"
        effect = handle_update_geometry(mirror, PATH, content, 10, 20, 300, 200)
        assert effect.content == "---\nw: 300\nh: 200\nx: 10\ny: 20\n---\n\nb"

    def test_unknown_note_still_writes(self, mirror):
        effect = handle_update_geometry(mirror, PATH, note_text(), 1, 1, 1, 1)
        assert effect.path == PATH
        assert len(mirror) == 0


class TestFlagsAndTags:
    """Tests for always-on-top and tag handlers."""

    def test_toggle_always_on_top(self, seeded):
        mirror, _, _ = seeded
        on = handle_toggle_always_on_top(mirror, PATH, note_text(), True)
        assert "alwaysOnTop: true\n---" in on.content
        assert mirror.find(PATH).always_on_top is True

        off = handle_toggle_always_on_top(mirror, PATH, on.content, False)
        assert "alwaysOnTop: false" in off.content
        assert "alwaysOnTop: true" not in off.content
        assert mirror.find(PATH).always_on_top is False

    def test_add_tag_sorts_and_dedupes(self, seeded):
        mirror, _, _ = seeded
        content = note_text(extra="tags: [work]\n")
        effect = handle_add_tag(mirror, PATH, content, "home")
        assert "tags: [home, work]\n" in effect.content
        assert mirror.find(PATH).tags == ["home", "work"]

        again = handle_add_tag(mirror, PATH, effect.content, "work")
        assert "tags: [home, work]\n" in again.content

    def test_add_tag_inserts_missing_line(self, seeded):
        mirror, _, _ = seeded
        effect = handle_add_tag(mirror, PATH, note_text(), "idea")
        assert extract_meta(effect.content).tags == ["idea"]

    @pytest.mark.parametrize("bad", ["", "   ", "a,b", "[x]"])
    def test_add_tag_rejects_unstorable_names(self, seeded, bad):
        mirror, _, _ = seeded
        with pytest.raises(ValidationError) as exc:
            handle_add_tag(mirror, PATH, note_text(), bad)
        assert exc.value.code == ErrorCode.TAG_INVALID

    def test_remove_tag(self, seeded):
        mirror, _, _ = seeded
        content = note_text(extra="tags: [a, b, c]\n")
        effect = handle_remove_tag(mirror, PATH, content, "b")
        assert "tags: [a, c]\n" in effect.content
        assert mirror.find(PATH).tags == ["a", "c"]

    def test_remove_tag_is_exact_match(self, seeded):
        mirror, _, _ = seeded
        content = note_text(extra="tags: [Work, work]\n")
        effect = handle_remove_tag(mirror, PATH, content, "work")
        assert extract_meta(effect.content).tags == ["Work"]

    @pytest.mark.parametrize("original", [[], ["a"], ["a", "c"], ["x", "y", "z"]])
    def test_add_then_remove_restores_tags(self, seeded, original):
        mirror, _, _ = seeded
        content = note_text(extra=f"tags: [{', '.join(original)}]\n")
        added = handle_add_tag(mirror, PATH, content, "b")
        removed = handle_remove_tag(mirror, PATH, added.content, "b")
        assert set(extract_meta(removed.content).tags) == set(original)

    def test_all_unique_tags(self):
        mirror = NoteMirror(
            [
                record_from_content("/v/1.md", "---\ntags: [b, a]\n---\n"),
                record_from_content("/v/2.md", "---\ntags: [c, a]\n---\n"),
                record_from_content("/v/3.md", "---\n---\n"),
            ]
        )
        assert all_unique_tags(mirror) == ["a", "b", "c"]


class TestRenameAndCreate:
    """Tests for plan_rename and build_create_note."""

    def test_plan_rename_keeps_seq_and_date(self, seeded):
        mirror, _, _ = seeded
        new_path, effect = plan_rename(mirror, PATH, "Renamed: yes", note_text())
        assert new_path == os.path.join(VAULT, "0001_2026-01-01_Renamed  yes.md")
        assert effect == RenameNote(PATH, new_path)
        assert mirror.find(new_path).context == "Renamed  yes"
        assert mirror.find(PATH) is None

    def test_plan_rename_rejects_foreign_names(self, mirror):
        with pytest.raises(ValidationError):
            plan_rename(mirror, os.path.join(VAULT, "notes.md"), "x", "")

    def test_plan_rename_rejects_empty_title(self, seeded):
        mirror, _, _ = seeded
        with pytest.raises(ValidationError):
            plan_rename(mirror, PATH, " / ", note_text())

    def test_build_create_note(self):
        created = build_create_note(VAULT, "新規メモ", 12, today="2026-01-12")
        assert created.filename == "0012_2026-01-12_新規メモ.md"
        assert created.path == os.path.join(VAULT, created.filename)
        assert created.content == created.frontmatter.rstrip("\n") + "\n\n" + created.body
        assert created.body == "ここにコンテキストを書く！"
        record = created.record
        assert (record.seq, record.context, record.updated) == (12, "新規メモ", "2026-01-12")
        assert record.geometry == (100.0, 100.0, 400.0, 300.0)
        assert record.background_color == "#f7e9b0"

    def test_build_create_note_sanitizes_title(self):
        created = build_create_note(VAULT, "a/b", 1, today="2026-01-12")
        assert created.filename == "0001_2026-01-12_a b.md"

    def test_build_create_note_blank_title(self):
        created = build_create_note(VAULT, "  ", 1, today="2026-01-12")
        assert created.filename == "0001_2026-01-12_untitled.md"
