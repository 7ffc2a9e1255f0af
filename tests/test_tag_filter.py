"""Tests for tag visibility and window reconciliation."""

import pytest

from fusen_vault.models.schema import NoteRecord
from fusen_vault.services.tag_filter import (
    filter_visible,
    normalize_path,
    plan_window_sweep,
    toggle_tag,
    window_label,
)


@pytest.fixture
def vault_notes():
    """Three notes: two tagged ``work`` and one untagged."""
    return [
        NoteRecord(path="/v/0001_d_a.md", tags=["work"]),
        NoteRecord(path="/v/0002_d_b.md", tags=["work", "home"]),
        NoteRecord(path="/v/0003_d_c.md", tags=[]),
    ]


class TestFilterVisible:
    """Tests for filter_visible."""

    def test_no_active_tags_shows_all(self, vault_notes):
        assert filter_visible(vault_notes, []) == [n.path for n in vault_notes]

    def test_mixed_tags(self, vault_notes):
        assert filter_visible(vault_notes, ["work"]) == ["/v/0001_d_a.md", "/v/0002_d_b.md"]

    def test_or_semantics(self, vault_notes):
        assert filter_visible(vault_notes, ["home", "nothing"]) == ["/v/0002_d_b.md"]

    def test_whitespace_trimmed_both_sides(self):
        notes = [NoteRecord(path="/v/a", tags=[" work "])]
        assert filter_visible(notes, ["work  "]) == ["/v/a"]

    def test_blank_active_tags_mean_no_filter(self, vault_notes):
        assert len(filter_visible(vault_notes, ["  "])) == 3

    def test_case_sensitive(self, vault_notes):
        assert filter_visible(vault_notes, ["Work"]) == []

    @pytest.mark.parametrize(
        "active", [["work"], ["home"], ["work", "home"], ["x"], ["home", "x"]]
    )
    def test_matches_set_definition(self, vault_notes, active):
        expected = [n.path for n in vault_notes if set(n.tags) & set(active)]
        assert filter_visible(vault_notes, active) == expected


class TestWindowLabels:
    """Tests for normalize_path and window_label."""

    def test_normalize(self):
        assert normalize_path("C:\\Users\\test") == "c:/users/test"
        assert normalize_path("  /path//to/file/  ") == "/path/to/file"

    def test_root_stays(self):
        assert normalize_path("/") == "/"

    def test_label_ignores_spelling_differences(self):
        assert window_label("C:\\Notes\\a.md") == window_label("c:/notes//a.md")

    def test_label_format(self):
        label = window_label("/v/0001_2026-01-01_Hello.md")
        assert label.startswith("note-")
        assert label[len("note-"):].isdigit()

    def test_known_values(self):
        # 32-bit rolling hash: "a" -> 97, "ab" -> 97*31 + 98
        assert window_label("a") == "note-97"
        assert window_label("ab") == "note-3105"

    def test_hash_wraps_to_32_bits(self):
        label = window_label("x" * 200)
        assert int(label[len("note-"):]) <= 2 ** 31

    def test_different_paths_differ(self):
        assert window_label("/v/a.md") != window_label("/v/b.md")


class TestWindowSweep:
    """Tests for plan_window_sweep and toggle_tag."""

    def test_show_and_hide(self):
        a, b = "/v/a.md", "/v/b.md"
        labels = [window_label(a), window_label(b), "main"]
        sweep = plan_window_sweep(labels, [a])
        assert sweep.show == [window_label(a)]
        assert sweep.hide == [window_label(b)]

    def test_utility_windows_untouched(self):
        sweep = plan_window_sweep(["main", "settings"], [], utility_labels=["main", "settings"])
        assert sweep.show == []
        assert sweep.hide == []

    def test_toggle_tag(self):
        assert toggle_tag([], "work") == ["work"]
        assert toggle_tag(["work", "home"], "work") == ["home"]
        assert toggle_tag(["home"], " work ") == ["home", "work"]
        assert toggle_tag(["home"], "  ") == ["home"]
