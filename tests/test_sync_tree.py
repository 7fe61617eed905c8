"""Tests for the config tree model.

Covers:
- get/set/remove/has with delimited paths and the root path
- Intermediate creation and scalar-blocked paths
- Copy isolation (no aliasing of internal mappings)
- merge() under both policies, including first-conflict reporting
- walk()/leaves() ordering
- Strict value equality
"""

from __future__ import annotations

import pytest

from project_config.sync.errors import ConflictError, PathError
from project_config.sync.tree import (
    NOT_FOUND,
    ConfigTree,
    MergePolicy,
    is_within,
    join_path,
    split_path,
    top_level_key,
    values_equal,
)

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


class TestPathHelpers:
    def test_split_root_is_empty(self):
        assert split_path("") == []

    def test_split_nested(self):
        assert split_path("system.email.host") == ["system", "email", "host"]

    def test_split_rejects_empty_segment(self):
        with pytest.raises(PathError):
            split_path("system..name")

    def test_join_skips_root(self):
        assert join_path("", "system") == "system"
        assert join_path("sections", "news") == "sections.news"

    def test_top_level_key(self):
        assert top_level_key("sections.news.handle") == "sections"
        assert top_level_key("") == ""

    def test_is_within(self):
        assert is_within("sections.news", "sections")
        assert is_within("sections", "sections")
        assert not is_within("sectionsx", "sections")
        assert is_within("anything", "")


class TestValuesEqual:
    def test_bool_and_int_differ(self):
        assert not values_equal(True, 1)

    def test_int_and_float_differ(self):
        assert not values_equal(1, 1.0)

    def test_nested_mappings(self):
        assert values_equal({"a": {"b": [1, "x"]}}, {"a": {"b": [1, "x"]}})
        assert not values_equal({"a": {"b": [1]}}, {"a": {"b": [True]}})


# ---------------------------------------------------------------------------
# Point access
# ---------------------------------------------------------------------------


class TestConfigTreeAccess:
    def test_get_missing_returns_sentinel(self):
        tree = ConfigTree({"system": {"name": "Site"}})
        assert tree.get("system.missing") is NOT_FOUND
        assert tree.get("system.name.deeper") is NOT_FOUND

    def test_get_root_returns_whole_tree(self):
        tree = ConfigTree({"a": 1})
        assert tree.get("") == {"a": 1}

    def test_get_default(self):
        assert ConfigTree().get("x", None) is None

    def test_set_creates_intermediates(self):
        tree = ConfigTree()
        tree.set("sections.news.handle", "news")
        assert tree.to_dict() == {"sections": {"news": {"handle": "news"}}}

    def test_set_through_scalar_raises(self):
        tree = ConfigTree({"system": {"name": "Site"}})
        with pytest.raises(PathError, match="system.name"):
            tree.set("system.name.first", "x")

    def test_set_root_requires_mapping(self):
        tree = ConfigTree()
        with pytest.raises(PathError):
            tree.set("", "scalar")
        tree.set("", {"a": 1})
        assert tree.to_dict() == {"a": 1}

    def test_set_rejects_unsupported_value(self):
        with pytest.raises(ValueError):
            ConfigTree().set("a", object())

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan")])
    def test_set_rejects_non_finite_float(self, value):
        with pytest.raises(ValueError, match="at 'system.limit' is not a finite number"):
            ConfigTree().set("system.limit", value)

    def test_constructor_rejects_nested_nan(self):
        with pytest.raises(ValueError, match=r"at 'a\.b\[1\]'"):
            ConfigTree({"a": {"b": [1.0, float("nan")]}})

    def test_remove_present_and_absent(self):
        tree = ConfigTree({"a": {"b": 1, "c": 2}})
        assert tree.remove("a.b") is True
        assert tree.remove("a.b") is False
        assert tree.remove("x.y") is False
        assert tree.to_dict() == {"a": {"c": 2}}

    def test_has(self):
        tree = ConfigTree({"a": {"b": None}})
        assert tree.has("a.b")
        assert not tree.has("a.c")

    def test_constructor_rejects_dotted_key(self):
        with pytest.raises(ValueError, match="cannot contain"):
            ConfigTree({"a.b": 1})


class TestConfigTreeIsolation:
    def test_get_returns_copy(self):
        tree = ConfigTree({"a": {"b": 1}})
        sub = tree.get("a")
        sub["b"] = 99
        assert tree.get("a.b") == 1

    def test_constructor_copies_input(self):
        data = {"a": {"b": 1}}
        tree = ConfigTree(data)
        data["a"]["b"] = 2
        assert tree.get("a.b") == 1

    def test_copy_is_independent(self):
        tree = ConfigTree({"a": {"b": 1}})
        clone = tree.copy()
        clone.set("a.b", 2)
        assert tree.get("a.b") == 1

    def test_equality_is_structural(self):
        assert ConfigTree({"a": 1, "b": 2}) == ConfigTree({"b": 2, "a": 1})
        assert ConfigTree({"a": 1}) == {"a": 1}
        assert ConfigTree({"a": 1}) != ConfigTree({"a": True})


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


class TestConfigTreeMerge:
    def test_overwrite_recurses_into_mappings(self):
        base = ConfigTree({"system": {"name": "A", "live": True}})
        base.merge({"system": {"name": "B"}, "email": {"from": "x"}})
        assert base.to_dict() == {
            "system": {"name": "B", "live": True},
            "email": {"from": "x"},
        }

    def test_overwrite_replaces_type_change(self):
        base = ConfigTree({"a": {"b": 1}})
        base.merge({"a": "flat"})
        assert base.to_dict() == {"a": "flat"}

    def test_fail_on_conflict_raises_first_path(self):
        base = ConfigTree({"a": {"x": 1, "y": 2}, "b": 1})
        with pytest.raises(ConflictError) as exc_info:
            base.merge({"a": {"y": 3, "x": 4}, "b": 2}, MergePolicy.FAIL_ON_CONFLICT)
        assert exc_info.value.path == "a.x"

    def test_fail_on_conflict_leaves_tree_unchanged(self):
        base = ConfigTree({"a": 1})
        with pytest.raises(ConflictError):
            base.merge({"a": 2, "b": 3}, MergePolicy.FAIL_ON_CONFLICT)
        assert base.to_dict() == {"a": 1}

    def test_fail_on_conflict_allows_disjoint_mappings(self):
        base = ConfigTree({"sections": {"news": {"a": 1}}})
        base.merge(
            {"sections": {"blog": {"a": 2}}}, MergePolicy.FAIL_ON_CONFLICT
        )
        assert base.get("sections.blog.a") == 2

    def test_merge_does_not_alias_other(self):
        other = ConfigTree({"a": {"b": 1}})
        base = ConfigTree()
        base.merge(other)
        base.set("a.b", 2)
        assert other.get("a.b") == 1


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


class TestConfigTreeTraversal:
    def test_walk_is_preorder_sorted(self):
        tree = ConfigTree({"b": 1, "a": {"d": 2, "c": 3}})
        assert [p for p, _ in tree.walk()] == ["a", "a.c", "a.d", "b"]

    def test_leaves_include_empty_mappings_and_lists(self):
        tree = ConfigTree({"a": {}, "b": [1, 2], "c": {"d": 1}})
        assert list(tree.leaves()) == [("a", {}), ("b", [1, 2]), ("c.d", 1)]

    def test_sections_sorted(self):
        assert ConfigTree({"z": 1, "a": 2}).sections() == ["a", "z"]
