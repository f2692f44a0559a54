"""
Unit tests for option hashing and the rebuild decision.
"""

import copy

import pytest

from unifybuild.build.hashing import compute_option_hashes, needs_rebuild, stable_hash


@pytest.fixture
def options():
    return {
        "version": 4,
        "global": {"use-microLIB": True},
        "c/cpp-compiler": {"optimization": "level-0", "c99-mode": True},
        "asm-compiler": {},
        "linker": {"output-format": "elf"},
        "afterBuildTasks": [],
    }


class TestStableHash:
    def test_key_order_does_not_matter(self):
        assert stable_hash({"a": 1, "b": 2}) == stable_hash({"b": 2, "a": 1})

    def test_value_change_changes_hash(self):
        assert stable_hash({"a": 1}) != stable_hash({"a": 2})


class TestComputeOptionHashes:
    def test_stable_on_unchanged_input(self, options):
        first = compute_option_hashes(["A=1"], options)
        second = compute_option_hashes(["A=1"], copy.deepcopy(options))

        assert first == second

    def test_only_structured_categories_are_hashed(self, options):
        hashes = compute_option_hashes(["A=1"], options)

        assert set(hashes) == {
            "c/cpp-defines", "global", "c/cpp-compiler", "asm-compiler", "linker", "afterBuildTasks"
        }

    def test_compiler_change_leaves_linker_hash(self, options):
        before = compute_option_hashes([], options)
        options["c/cpp-compiler"]["optimization"] = "level-3"
        after = compute_option_hashes([], options)

        assert before["c/cpp-compiler"] != after["c/cpp-compiler"]
        assert before["linker"] == after["linker"]
        assert before["global"] == after["global"]

    def test_no_define_list(self, options):
        assert "c/cpp-defines" not in compute_option_hashes(None, options)


class TestNeedsRebuild:
    def test_missing_previous_hash(self, options):
        assert needs_rebuild(None, compute_option_hashes([], options))

    def test_unchanged(self, options):
        sha = compute_option_hashes(["A"], options)

        assert not needs_rebuild(dict(sha), sha)

    def test_linker_change_is_incremental(self, options):
        old = compute_option_hashes(["A"], options)
        options["linker"]["output-format"] = "lib"

        assert not needs_rebuild(old, compute_option_hashes(["A"], options))

    @pytest.mark.parametrize("category", ["global", "c/cpp-compiler", "asm-compiler"])
    def test_category_change_needs_rebuild(self, options, category):
        old = compute_option_hashes(["A"], options)
        options[category]["changed"] = True

        assert needs_rebuild(old, compute_option_hashes(["A"], options))

    def test_define_change_needs_rebuild(self, options):
        old = compute_option_hashes(["A"], options)

        assert needs_rebuild(old, compute_option_hashes(["A", "B"], options))
