"""
Tests for the identity map.
"""

import pytest

from recordmap.core.config import MergePolicy
from recordmap.model.definition import ModelBuilder
from recordmap.model.model_type import ModelType
from recordmap.model.record import RecordState


@pytest.fixture
def Tag():
    return ModelType(ModelBuilder("tag").encode("label", "color").build())


class TestEnsure:
    """Tests for IdentityMap.ensure."""

    def test_builds_and_registers_unknown_key(self, Tag):
        record = Tag.identity_map.ensure(1, {"id": 1, "label": "python"})
        assert record.id == 1
        assert record.get("label") == "python"
        assert Tag.identity_map.get(1) is record
        assert 1 in Tag.identity_map

    def test_same_key_yields_same_instance(self, Tag):
        first = Tag.identity_map.ensure(1, {"id": 1, "label": "python"})
        second = Tag.identity_map.ensure(1, {"id": 1, "label": "py"})
        assert first is second
        assert first.get("label") == "py"
        assert len(Tag.identity_map) == 1

    def test_candidate_record_is_registered(self, Tag):
        candidate = Tag.new(id=3)
        assert Tag.identity_map.ensure(3, record=candidate) is candidate

    def test_candidate_loses_to_existing(self, Tag):
        existing = Tag.identity_map.ensure(3)
        candidate = Tag.new(id=3)
        assert Tag.identity_map.ensure(3, record=candidate) is existing

    def test_none_key_is_never_registered(self, Tag):
        record = Tag.identity_map.ensure(None, {"label": "loose"})
        assert record.id is None
        assert record.get("label") == "loose"
        assert len(Tag.identity_map) == 0

    def test_factory_record_from_bare_key_is_unloaded(self, Tag):
        assert Tag.identity_map.ensure(9).state is RecordState.UNLOADED


class TestMergePolicy:
    """Tests for how decoded data meets local changes."""

    def test_overwrite_replaces_dirty_values(self, Tag):
        record = Tag.identity_map.ensure(1, {"id": 1, "label": "python", "color": "blue"})
        record.set("label", "local")

        Tag.identity_map.ensure(1, {"label": "remote", "color": "green"})

        assert record.get("label") == "remote"
        assert record.get("color") == "green"
        assert "label" not in record.dirty_keys

    def test_preserve_dirty_keeps_local_edits(self):
        Tag = ModelType(
            ModelBuilder("tag").encode("label", "color").merge_policy("preserve_dirty").build()
        )
        assert Tag.identity_map.merge_policy is MergePolicy.PRESERVE_DIRTY
        record = Tag.identity_map.ensure(1, {"id": 1, "label": "python", "color": "blue"})
        record.set("label", "local")

        Tag.identity_map.ensure(1, {"label": "remote", "color": "green"})

        assert record.get("label") == "local"
        assert record.get("color") == "green"
        assert record.dirty_keys == {"label"}

    def test_merge_does_not_dirty(self, Tag):
        record = Tag.identity_map.ensure(1, {"id": 1, "label": "python"})
        assert not record.is_dirty


class TestMembership:
    """Tests for remove, clear and ordering."""

    def test_insertion_order(self, Tag):
        for key in (3, 1, 2):
            Tag.identity_map.ensure(key)
        assert [record.id for record in Tag.identity_map] == [3, 1, 2]
        assert Tag.first.id == 3
        assert Tag.last.id == 2

    def test_remove(self, Tag):
        Tag.identity_map.ensure(1)
        Tag.identity_map.remove(1)
        Tag.identity_map.remove(1)
        assert Tag.identity_map.get(1) is None
        assert Tag.loaded == []

    def test_clear_then_rebuild_is_new_instance(self, Tag):
        before = Tag.identity_map.ensure(1)
        Tag.clear()
        assert Tag.first is None
        assert Tag.identity_map.ensure(1) is not before

    def test_get_none(self, Tag):
        assert Tag.get(None) is None
