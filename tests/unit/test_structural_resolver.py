"""
Unit tests for the structural list <-> repository resolver.
"""

from unittest.mock import Mock

import pytest

from integrity_sync.exceptions import CapabilityError
from integrity_sync.sync.structural_resolver import StructuralResolver


class TestResolveTarget:
    """owner/repo -> list id."""

    def test_creates_missing_list_once(self, todo, resolver):
        """A second resolution returns the list created by the first."""
        group_id = todo.add_group("Acme")

        first = resolver.resolve_target("Acme", "widgets")
        second = resolver.resolve_target("Acme", "widgets")

        assert first is not None
        assert first == second
        assert todo.calls_to("create_list_in_group") == [
            ("create_list_in_group", group_id, "widgets")
        ]

    def test_creates_once_without_mapping_cache(self, todo):
        """Without the cache the second call finds the list by name."""
        todo.add_group("Acme")
        resolver = StructuralResolver(todo)

        first = resolver.resolve_target("Acme", "widgets")
        second = resolver.resolve_target("Acme", "widgets")

        assert first == second
        assert len(todo.calls_to("create_list_in_group")) == 1

    def test_existing_list_is_reused(self, todo, resolver):
        group_id = todo.add_group("Acme")
        list_id = todo.add_list("widgets", group_id)

        assert resolver.resolve_target("Acme", "widgets") == list_id
        assert todo.calls_to("create_list_in_group") == []

    def test_no_matching_group(self, todo, resolver):
        """Groups are never created, an unknown owner is unmapped."""
        todo.add_group("Other")

        assert resolver.resolve_target("Acme", "widgets") is None
        assert todo.calls_to("create_list_in_group") == []

    def test_group_match_is_exact(self, todo, resolver):
        todo.add_group("acme")

        assert resolver.resolve_target("Acme", "widgets") is None

    def test_first_of_duplicate_groups_wins(self, todo, resolver):
        first_group = todo.add_group("Acme")
        todo.add_group("Acme")

        list_id = resolver.resolve_target("Acme", "widgets")

        assert todo.lists[list_id]["groupId"] == first_group

    def test_cached_mapping_skips_group_scan(self, todo, resolver, mappings):
        group_id = todo.add_group("Acme")
        list_id = todo.add_list("widgets", group_id)
        mappings.record(list_id, "Acme", "widgets", group_id=group_id)

        assert resolver.resolve_target("Acme", "widgets") == list_id
        assert todo.calls_to("list_groups") == []

    def test_cached_mapping_without_group_is_not_trusted(self, todo, resolver, mappings):
        group_id = todo.add_group("Acme")
        list_id = todo.add_list("widgets", group_id)
        mappings.record("list-cached", "Acme", "widgets")

        assert resolver.resolve_target("Acme", "widgets") == list_id
        assert mappings.find_by_list("list-cached") is None

    def test_renamed_group_is_resolved_again(self, todo, resolver, mappings):
        """A group renamed after the first sync no longer matches its old owner."""
        old_group = todo.add_group("Acme")
        old_list = todo.add_list("widgets", old_group)
        assert resolver.resolve_target("Acme", "widgets") == old_list

        todo.groups[old_group]["displayName"] = "Acme Archive"
        new_group = todo.add_group("Acme")

        list_id = resolver.resolve_target("Acme", "widgets")

        assert list_id != old_list
        assert todo.lists[list_id]["groupId"] == new_group
        assert mappings.find_by_repo("Acme", "widgets").list_id == list_id

    def test_deleted_list_is_resolved_again(self, todo, resolver, mappings):
        group_id = todo.add_group("Acme")
        old_list = resolver.resolve_target("Acme", "widgets")
        del todo.lists[old_list]

        list_id = resolver.resolve_target("Acme", "widgets")

        assert list_id != old_list
        assert todo.lists[list_id]["groupId"] == group_id
        assert mappings.find_by_list(old_list) is None


class TestResolveSource:
    """list id -> owner/repo."""

    def test_list_in_group(self, todo, resolver):
        group_id = todo.add_group("Acme")
        list_id = todo.add_list("widgets", group_id)

        owner_repo = resolver.resolve_source(list_id)

        assert owner_repo.owner == "Acme"
        assert owner_repo.repo == "widgets"
        assert owner_repo.full_name == "Acme/widgets"

    def test_list_without_group(self, todo, resolver):
        list_id = todo.add_list("Groceries")

        assert resolver.resolve_source(list_id) is None

    def test_unknown_list(self, resolver):
        assert resolver.resolve_source("missing") is None

    def test_list_not_found_by_graph(self, todo, resolver, mappings):
        mappings.record("list-gone", "Acme", "widgets", group_id="group-1")
        todo.get_list = Mock(side_effect=_graph_error(404))

        assert resolver.resolve_source("list-gone") is None
        assert mappings.find_by_list("list-gone") is None

    def test_other_graph_errors_propagate(self, todo, resolver):
        todo.get_list = Mock(side_effect=_graph_error(503))

        with pytest.raises(CapabilityError):
            resolver.resolve_source("list-1")

    def test_resolution_is_recorded(self, todo, resolver, mappings):
        group_id = todo.add_group("Acme")
        list_id = todo.add_list("widgets", group_id)

        resolver.resolve_source(list_id)

        recorded = mappings.find_by_list(list_id)
        assert recorded.group_id == group_id
        assert (recorded.owner, recorded.repo) == ("Acme", "widgets")
        assert mappings.find_by_repo("Acme", "widgets").list_id == list_id

    def test_list_moved_out_of_its_group(self, todo, resolver, mappings):
        """A list that leaves its group after the first sync stops mapping."""
        group_id = todo.add_group("Acme")
        list_id = todo.add_list("widgets", group_id)
        assert resolver.resolve_source(list_id).full_name == "Acme/widgets"

        todo.lists[list_id]["groupId"] = None

        assert resolver.resolve_source(list_id) is None
        assert mappings.find_by_list(list_id) is None

    def test_list_moved_to_another_group(self, todo, resolver, mappings):
        acme = todo.add_group("Acme")
        list_id = todo.add_list("widgets", acme)
        resolver.resolve_source(list_id)

        other = todo.add_group("Globex")
        todo.lists[list_id]["groupId"] = other

        assert resolver.resolve_source(list_id).full_name == "Globex/widgets"
        assert mappings.find_by_list(list_id).group_id == other
        assert mappings.find_by_repo("Acme", "widgets") is None

    def test_invalidate_forgets_mapping(self, todo, resolver, mappings):
        mappings.record("list-gone", "Acme", "widgets")

        resolver.invalidate("list-gone")

        assert mappings.find_by_list("list-gone") is None


def _graph_error(status):
    def raise_error(*args, **kwargs):
        raise CapabilityError("Graph failure", service_name="graph", http_status=status)

    return raise_error
