"""
Structural mapping between GitHub repositories and To Do lists.

Convention: the list group named after the repository owner holds one list
per repository, named after the repository. Groups are never created here
(an unmapped owner is a valid steady state); a missing list inside an
existing group is created on demand.

Recorded mappings are hints. Lists can be renamed, moved between groups or
deleted, and groups renamed, so a cached row is only used after the live
list and group still carry the recorded ids and names.
"""

import threading
from typing import Callable, Dict, Optional, Tuple

from ..clients.graph_client import TodoClient
from ..exceptions import CapabilityError
from ..schemas.sync_schemas import OwnerRepo
from ..utils.logger import get_logger
from .container_mappings import ContainerMappingRepository, ContainerMappingView


class StructuralResolver:
    def __init__(
        self,
        todo: TodoClient,
        mappings: Optional[ContainerMappingRepository] = None,
    ):
        self.todo = todo
        self.mappings = mappings
        self.logger = get_logger()
        self._create_lock = threading.Lock()

    def resolve_target(self, owner: str, repo: str) -> Optional[str]:
        """
        Return the id of the To Do list for ``owner/repo``, or None if no list
        group is named ``owner``.
        """
        if self.mappings:
            cached = self.mappings.find_by_repo(owner, repo)
            if cached and self._still_mapped(cached):
                return cached.list_id

        groups = [g for g in self.todo.list_groups() if g.get("displayName") == owner]
        if not groups:
            self.logger.info("No list group matches repository owner", extra={"owner": owner})
            return None
        if len(groups) > 1:
            self.logger.warning(
                "Several list groups share the owner name, using the first",
                extra={"owner": owner, "group_ids": [g.get("id") for g in groups]},
            )
        group_id = groups[0]["id"]

        with self._create_lock:
            list_id = self._find_list(group_id, repo)
            if list_id is None:
                created = self.todo.create_list_in_group(group_id, repo)
                list_id = created["id"]
                self.logger.info(
                    "Created To Do list for repository",
                    extra={"owner": owner, "repo": repo, "list_id": list_id},
                )

        if self.mappings:
            self.mappings.record(list_id, owner, repo, group_id=group_id)
        return list_id

    def _find_list(self, group_id: str, repo: str) -> Optional[str]:
        for todo_list in self.todo.list_lists_in_group(group_id):
            if todo_list.get("displayName") == repo:
                return todo_list["id"]
        return None

    def resolve_source(self, list_id: str) -> Optional[OwnerRepo]:
        """
        Inverse lookup: the list name is the repository, its group name the owner.
        Lists outside any group do not map to a repository.
        """
        cached = self.mappings.find_by_list(list_id) if self.mappings else None
        owner_repo, group_id = self._resolve_source_live(list_id)

        if cached and (
            owner_repo is None
            or cached.group_id != group_id
            or (cached.owner, cached.repo) != (owner_repo.owner, owner_repo.repo)
        ):
            self._forget_stale(cached)
            cached = None
        if owner_repo and self.mappings and cached is None:
            self.mappings.record(list_id, owner_repo.owner, owner_repo.repo, group_id=group_id)
        return owner_repo

    def _resolve_source_live(self, list_id: str) -> Tuple[Optional[OwnerRepo], Optional[str]]:
        todo_list = self._get_list(list_id)
        if not todo_list or not todo_list.get("displayName"):
            return None, None

        group_id = todo_list.get("groupId")
        if not group_id:
            self.logger.info("To Do list is not in a list group", extra={"list_id": list_id})
            return None, None

        group = self._get_group(group_id)
        if not group or not group.get("displayName"):
            return None, None

        return OwnerRepo(owner=group["displayName"], repo=todo_list["displayName"]), group_id

    def _get_list(self, list_id: str) -> Optional[Dict]:
        return _none_if_missing(self.todo.get_list, list_id)

    def _get_group(self, group_id: str) -> Optional[Dict]:
        return _none_if_missing(self.todo.get_group, group_id)

    def _still_mapped(self, cached: ContainerMappingView) -> bool:
        """True if the cached list still sits in its recorded group under the recorded names."""
        todo_list = self._get_list(cached.list_id)
        valid = bool(
            todo_list
            and cached.group_id
            and todo_list.get("groupId") == cached.group_id
            and todo_list.get("displayName") == cached.repo
        )
        if valid:
            group = self._get_group(cached.group_id)
            valid = bool(group and group.get("displayName") == cached.owner)
        if not valid:
            self._forget_stale(cached)
        return valid

    def _forget_stale(self, cached: ContainerMappingView) -> None:
        self.logger.info(
            "Recorded container mapping no longer matches To Do",
            extra={"list_id": cached.list_id, "owner": cached.owner, "repo": cached.repo},
        )
        self.mappings.forget(cached.list_id)

    def invalidate(self, list_id: str) -> None:
        if self.mappings:
            self.mappings.forget(list_id)


def _none_if_missing(fetch: Callable[[str], Optional[Dict]], entity_id: str) -> Optional[Dict]:
    try:
        return fetch(entity_id)
    except CapabilityError as e:
        if e.http_status == 404:
            return None
        raise
