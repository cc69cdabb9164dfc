"""
Persistent To Do list <-> GitHub repository mapping.

Display-name matching (see structural_resolver) is how mappings are
discovered; once found they are recorded here so later repository lookups
skip the group and list scans.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..db import ContainerMapping, DatabaseManager
from ..exceptions import ErrorCode, RepositoryError
from ..utils.logger import get_logger


class ContainerMappingView(BaseModel):
    """A recorded mapping, detached from its session."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    list_id: str
    group_id: Optional[str] = None
    owner: str
    repo: str


class ContainerMappingRepository:
    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.logger = get_logger()

    def find_by_repo(self, owner: str, repo: str) -> Optional[ContainerMappingView]:
        session = self.db_manager.get_session()
        try:
            mapping = (
                session.query(ContainerMapping)
                .filter(ContainerMapping.owner == owner, ContainerMapping.repo == repo)
                .first()
            )
            return ContainerMappingView.model_validate(mapping) if mapping else None
        except SQLAlchemyError as e:
            raise RepositoryError(
                "Failed to read container mapping", cause=e, owner=owner, repo=repo
            )
        finally:
            self.db_manager.close_session(session)

    def find_by_list(self, list_id: str) -> Optional[ContainerMappingView]:
        session = self.db_manager.get_session()
        try:
            mapping = (
                session.query(ContainerMapping).filter(ContainerMapping.list_id == list_id).first()
            )
            return ContainerMappingView.model_validate(mapping) if mapping else None
        except SQLAlchemyError as e:
            raise RepositoryError("Failed to read container mapping", cause=e, list_id=list_id)
        finally:
            self.db_manager.close_session(session)

    def record(self, list_id: str, owner: str, repo: str, group_id: Optional[str] = None) -> None:
        """Insert the mapping unless either side is already mapped."""
        session = self.db_manager.get_session()
        try:
            session.add(
                ContainerMapping(list_id=list_id, group_id=group_id, owner=owner, repo=repo)
            )
            session.commit()
            self.logger.info(
                "Recorded container mapping",
                extra={"list_id": list_id, "owner": owner, "repo": repo},
            )
        except IntegrityError:
            # Another invocation recorded it first
            session.rollback()
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                "Failed to record container mapping",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                list_id=list_id,
            )
        finally:
            self.db_manager.close_session(session)

    def forget(self, list_id: str) -> None:
        """Drop a mapping that no longer matches the live list or group."""
        session = self.db_manager.get_session()
        try:
            session.query(ContainerMapping).filter(ContainerMapping.list_id == list_id).delete()
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError("Failed to delete container mapping", cause=e, list_id=list_id)
        finally:
            self.db_manager.close_session(session)
