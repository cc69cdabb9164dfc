"""
Database settings and connection management for the sync tables.

SQLite (a file, or ``:memory:`` in tests) backs local runs; PostgreSQL with
psycopg backs deployed function apps so that ledger claims and rotated
credentials are shared across instances.
"""

import os
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import ErrorCode, ValidationError
from ..utils.logger import get_logger

# Base class for all SQLAlchemy models
Base: Any = declarative_base()


class DatabaseConfig(BaseModel):
    db_type: str = "sqlite"
    database: str
    host: str = ""
    port: int = 5432
    username: str = ""
    password: str = ""
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.db_type.lower() == "sqlite"

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """SQLite unless ``DB_TYPE`` selects postgres."""
        echo = os.environ.get("DB_ECHO", "false").lower() == "true"
        if os.environ.get("DB_TYPE", "sqlite").lower() == "sqlite":
            return cls(
                db_type="sqlite",
                database=os.environ.get("DEV_DB_PATH", "./integrity_sync.db"),
                echo=echo,
            )
        return cls(
            db_type="postgres",
            host=os.environ.get("DB_HOST", "localhost"),
            port=int(os.environ.get("DB_PORT", "5432")),
            database=os.environ.get("DB_NAME", "integrity_sync"),
            username=os.environ.get("DB_USER", "postgres"),
            password=os.environ.get("DB_PASSWORD", ""),
            pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
            max_overflow=int(os.environ.get("DB_MAX_OVERFLOW", "10")),
            pool_timeout=int(os.environ.get("DB_POOL_TIMEOUT", "30")),
            echo=echo,
        )

    def url(self) -> URL:
        if self.is_sqlite:
            return URL.create("sqlite", database=self.database)
        if self.db_type.lower() != "postgres":
            raise ValidationError(
                f"Unsupported database type: {self.db_type}",
                error_code=ErrorCode.INVALID_FORMAT,
                field="db_type",
            )
        if not (self.host and self.database and self.username):
            raise ValidationError(
                "Postgres needs DB_HOST, DB_NAME and DB_USER",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="database_config",
                host=self.host,
                database=self.database,
            )
        return URL.create(
            "postgresql+psycopg",
            username=self.username,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database,
        )


class DatabaseManager:
    """Engine plus a thread-scoped session registry."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._create_engine()
        self.scoped_session = scoped_session(sessionmaker(bind=self.engine))

    def _create_engine(self) -> Engine:
        if self.config.is_sqlite:
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if self.config.database == ":memory:":
                # One shared connection, otherwise every thread sees an empty database
                kwargs["poolclass"] = StaticPool
            return create_engine(self.config.url(), echo=self.config.echo, **kwargs)
        return create_engine(
            self.config.url(),
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        return self.scoped_session()

    def close_session(self, session: Optional[Session] = None) -> None:
        if session:
            session.close()
        else:
            self.scoped_session.remove()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def import_all_models():
    """Register the sync models with the metadata before ``create_all``."""
    from sqlalchemy.orm import configure_mappers

    from .db_sync_models import ContainerMapping, StoredCredential, SyncRecord  # noqa

    configure_mappers()


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """
    Connect and create the sync tables if they are missing.

    Args:
        config: Optional DatabaseConfig. If None, read from the environment.
    """
    config = config or DatabaseConfig.from_env()
    get_logger().info("Initializing database", extra={"db_type": config.db_type})

    manager = DatabaseManager(config)
    import_all_models()
    manager.create_tables()
    return manager
