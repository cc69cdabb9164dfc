"""
Shared test fixtures.

Provides an in-memory SQLite database, an explicit AppConfig (no environment
lookups leak into tests), and in-memory Graph/GitHub client doubles.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.orm import Session

from integrity_sync.config import (
    AppConfig,
    FeatureFlags,
    GitHubConfig,
    GraphConfig,
    ProcessingConfig,
    QueueConfig,
    SecurityConfig,
    SubscriptionConfig,
    WebhookConfig,
    reset_config,
    set_config,
)
from integrity_sync.db import DatabaseConfig, DatabaseManager, import_all_models
from integrity_sync.db.db_config import Base, initialize_db
from integrity_sync.exceptions import clear_correlation_id
from integrity_sync.sync.container_mappings import ContainerMappingRepository
from integrity_sync.sync.structural_resolver import StructuralResolver
from integrity_sync.sync.sync_ledger import SyncLedger
from tests.fixtures.fakes import (
    CLIENT_STATE,
    WEBHOOK_SECRET,
    FakeGitHubClient,
    FakeTodoClient,
)


@pytest.fixture(scope="session")
def db_config() -> DatabaseConfig:
    """SQLite in-memory database configuration for testing."""
    return DatabaseConfig(
        db_type="sqlite",
        database=":memory:",
        echo=False,
    )


@pytest.fixture(scope="session")
def db_manager(db_config: DatabaseConfig) -> DatabaseManager:
    """Database manager with every model registered."""
    import_all_models()
    manager = initialize_db(db_config)
    yield manager
    manager.close()


@pytest.fixture(scope="function")
def clean_db(db_manager: DatabaseManager) -> DatabaseManager:
    """Fresh tables for each test."""
    Base.metadata.create_all(db_manager.engine)
    yield db_manager
    db_manager.close_session()
    Base.metadata.drop_all(db_manager.engine)


@pytest.fixture(scope="function")
def db_session(clean_db: DatabaseManager) -> Session:
    session = clean_db.get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope="function")
def app_config() -> AppConfig:
    """A fully explicit configuration installed as the global config."""
    config = AppConfig(
        graph=GraphConfig(
            client_id="client-id",
            client_secret="client-secret",
            tenant_id="organizations",
            access_token=None,
            refresh_token="refresh-token",
            token_expires_at=None,
        ),
        github=GitHubConfig(token="ghp_test"),
        webhooks=WebhookConfig(
            github_webhook_secret=WEBHOOK_SECRET, graph_subscription_secret=CLIENT_STATE
        ),
        subscriptions=SubscriptionConfig(subscription_ids=["sub-1", "sub-2"]),
        queue=QueueConfig(connection_string=""),
        features=FeatureFlags(
            enable_logs_queue=False,
            enable_sync_ledger=True,
            enable_mapping_cache=True,
            enable_status_writeback=False,
        ),
        processing=ProcessingConfig(fanout_workers=1),
        security=SecurityConfig(encryption_key="test-key"),
    )
    set_config(config)
    yield config
    reset_config()
    clear_correlation_id()


@pytest.fixture
def todo() -> FakeTodoClient:
    return FakeTodoClient()


@pytest.fixture
def github() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def ledger(clean_db: DatabaseManager) -> SyncLedger:
    return SyncLedger(clean_db)


@pytest.fixture
def mappings(clean_db: DatabaseManager) -> ContainerMappingRepository:
    return ContainerMappingRepository(clean_db)


@pytest.fixture
def resolver(todo, mappings) -> StructuralResolver:
    return StructuralResolver(todo, mappings)


@pytest.fixture
def executor():
    """Single worker, SQLite in-memory shares one connection."""
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)
