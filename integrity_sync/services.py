"""
Assembly of the engine's collaborators.

``build_services`` creates everything a function invocation needs from an
AppConfig: credential store, token manager, capability clients, structural
resolver, sync ledger and the two ingestors. The Azure Functions module
builds one instance per worker process.
"""

from datetime import timedelta
from typing import Optional

import requests

from .auth.credential_store import (
    CredentialStore,
    DatabaseCredentialStore,
    InMemoryCredentialStore,
    bootstrap_credential,
)
from .auth.token_manager import TokenManager
from .clients.github_client import GitHubClient
from .clients.graph_client import TodoClient
from .config import AppConfig, get_config
from .db.db_config import DatabaseManager, initialize_db
from .ingestors.github_ingestor import GitHubWebhookIngestor
from .ingestors.todo_ingestor import TodoNotificationIngestor
from .renewal.subscription_renewer import SubscriptionRenewer
from .sync.container_mappings import ContainerMappingRepository
from .sync.structural_resolver import StructuralResolver
from .sync.sync_ledger import SyncLedger
from .utils.logger import get_logger


class SyncServices:
    """Wired engine components sharing one HTTP session and one token manager."""

    def __init__(
        self,
        config: AppConfig,
        credential_store: CredentialStore,
        token_manager: TokenManager,
        todo: TodoClient,
        github: GitHubClient,
        resolver: StructuralResolver,
        ledger: Optional[SyncLedger],
        github_ingestor: GitHubWebhookIngestor,
        todo_ingestor: TodoNotificationIngestor,
        renewer: SubscriptionRenewer,
        db_manager: Optional[DatabaseManager] = None,
    ):
        self.config = config
        self.credential_store = credential_store
        self.token_manager = token_manager
        self.todo = todo
        self.github = github
        self.resolver = resolver
        self.ledger = ledger
        self.github_ingestor = github_ingestor
        self.todo_ingestor = todo_ingestor
        self.renewer = renewer
        self.db_manager = db_manager


def _needs_database(config: AppConfig) -> bool:
    return config.features.enable_sync_ledger or config.features.enable_mapping_cache


def build_services(
    config: Optional[AppConfig] = None,
    db_manager: Optional[DatabaseManager] = None,
    http: Optional[requests.Session] = None,
) -> SyncServices:
    """
    Build the engine from configuration.

    Args:
        config: Application configuration (default: the global config)
        db_manager: Database to use; initialized from the environment when
            the ledger or mapping cache is enabled and none is given
        http: Shared ``requests.Session`` (default: a new session)
    """
    config = config or get_config()
    logger = get_logger()
    http = http or requests.Session()

    if db_manager is None and _needs_database(config):
        db_manager = initialize_db()

    seed = bootstrap_credential(config.graph)
    if db_manager is not None:
        credential_store: CredentialStore = DatabaseCredentialStore(
            db_manager, config.security.encryption_key, seed=seed
        )
    else:
        credential_store = InMemoryCredentialStore(seed)

    token_manager = TokenManager(
        config.graph,
        credential_store,
        refresh_buffer=timedelta(minutes=config.processing.token_refresh_buffer_minutes),
        http=http,
    )
    todo = TodoClient(token_manager, http=http, timeout=config.processing.http_timeout)
    github = GitHubClient(
        lambda: config.github.token, http=http, timeout=config.processing.http_timeout
    )

    mappings = None
    if db_manager is not None and config.features.enable_mapping_cache:
        mappings = ContainerMappingRepository(db_manager)
    resolver = StructuralResolver(todo, mappings)

    ledger = None
    if db_manager is not None and config.features.enable_sync_ledger:
        ledger = SyncLedger(
            db_manager, claim_ttl=timedelta(seconds=config.processing.claim_ttl_seconds)
        )

    logger.info(
        "Sync services built",
        extra={
            "credential_store": type(credential_store).__name__,
            "sync_ledger": ledger is not None,
            "mapping_cache": mappings is not None,
        },
    )

    return SyncServices(
        config=config,
        credential_store=credential_store,
        token_manager=token_manager,
        todo=todo,
        github=github,
        resolver=resolver,
        ledger=ledger,
        github_ingestor=GitHubWebhookIngestor(config, todo, token_manager, resolver, ledger),
        todo_ingestor=TodoNotificationIngestor(
            config, todo, github, token_manager, resolver, ledger
        ),
        renewer=SubscriptionRenewer(todo, config.subscriptions),
        db_manager=db_manager,
    )
