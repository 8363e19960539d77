"""Composition root: build the journal components from configuration.

Every component is constructed here and passed explicitly to the ones
that need it; nothing is looked up through module-level singletons.
Tests and alternative hosts can hand in their own identity or remote
repository.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from .config import validate_remote_config
from .config_schema import JournalConfig
from .connectivity import ConnectivityMonitor
from .identity import IdentityProvider, StaticIdentity
from .journal import JournalService
from .remote.base import OfflineRepository, RemoteEntryRepository
from .remote.firestore import FirestoreEntryRepository
from .store.entries import EntryStore
from .store.settings import SettingsStore
from .sync.engine import SyncEngine

logger = logging.getLogger(__name__)


@dataclass
class JournalApp:
    config: JournalConfig
    store: EntryStore
    settings: SettingsStore
    identity: IdentityProvider
    remote: RemoteEntryRepository
    monitor: ConnectivityMonitor
    engine: SyncEngine
    service: JournalService


def build_remote(
    config: JournalConfig, identity: IdentityProvider
) -> FirestoreEntryRepository:
    """Create the Firestore repository described by *config*.

    Raises:
        ValueError: Remote settings are missing or malformed.
    """
    validate_remote_config(config)
    remote = config.remote
    return FirestoreEntryRepository(
        remote.project_id,
        identity,
        database=remote.database,
        base_url=remote.base_url.strip(),
        timeout=(remote.connect_timeout, remote.read_timeout),
        tz=config.sync.tzinfo(),
        verify=not remote.insecure,
    )


@asynccontextmanager
async def journal_session(
    config: JournalConfig,
    *,
    identity: IdentityProvider | None = None,
    remote: RemoteEntryRepository | None = None,
    pull_on_start: bool = True,
) -> AsyncIterator[JournalApp]:
    """Open the local stores and wire the sync engine and journal service.

    When *pull_on_start* is set, remote changes are pulled before the
    session is handed out; a failed pull is logged and retried by the
    next trigger.  On exit, waits for pending autosaves and any in-flight
    sync run and then closes the entry store.

    Args:
        config: Loaded configuration.
        identity: Identity provider; built from ``config.auth`` if omitted.
        remote: Remote repository.  If omitted, Firestore from
            ``config.remote``, or ``OfflineRepository`` when no project
            id is configured.
        pull_on_start: Pull remote changes when the session opens.

    Raises:
        StorageError: The local store or settings file cannot be opened.
        ValueError: A Firestore repository is needed but misconfigured.
    """
    identity = identity or StaticIdentity(
        config.auth.user_id, config.auth.id_token
    )
    if remote is None:
        if config.remote.project_id:
            remote = build_remote(config, identity)
        else:
            logger.warning("No remote project configured; working offline")
            remote = OfflineRepository()

    store = EntryStore(config.store.database_path)
    try:
        settings = SettingsStore(config.store.settings_path)
        monitor = ConnectivityMonitor()
        engine = SyncEngine(
            store, remote, settings, identity, monitor=monitor
        )
        service = JournalService(
            store,
            engine,
            identity,
            autosave_delay=config.sync.autosave_delay,
            tz=config.sync.tzinfo(),
        )
        logger.info(
            "Journal opened: store=%s user=%s",
            config.store.database_path,
            identity.current_user_id() or "(signed out)",
        )
        app = JournalApp(
            config=config,
            store=store,
            settings=settings,
            identity=identity,
            remote=remote,
            monitor=monitor,
            engine=engine,
            service=service,
        )
        try:
            if pull_on_start:
                await _pull_on_start(app)
            yield app
        finally:
            await service.flush_autosaves()
            await engine.wait_idle()
    finally:
        store.close()
        logger.info("Journal closed")


async def _pull_on_start(app: JournalApp) -> None:
    if isinstance(app.remote, OfflineRepository):
        return
    if app.identity.current_user_id() is None:
        logger.info("Not signed in; skipping startup pull")
        return
    report = await app.engine.pull_completed_entries()
    if report.ok:
        logger.info(
            "Startup pull merged %d new and %d updated entries",
            len(report.created_local),
            len(report.updated_local),
        )
    else:
        logger.warning("Startup pull incomplete: %s", report.first_error())
