"""Wiring of the default sync stack."""

import logging
from datetime import tzinfo
from typing import Optional

from .auth.token_store import TokenStore
from .config import Config
from .sync.http_client import ApiClient
from .sync.ledger import DedupLedger
from .sync.protocols import ActivitySourceProtocol, KeyValueStoreProtocol
from .sync.store import SqliteKeyValueStore
from .sync.sync_engine import SyncEngine
from .sync.uploader import Uploader

__all__ = ["create_sync_engine"]

logger = logging.getLogger(__name__)


def create_sync_engine(
    source: ActivitySourceProtocol,
    config: Optional[Config] = None,
    token_store: Optional[TokenStore] = None,
    store: Optional[KeyValueStoreProtocol] = None,
    client: Optional[ApiClient] = None,
    tz: Optional[tzinfo] = None,
) -> SyncEngine:
    """Build a SyncEngine backed by the keychain, SQLite and the backend API.

    Args:
        source: Where completed workouts are read from
        config: Loaded from disk if None
        token_store: Keychain-backed tokens (default service if None)
        store: Persisted sync state (SQLite in the data dir if None)
        client: Pre-built API client (built from config and token_store if None)
        tz: Zone for the payload's local date (machine local if None)
    """
    config = config or Config.load()
    if client is None:
        client = ApiClient(
            api_url=config.api_url,
            token_store=token_store or TokenStore(),
            timeout=config.sync.request_timeout,
        )
    store = store or SqliteKeyValueStore()
    uploader = Uploader(client, settings=config.sync, tz=tz)
    logger.debug(f"Sync engine wired against {config.api_url}")
    return SyncEngine(
        source=source,
        uploader=uploader,
        ledger=DedupLedger(store),
        config=config,
    )
