"""Lifecycle context - the explicit dependencies of every transition and sweep.

There is no process-wide store handle: entry points and sweeps receive a
LifecycleContext holding the session factory, blob store, effective
retention settings and clock, plus the store, quota accountant and audit
recorder built from them.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from audit.service import AuditRecorder
from config import Settings, get_settings
from database import create_db_engine, create_session_factory
from infrastructure.storage import BlobStorePort, build_blob_store
from quota.service import QuotaAccountant
from retention.schemas import CONFIG_KEYS, RetentionSettings
from .errors import StoreError
from .store import RetentionStore

logger = logging.getLogger(__name__)


def unix_now() -> int:
    return int(time.time())


@dataclass
class LifecycleContext:
    """Dependencies shared by lifecycle entry points and sweeps."""
    session_factory: sessionmaker
    blob_store: BlobStorePort
    settings: RetentionSettings = field(default_factory=RetentionSettings)
    clock: Callable[[], int] = unix_now
    store: RetentionStore = field(init=False)
    quota: QuotaAccountant = field(init=False)
    audit: AuditRecorder = field(init=False)

    def __post_init__(self):
        self.store = RetentionStore(self.session_factory)
        self.quota = QuotaAccountant(self.store)
        self.audit = AuditRecorder(self.session_factory, self.now)

    def now(self) -> int:
        """Current Unix time according to the context clock."""
        return int(self.clock())


def load_retention_settings(store: RetentionStore, defaults: RetentionSettings) -> RetentionSettings:
    """Apply configuration-table overrides on top of the environment defaults.

    Unreadable or invalid stored values are logged and ignored.
    """
    try:
        stored = store.get_config_values(CONFIG_KEYS)
    except StoreError as e:
        logger.warning(f"Could not read retention overrides, using defaults: {e}")
        return defaults

    overrides = {}
    for key, raw in stored.items():
        try:
            overrides[key] = int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-integer configuration value {key}={raw!r}")

    if not overrides:
        return defaults

    try:
        # Re-validate: model_copy(update=...) skips field constraints
        return RetentionSettings(**{**defaults.model_dump(), **overrides})
    except ValidationError as e:
        logger.warning(f"Ignoring invalid retention overrides {overrides}: {e}")
        return defaults


@contextmanager
def open_context(
    settings: Optional[Settings] = None,
    clock: Callable[[], int] = unix_now,
) -> Iterator[LifecycleContext]:
    """Build a context from application settings; disposes the engine on exit.

    Example:
        with open_context() as ctx:
            run_expiration_sweep(ctx, ctx.now())
    """
    settings = settings or get_settings()
    engine = create_db_engine(settings.DATABASE_URL)
    try:
        session_factory = create_session_factory(engine)
        defaults = RetentionSettings.from_settings(settings)
        retention_settings = load_retention_settings(RetentionStore(session_factory), defaults)

        yield LifecycleContext(
            session_factory=session_factory,
            blob_store=build_blob_store(settings),
            settings=retention_settings,
            clock=clock,
        )
    finally:
        engine.dispose()
