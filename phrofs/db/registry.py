"""
db/registry.py
--------------
Tenant store registry: one SQLite file per school.

Design decisions:
  - resolve() never fails. Unknown or missing school keys fall back to the
    default school, and the returned TenantResolution says so, so callers
    and tests can tell a deliberate default from an accidental one.
  - One AsyncEngine per school, created on first touch together with its
    directory and schema migration. Engines use NullPool: every session
    opens its own connection and closes it when the request ends, so no
    handle outlives the request that opened it.
  - Every new connection is configured for durability: WAL journal,
    synchronous=FULL, foreign keys on, a larger page cache and a busy
    timeout. Concurrent writers are serialised by SQLite's own locking.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Iterable, Optional

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from phrofs.core.config import Settings, settings
from phrofs.core.exceptions import StorageUnavailable
from phrofs.core.logging import get_logger
from phrofs.db.migrations import ensure_schema

logger = get_logger(__name__)


@dataclass(frozen=True)
class TenantResolution:
    tenant: str
    used_fallback: bool = False


class TenantStoreRegistry:

    def __init__(
        self,
        base_dir: str | Path,
        schools: Iterable[str],
        default_school: str,
        cache_kib: int = 20000,
        busy_timeout_ms: int = 5000,
        echo: bool = False,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.schools = tuple(schools)
        if default_school not in self.schools:
            raise ValueError(f"Default school '{default_school}' is not a known school")
        self.default_school = default_school
        self._cache_kib = cache_kib
        self._busy_timeout_ms = busy_timeout_ms
        self._echo = echo
        self._engines: dict[str, AsyncEngine] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TenantStoreRegistry":
        return cls(
            base_dir=cfg.DATABASE_DIR,
            schools=cfg.SCHOOLS,
            default_school=cfg.DEFAULT_SCHOOL,
            cache_kib=cfg.STORE_CACHE_KIB,
            busy_timeout_ms=cfg.STORE_BUSY_TIMEOUT_MS,
            echo=cfg.DEBUG,
        )

    # ── Resolution ───────────────────────────────────────────────────────────

    def resolve(self, key: Optional[str]) -> TenantResolution:
        normalised = (key or "").strip().lower()
        if normalised in self.schools:
            return TenantResolution(tenant=normalised)
        if normalised:
            logger.warning(
                "Unknown school, using default",
                requested=normalised,
                default=self.default_school,
            )
        return TenantResolution(tenant=self.default_school, used_fallback=True)

    def store_path(self, tenant: str) -> Path:
        if tenant not in self.schools:
            raise KeyError(tenant)
        return self.base_dir / f"{tenant}.db"

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def _configure_connection(self, dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=FULL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA cache_size=-{int(self._cache_kib)}")
            cursor.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
        finally:
            cursor.close()

    def _create_engine(self, tenant: str) -> AsyncEngine:
        path = self.store_path(tenant)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Store directory not writable", school=tenant, path=str(path.parent))
            raise StorageUnavailable(f"Storage for '{tenant}' is unavailable") from exc

        engine = create_async_engine(
            f"sqlite+aiosqlite:///{path}",
            echo=self._echo,
            poolclass=NullPool,
            connect_args={"timeout": self._busy_timeout_ms / 1000},
        )
        event.listen(engine.sync_engine, "connect", self._configure_connection)
        return engine

    async def engine_for(self, tenant: str) -> AsyncEngine:
        """
        Return the engine for a school, creating and migrating the store on
        first use in this process.
        """
        engine = self._engines.get(tenant)
        if engine is not None:
            return engine

        async with self._lock:
            engine = self._engines.get(tenant)
            if engine is not None:
                return engine

            engine = self._create_engine(tenant)
            try:
                async with engine.connect() as conn:
                    conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
                    await ensure_schema(conn)
            except SQLAlchemyError as exc:
                await engine.dispose()
                logger.error("Could not open store", school=tenant, error=str(exc))
                raise StorageUnavailable(f"Storage for '{tenant}' is unavailable") from exc

            self._engines[tenant] = engine
            logger.info("Store opened", school=tenant, path=str(self.store_path(tenant)))
            return engine

    @asynccontextmanager
    async def session(self, tenant: str) -> AsyncIterator[AsyncSession]:
        """
        Acquire a session for one logical operation. The underlying
        connection is released when the block exits, on success or error;
        uncommitted work is rolled back.
        """
        engine = await self.engine_for(tenant)
        async with AsyncSession(engine, expire_on_commit=False, autoflush=False) as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        engines, self._engines = self._engines, {}
        for engine in engines.values():
            await engine.dispose()


store_registry = TenantStoreRegistry.from_settings(settings)


def get_registry() -> TenantStoreRegistry:
    """FastAPI dependency returning the process-wide registry."""
    return store_registry
