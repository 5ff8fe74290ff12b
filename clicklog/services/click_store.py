"""Click record store: schema upkeep, writes, and read queries."""

from typing import Any

import structlog
from sqlalchemy import inspect, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from clicklog.core.database import create_session_factory
from clicklog.models.click import Click

logger = structlog.get_logger()

# Columns written by a browser enrichment report; every report sets all of them
ENRICHMENT_COLUMNS = (
    "precise_lat",
    "precise_lon",
    "precise_accuracy_m",
    "precise_timestamp",
    "consented",
    "device_platform",
    "device_vendor",
    "device_language",
    "device_languages",
    "device_timezone",
    "device_hardware_concurrency",
    "device_memory_gb",
    "device_screen_w",
    "device_screen_h",
    "device_color_depth",
    "do_not_track",
)


def _physical_columns(sync_conn) -> set[str]:
    return {column["name"] for column in inspect(sync_conn).get_columns(Click.__tablename__)}


class ClickStore:
    """Durable store for click records.

    Built once at startup around an engine and handed to whatever needs it,
    so tests can run the same code against an in-memory SQLite engine.

    Usage:
        store = ClickStore(engine)
        await store.migrate()
        await store.add(Click(id=..., created_at=..., ...))
        rows = await store.enrich(click_id, {"precise_lat": 1.0, ...})
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self._engine = engine
        self._session_factory = session_factory or create_session_factory(engine)

    async def migrate(self) -> list[str]:
        """Create the clicks table and add any model columns it is missing.

        Each missing column is added as a plain nullable column in its own
        transaction; a failure is logged and the remaining columns are still
        attempted. Running this against a current schema changes nothing.

        Returns:
            Names of the columns that were added.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Click.metadata.create_all, tables=[Click.__table__])
            existing = await conn.run_sync(_physical_columns)

        added: list[str] = []
        for column in Click.__table__.columns:
            if column.name in existing or column.primary_key:
                continue

            try:
                async with self._engine.begin() as conn:
                    preparer = conn.dialect.identifier_preparer
                    column_type = column.type.compile(dialect=conn.dialect)
                    await conn.execute(text(
                        f"ALTER TABLE {preparer.quote(Click.__tablename__)} "
                        f"ADD COLUMN {preparer.quote(column.name)} {column_type}"
                    ))
            except SQLAlchemyError as e:
                logger.error("Failed to add column", column=column.name, error=str(e))
                continue

            added.append(column.name)
            logger.info("Added column", column=column.name, type=column_type)

        return added

    async def add(self, click: Click) -> None:
        """Insert a new click record.

        Raises:
            SQLAlchemyError: on any storage failure, including an id collision.
        """
        async with self._session_factory() as session:
            try:
                session.add(click)
                await session.commit()
                logger.debug("Click stored", click_id=click.id)
            except SQLAlchemyError:
                await session.rollback()
                raise

    async def enrich(self, click_id: str, values: dict[str, Any]) -> int:
        """Apply an enrichment update to one click record.

        Every enrichment column is set, missing keys become NULL, so a later
        report fully replaces an earlier one.

        Returns:
            Number of rows updated (0 when the id is unknown).
        """
        fields = {name: values.get(name) for name in ENRICHMENT_COLUMNS}
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    update(Click).where(Click.id == click_id).values(**fields)
                )
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise
        return result.rowcount

    async def get(self, click_id: str) -> Click | None:
        async with self._session_factory() as session:
            return await session.get(Click, click_id)

    async def latest(self) -> Click | None:
        """Most recently created click, if any."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Click).order_by(Click.created_at.desc()).limit(1)
            )
            return result.scalar_one_or_none()

    async def recent(self, limit: int, offset: int = 0) -> list[Click]:
        """Clicks ordered newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Click)
                .order_by(Click.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    async def close(self) -> None:
        """Dispose the engine's connections."""
        await self._engine.dispose()
