"""
db/migrations.py
----------------
Additive, idempotent schema evolution for tenant stores.

ensure_schema() runs on the first touch of every store in every process:
  1. CREATE TABLE for any model table that does not exist yet.
  2. For existing tables, ALTER TABLE ADD COLUMN for every model column the
     store is missing (older stores predate several profile/review columns).
  3. CREATE INDEX for every declared index that does not exist yet.

Nothing is ever dropped, renamed or rewritten. Each step runs on an
autocommit connection and is individually fault tolerant: a failing step is
logged and recorded in the report, and the remaining steps still run, so a
store stays usable even when e.g. one index cannot be built.
"""

from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import Column, Connection, Table, TextClause, inspect
from sqlalchemy.ext.asyncio import AsyncConnection

from phrofs.core.logging import get_logger
from phrofs.models import Base

logger = get_logger(__name__)


@dataclass
class MigrationReport:
    created_tables: list[str] = field(default_factory=list)
    added_columns: list[str] = field(default_factory=list)
    created_indexes: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created_tables or self.added_columns or self.created_indexes)


def _default_clause(column: Column) -> str:
    default = column.server_default
    arg = getattr(default, "arg", None)
    if isinstance(arg, str):
        return " DEFAULT '" + arg.replace("'", "''") + "'"
    if isinstance(arg, TextClause):
        return f" DEFAULT {arg.text}"
    # SQLite rejects non-constant defaults (CURRENT_TIMESTAMP) in ADD COLUMN
    return ""


def add_column_ddl(table: Table, column: Column, dialect) -> str:
    col_type = column.type.compile(dialect=dialect)
    ddl = f'ALTER TABLE "{table.name}" ADD COLUMN "{column.name}" {col_type}'
    default = _default_clause(column)
    ddl += default
    if default and not column.nullable:
        ddl += " NOT NULL"
    return ddl


def _run_step(report: MigrationReport, label: str, step: Callable[[], None]) -> bool:
    try:
        step()
        return True
    except Exception as exc:
        logger.warning("Migration step failed", step=label, error=str(exc))
        report.failures.append(label)
        return False


def _ensure_schema_sync(conn: Connection) -> MigrationReport:
    report = MigrationReport()
    existing_tables = set(inspect(conn).get_table_names())

    for table in Base.metadata.sorted_tables:
        if table.name in existing_tables:
            continue
        if _run_step(report, f"create:{table.name}", lambda t=table: t.create(conn, checkfirst=True)):
            report.created_tables.append(table.name)

    inspector = inspect(conn)
    for table in Base.metadata.sorted_tables:
        if table.name in report.created_tables or table.name not in existing_tables:
            continue
        present = {c["name"] for c in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name in present:
                continue
            label = f"column:{table.name}.{column.name}"
            if column.primary_key:
                logger.warning("Cannot add primary key column", step=label)
                report.failures.append(label)
                continue
            ddl = add_column_ddl(table, column, conn.dialect)
            if _run_step(report, label, lambda d=ddl: conn.exec_driver_sql(d)):
                report.added_columns.append(f"{table.name}.{column.name}")

    inspector = inspect(conn)
    for table in Base.metadata.sorted_tables:
        try:
            present = {i["name"] for i in inspector.get_indexes(table.name)}
        except Exception as exc:
            logger.warning("Index introspection failed", table=table.name, error=str(exc))
            report.failures.append(f"indexes:{table.name}")
            continue
        for index in table.indexes:
            if index.name in present:
                continue
            label = f"index:{index.name}"
            if _run_step(report, label, lambda i=index: i.create(conn, checkfirst=True)):
                report.created_indexes.append(index.name)

    return report


async def ensure_schema(conn: AsyncConnection) -> MigrationReport:
    """
    Bring a store's schema up to the current model definitions.

    The connection should be in AUTOCOMMIT mode so every DDL statement
    stands alone. Safe to run any number of times, including from
    overlapping process starts: every statement is skipped when its target
    already exists.
    """
    report = await conn.run_sync(_ensure_schema_sync)
    if report.changed:
        logger.info(
            "Schema migrated",
            created_tables=report.created_tables,
            added_columns=report.added_columns,
            created_indexes=report.created_indexes,
        )
    if report.failures:
        logger.warning("Schema migration finished with failures", failures=report.failures)
    return report
