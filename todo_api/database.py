"""SQLite database engine, session factory, seeding and dev auto-migration using SQLModel."""

import logging
from enum import Enum
from pathlib import Path

from fastapi import Request
from sqlalchemy import Column, event, inspect, text
from sqlalchemy.dialects.sqlite import dialect as sqlite_dialect
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from todo_api.config import DATABASE_URL
from todo_api.models import Category

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("General", "#6B7280", "General tasks and items"),
    ("Work", "#3B82F6", "Work-related tasks"),
    ("Personal", "#EF4444", "Personal tasks and reminders"),
    ("Shopping", "#10B981", "Shopping lists and items"),
    ("Health", "#F59E0B", "Health and fitness related"),
]


def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine; SQLite connections get WAL and foreign key enforcement."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    new_engine = create_engine(url, echo=False, **kwargs)

    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if new_engine.url.database not in (None, "", ":memory:"):
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return new_engine


engine = make_engine()


def _compile_column_type(column: Column) -> str:
    """Compile a SQLAlchemy column type to a SQLite-compatible DDL string."""
    return column.type.compile(dialect=sqlite_dialect())


def _get_sqlite_default(column: Column) -> str:
    """Derive a SQL DEFAULT clause for NOT NULL columns added via ALTER TABLE.

    SQLite requires a default value when adding a NOT NULL column to an
    existing table. Returns an empty string if the column is nullable.
    """
    if column.nullable:
        return ""

    if column.default is not None and column.default.is_scalar:
        value = column.default.arg
        if isinstance(value, Enum):
            value = value.value
        if isinstance(value, bool):
            return f" DEFAULT {int(value)}"
        if isinstance(value, (int, float)):
            return f" DEFAULT {value}"
        escaped = str(value).replace("'", "''")
        return f" DEFAULT '{escaped}'"

    type_str = _compile_column_type(column).upper()
    if "INT" in type_str or "BOOL" in type_str:
        return " DEFAULT 0"
    if "DATE" in type_str or "TIME" in type_str:
        return " DEFAULT '1970-01-01 00:00:00'"
    return " DEFAULT ''"


def auto_migrate(bind: Engine) -> None:
    """Add columns present on the models but missing from existing tables.

    Older databases predate ``todos.category_id``; this brings them forward
    with ALTER TABLE ADD COLUMN so existing rows survive. Removed columns and
    type changes are only logged, since todo data must not be dropped.
    """
    inspector = inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table_name, table in SQLModel.metadata.tables.items():
        if table_name not in existing_tables:
            continue

        db_columns = {col["name"] for col in inspector.get_columns(table_name)}
        model_columns = {col.name: col for col in table.columns}

        added = set(model_columns) - db_columns
        removed = db_columns - set(model_columns)
        if removed:
            logger.warning(
                "Table '%s' has columns unknown to the models: %s",
                table_name, sorted(removed),
            )
        if not added:
            continue

        logger.info("Adding columns to '%s': %s", table_name, sorted(added))
        with bind.begin() as conn:
            for col_name in sorted(added):
                col = model_columns[col_name]
                col_type = _compile_column_type(col)
                nullable = "" if col.nullable else " NOT NULL"
                default = _get_sqlite_default(col)
                stmt = (
                    f'ALTER TABLE "{table_name}" '
                    f'ADD COLUMN "{col_name}" {col_type}{nullable}{default}'
                )
                logger.info("  %s", stmt)
                conn.execute(text(stmt))


def seed_default_categories(bind: Engine) -> int:
    """Insert the default categories when no live category exists.

    Returns the number of categories inserted.
    """
    with Session(bind) as session:
        live = session.exec(select(Category).where(Category.deleted == False)).first()  # noqa: E712
        if live is not None:
            return 0
        for name, color, description in DEFAULT_CATEGORIES:
            session.add(Category(name=name, color=color, description=description))
        session.commit()
    logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))
    return len(DEFAULT_CATEGORIES)


def create_db_and_tables(bind: Engine, seed: bool = False) -> None:
    """Create all tables from SQLModel metadata, migrate, and optionally seed."""
    database = bind.url.database
    if bind.dialect.name == "sqlite" and database not in (None, "", ":memory:"):
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    SQLModel.metadata.create_all(bind)
    auto_migrate(bind)
    if seed:
        seed_default_categories(bind)


def check_database(bind: Engine) -> bool:
    """Return True when a trivial query succeeds."""
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database health check failed")
        return False


def get_session(request: Request):
    """Yield a database session bound to the app's engine for FastAPI dependency injection."""
    with Session(request.app.state.engine) as session:
        yield session
