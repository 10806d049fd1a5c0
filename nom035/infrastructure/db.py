"""
Database engine and session factory for the SQL-backed key-value store.

Only used when ``STORAGE_BACKEND`` is ``sqlite`` or ``mysql``; the in-memory
backend needs no engine.
"""

from __future__ import annotations

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import StorageConfig, get_settings
from .logging import get_logger
from .models import Base

logger = get_logger(__name__)


def create_database_engine(config: StorageConfig | None = None) -> Engine:
    """
    Create a SQLAlchemy engine from the storage configuration.

    Example:
        >>> engine = create_database_engine()
        >>> # Uses STORAGE_* environment settings
    """
    if config is None:
        config = get_settings().storage

    connection_url = config.get_connection_url()
    engine_options = config.get_engine_options()

    logger.info(f"Creating database engine for {config.backend} backend")
    logger.debug(f"Connection URL: {connection_url.split('@')[0]}@***")

    try:
        engine = create_engine(connection_url, **engine_options)
        logger.info("Database engine created successfully")
        return engine
    except Exception as e:
        logger.error(f"Failed to create database engine: {str(e)}")
        raise


def create_session_factory(engine: Engine | None = None) -> sessionmaker:
    if engine is None:
        engine = create_database_engine()

    return sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
    )


def initialise_database(engine: Engine) -> bool:
    """
    Ensure every ORM table exists.

    Returns True when all tables were already present before the call.
    """
    existing_tables = set(inspect(engine).get_table_names())
    expected_tables = [table.name for table in Base.metadata.sorted_tables]
    already_exists = all(table in existing_tables for table in expected_tables)
    Base.metadata.create_all(engine)
    if not already_exists:
        logger.info(f"Created tables: {', '.join(expected_tables)}")
    return already_exists
