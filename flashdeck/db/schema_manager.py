import logging

import duckdb

from . import schema
from .connection import ConnectionHandler
from ..config import settings
from ..exceptions import DatabaseConnectionError, SchemaInitializationError

logger = logging.getLogger(__name__)

_TABLES = ("reviews", "cards", "collections", "study_stats")


class SchemaManager:
    """Creates (and on request recreates) the flashdeck tables."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        """
        Create the schema inside one transaction. Skipped for read-only file
        databases. `force_recreate_tables` drops every table first, which
        deletes all existing data.
        """
        if self._skip_for_read_only(force_recreate_tables):
            return

        conn = self._handler.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                try:
                    if force_recreate_tables:
                        self._recreate_tables(cursor)
                    cursor.execute(schema.DB_SCHEMA_SQL)
                    cursor.commit()
                except Exception:
                    cursor.rollback()
                    raise
            logger.info(f"Database schema at {self._handler.db_path_resolved} initialized successfully (or already exists).")
        except duckdb.Error as e:
            logger.error(f"Error initializing database schema at {self._handler.db_path_resolved}: {e}")
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e

    def _skip_for_read_only(self, force_recreate_tables: bool) -> bool:
        if not self._handler.read_only:
            return False
        if force_recreate_tables:
            raise DatabaseConnectionError("Cannot force_recreate_tables in read-only mode.")
        if not self._handler.is_memory:
            logger.warning("Attempting to initialize schema in read-only mode. Skipping.")
            return True
        return False

    def _perform_safety_check(self, cursor: duckdb.DuckDBPyConnection) -> None:
        """Refuse to drop an on-disk database that still holds cards or reviews."""
        if self._handler.is_memory or settings.testing_mode:
            return

        existing = {
            row[0]
            for row in cursor.execute(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_name IN ('cards', 'reviews');"
            ).fetchall()
        }
        card_count = review_count = 0
        if "cards" in existing:
            card_count = cursor.execute("SELECT COUNT(*) FROM cards").fetchone()[0]
        if "reviews" in existing:
            review_count = cursor.execute("SELECT COUNT(*) FROM reviews").fetchone()[0]

        if card_count or review_count:
            error_msg = (
                f"Refusing to drop tables holding data (cards: {card_count}, "
                f"reviews: {review_count})."
            )
            logger.error(error_msg)
            raise ValueError(error_msg)

    def _recreate_tables(self, cursor: duckdb.DuckDBPyConnection) -> None:
        self._perform_safety_check(cursor)

        logger.warning(f"Forcing table recreation for {self._handler.db_path_resolved}. ALL EXISTING DATA WILL BE LOST.")
        for table in _TABLES:
            cursor.execute(f"DROP TABLE IF EXISTS {table} CASCADE;")
        cursor.execute("DROP SEQUENCE IF EXISTS review_seq;")
