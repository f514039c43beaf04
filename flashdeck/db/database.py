"""
DuckDB database interactions for flashdeck.

FlashcardDatabase is the card store: it keeps collections, cards, the
review log and global study stats, and it persists scheduler output. It
does no scheduling itself.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

import duckdb

from . import db_utils
from .connection import ConnectionHandler
from .schema_manager import SchemaManager
from ..constants import MASTERY_MIN_EASE_FACTOR, MASTERY_MIN_REPETITIONS
from ..exceptions import (
    CardOperationError,
    CollectionNotFoundError,
    CollectionOperationError,
    ConcurrentUpdateError,
    DatabaseConnectionError,
    DatabaseError,
    MarshallingError,
    ReviewOperationError,
)
from ..models import Card, Collection, Review, SchedulingState, StudyStats
from ..scheduler import SchedulerOutput

# --- Logging Setup ---
logger = logging.getLogger(__name__)

T = TypeVar("T")

# --- Helper Functions ---


def _rows_to_dicts(cursor: duckdb.DuckDBPyConnection) -> List[Dict[str, Any]]:
    """Convert cursor results to list of dictionaries using column names."""
    rows = cursor.fetchall()
    if not rows or cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class FlashcardDatabase:
    """
    Acts as a Facade for the database subsystem, providing a simple,
    high-level interface for all flashcard data operations.

    Every statement runs on its own cursor, so one instance can be shared by
    threads. Scheduling writes are compare-and-set on `cards.revision`: two
    near-simultaneous ratings for the same card cannot both land on the same
    prior state.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path: Path to the database file, or ':memory:'.
            read_only: If True, open the database in read-only mode.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)
        logger.info(
            f"FlashcardDatabase initialized for DB at: {self._handler.db_path_resolved}"  # noqa: E501
        )

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    @property
    def read_only(self) -> bool:
        return self._handler.read_only

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self._handler.get_connection()

    def close_connection(self) -> None:
        self._handler.close_connection()

    def __enter__(self) -> "FlashcardDatabase":
        """
        Open the connection, creating the schema if the database is new.
        """
        self.get_connection()
        if self._handler.is_new_db and not self._handler.read_only:
            self.initialize_schema()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Ensures the connection is closed on exiting the context."""
        self.close_connection()

    def initialize_schema(self, force_recreate_tables: bool = False) -> None:
        self._schema_manager.initialize_schema(
            force_recreate_tables=force_recreate_tables
        )

    # --- Low-level helpers ---

    def _query(
        self,
        sql: str,
        params: Sequence[Any] = (),
        error_cls: type = DatabaseError,
        action: str = "query",
    ) -> List[Dict[str, Any]]:
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(sql, list(params))
                return _rows_to_dicts(cursor)
        except duckdb.Error as e:
            logger.error(f"Error during {action}: {e}")
            raise error_cls(
                f"Failed to {action}: {e}", original_exception=e
            ) from e

    def _require_writable(self, action: str) -> None:
        if self.read_only:
            raise DatabaseConnectionError(
                f"Cannot {action} in read-only mode."
            )

    def _run_in_transaction(
        self,
        work: Callable[[duckdb.DuckDBPyConnection], T],
        error_cls: type,
        action: str,
    ) -> T:
        """
        Run `work(cursor)` inside BEGIN/COMMIT, rolling back on any failure.

        Our own DatabaseErrors propagate unchanged. A DuckDB write-write
        conflict becomes ConcurrentUpdateError. Any other DuckDB error is
        wrapped in `error_cls`.
        """
        conn = self.get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.begin()
                try:
                    result = work(cursor)
                    cursor.commit()
                except Exception:
                    try:
                        cursor.rollback()
                        logger.info(
                            f"Transaction rolled back due to error in {action}."
                        )
                    except duckdb.Error as rb_err:
                        logger.error(f"Failed to rollback transaction: {rb_err}")
                    raise
            return result
        except DatabaseError:
            raise
        except duckdb.TransactionException as e:
            logger.warning(f"Write conflict during {action}: {e}")
            raise ConcurrentUpdateError(
                f"Concurrent update conflict during {action}: {e}",
                original_exception=e,
            ) from e
        except duckdb.Error as e:
            logger.error(f"Error during {action}: {e}")
            raise error_cls(
                f"Failed to {action}: {e}", original_exception=e
            ) from e

    def _one_or_none(
        self, rows: List[Dict[str, Any]], parse: Callable[[Dict[str, Any]], T]
    ) -> Optional[T]:
        return parse(rows[0]) if rows else None

    # --- Collection Operations ---

    def create_collection(self, collection: Collection) -> Collection:
        """
        Persist a new collection.

        Raises:
            CollectionOperationError: If the name is taken or the insert fails.
        """
        self._require_writable("create collection")
        sql = """
        INSERT INTO collections (id, name, topic, date_added, times_played)
        VALUES ($1, $2, $3, $4, $5);
        """
        params = db_utils.collection_to_db_params_tuple(collection)

        def work(cursor):
            existing = cursor.execute(
                "SELECT id FROM collections WHERE name = $1;", (collection.name,)
            ).fetchone()
            if existing:
                raise CollectionOperationError(
                    f"Collection '{collection.name}' already exists."
                )
            cursor.execute(sql, params)

        self._run_in_transaction(
            work, CollectionOperationError, "create collection"
        )
        logger.info(f"Created collection '{collection.name}' ({collection.id})")
        return collection

    def get_collection(self, collection_id: uuid.UUID) -> Optional[Collection]:
        rows = self._query(
            "SELECT * FROM collections WHERE id = $1;",
            (collection_id,),
            CollectionOperationError,
            f"fetch collection {collection_id}",
        )
        return self._one_or_none(rows, db_utils.db_row_to_collection)

    def get_collection_by_name(self, name: str) -> Optional[Collection]:
        rows = self._query(
            "SELECT * FROM collections WHERE name = $1;",
            (name.strip(),),
            CollectionOperationError,
            f"fetch collection '{name}'",
        )
        return self._one_or_none(rows, db_utils.db_row_to_collection)

    def require_collection(self, name: str) -> Collection:
        """
        Fetch a collection by name.

        Raises:
            CollectionNotFoundError: If no collection has that name.
        """
        collection = self.get_collection_by_name(name)
        if collection is None:
            raise CollectionNotFoundError(f"Collection '{name}' not found.")
        return collection

    def get_all_collections(self) -> List[Collection]:
        rows = self._query(
            "SELECT * FROM collections ORDER BY date_added ASC, name ASC;",
            (),
            CollectionOperationError,
            "list collections",
        )
        return [db_utils.db_row_to_collection(row) for row in rows]

    def delete_collection(self, collection_id: uuid.UUID) -> bool:
        """
        Delete a collection together with its cards and their reviews.

        Returns:
            True if the collection existed.
        """
        self._require_writable("delete collection")

        def work(cursor) -> bool:
            cursor.execute(
                "DELETE FROM reviews WHERE collection_id = $1;", (collection_id,)
            )
            cursor.execute(
                "DELETE FROM cards WHERE collection_id = $1;", (collection_id,)
            )
            cursor.execute(
                "DELETE FROM collections WHERE id = $1 RETURNING id;",
                (collection_id,),
            )
            return bool(cursor.fetchall())

        deleted = self._run_in_transaction(
            work, CollectionOperationError, "delete collection"
        )
        if deleted:
            logger.info(f"Deleted collection {collection_id}")
        return deleted

    # --- Card Operations ---
    # fmt: off
    _INSERT_CARD_SQL = """
        INSERT INTO cards (uuid, collection_id, question, answer, added_at,
                           interval_days, ease_factor, repetitions,
                           last_reviewed, next_review, revision)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11);
        """

    _UPDATE_SCHEDULING_SQL = """
        UPDATE cards
        SET interval_days = $1, ease_factor = $2, repetitions = $3,
            last_reviewed = $4, next_review = $5, revision = revision + 1
        WHERE uuid = $6 AND revision = $7
        RETURNING revision;
        """
    # fmt: on

    def add_cards(self, cards: Sequence[Card]) -> int:
        """
        Insert new cards in a single transaction.

        Returns:
            int: Number of cards inserted; an empty sequence is a no-op.

        Raises:
            CollectionNotFoundError: If a card references a missing collection.
            CardOperationError: If the insert fails (e.g. duplicate UUID).
        """
        if not cards:
            return 0
        self._require_writable("add cards")

        try:
            params_list = db_utils.card_to_db_params_list(cards)
        except MarshallingError as e:
            raise CardOperationError(
                "Failed to prepare card data for database operation."
            ) from e

        collection_ids = {card.collection_id for card in cards}

        def work(cursor) -> int:
            for collection_id in collection_ids:
                found = cursor.execute(
                    "SELECT 1 FROM collections WHERE id = $1;", (collection_id,)
                ).fetchone()
                if not found:
                    raise CollectionNotFoundError(
                        f"Collection {collection_id} not found."
                    )
            cursor.executemany(self._INSERT_CARD_SQL, params_list)
            return len(params_list)

        inserted = self._run_in_transaction(work, CardOperationError, "add cards")
        logger.info(f"Successfully added {inserted} cards.")
        return inserted

    def get_card_by_uuid(self, card_uuid: uuid.UUID) -> Optional[Card]:
        """
        Fetches a card by its UUID.

        Raises:
            CardOperationError: If the query fails or the row is malformed.
        """
        rows = self._query(
            "SELECT * FROM cards WHERE uuid = $1;",
            (card_uuid,),
            CardOperationError,
            f"fetch card {card_uuid}",
        )
        try:
            return self._one_or_none(rows, db_utils.db_row_to_card)
        except MarshallingError as e:
            raise CardOperationError(
                f"Failed to parse card with UUID {card_uuid} from database.",
                original_exception=e,
            ) from e

    def get_cards_for_collection(self, collection_id: uuid.UUID) -> List[Card]:
        rows = self._query(
            "SELECT * FROM cards WHERE collection_id = $1 "
            "ORDER BY added_at ASC, question ASC;",
            (collection_id,),
            CardOperationError,
            f"list cards of collection {collection_id}",
        )
        try:
            return [db_utils.db_row_to_card(row) for row in rows]
        except MarshallingError as e:
            raise CardOperationError(
                "Failed to parse cards from database.", original_exception=e
            ) from e

    def delete_card(self, card_uuid: uuid.UUID) -> bool:
        """
        Delete a card and its review history.

        Returns:
            True if the card existed.
        """
        self._require_writable("delete card")

        def work(cursor) -> bool:
            cursor.execute("DELETE FROM reviews WHERE card_uuid = $1;", (card_uuid,))
            cursor.execute(
                "DELETE FROM cards WHERE uuid = $1 RETURNING uuid;", (card_uuid,)
            )
            return bool(cursor.fetchall())

        deleted = self._run_in_transaction(work, CardOperationError, "delete card")
        if deleted:
            logger.info(f"Deleted card {card_uuid}")
        return deleted

    def get_due_cards(
        self,
        collection_id: uuid.UUID,
        now_ms: int,
        limit: Optional[int] = None,
    ) -> List[Card]:
        """
        Retrieve the cards of a collection whose `next_review <= now_ms`,
        oldest due first (ties broken by `added_at`).

        A `limit` of None returns every due card; 0 returns an empty list.
        """
        if limit == 0:
            return []
        sql = """
        SELECT * FROM cards
        WHERE collection_id = $1 AND next_review <= $2
        ORDER BY next_review ASC, added_at ASC
        """
        params: List[Any] = [collection_id, now_ms]
        if limit is not None and limit > 0:
            sql += " LIMIT $3"
            params.append(limit)

        rows = self._query(
            sql, params, CardOperationError, f"fetch due cards for {collection_id}"
        )
        try:
            return [db_utils.db_row_to_card(row) for row in rows]
        except MarshallingError as e:
            raise CardOperationError(
                f"Failed to parse due cards for collection {collection_id}.",
                original_exception=e,
            ) from e

    def get_due_card_count(self, collection_id: uuid.UUID, now_ms: int) -> int:
        rows = self._query(
            "SELECT COUNT(*) AS due FROM cards "
            "WHERE collection_id = $1 AND next_review <= $2;",
            (collection_id, now_ms),
            CardOperationError,
            f"count due cards for {collection_id}",
        )
        return rows[0]["due"] if rows else 0

    # --- Scheduling writes ---

    def _cas_update(
        self,
        cursor,
        card_uuid: uuid.UUID,
        output: SchedulerOutput,
        expected_revision: int,
    ) -> None:
        cursor.execute(
            self._UPDATE_SCHEDULING_SQL,
            (
                output.interval,
                output.ease_factor,
                output.repetitions,
                output.last_reviewed,
                output.next_review,
                card_uuid,
                expected_revision,
            ),
        )
        if cursor.fetchall():
            return
        current = cursor.execute(
            "SELECT revision FROM cards WHERE uuid = $1;", (card_uuid,)
        ).fetchone()
        if current is None:
            raise CardOperationError(f"Card {card_uuid} not found.")
        raise ConcurrentUpdateError(
            f"Card {card_uuid} was modified concurrently "
            f"(expected revision {expected_revision}, found {current[0]})."
        )

    def _fetch_card_after_write(self, card_uuid: uuid.UUID) -> Card:
        card = self.get_card_by_uuid(card_uuid)
        if card is None:
            raise CardOperationError(
                f"Card {card_uuid} disappeared after a successful update."
            )
        return card

    def update_card_scheduling(
        self,
        card_uuid: uuid.UUID,
        output: SchedulerOutput,
        expected_revision: int,
    ) -> Card:
        """
        Write scheduler output verbatim onto a card if it is still at
        `expected_revision`.

        Raises:
            ConcurrentUpdateError: If the card's revision moved on.
            CardOperationError: If the card does not exist or the write fails.
        """
        self._require_writable("update card")
        self._run_in_transaction(
            lambda cursor: self._cas_update(
                cursor, card_uuid, output, expected_revision
            ),
            CardOperationError,
            "update card scheduling",
        )
        return self._fetch_card_after_write(card_uuid)

    def apply_review(
        self,
        review: Review,
        output: SchedulerOutput,
        expected_revision: int,
    ) -> Card:
        """
        Atomically log a review, write the new scheduling state onto the
        card and bump the global study stats.

        Raises:
            ConcurrentUpdateError: If the card's revision moved on; nothing
                is written in that case.
            ReviewOperationError: If the transaction fails for another reason.
        """
        self._require_writable("add review")
        insert_sql = """
        INSERT INTO reviews (card_uuid, collection_id, ts, quality,
                             interval_before, interval_after, ease_before,
                             ease_after, repetitions_after, next_review, is_lapse)
        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11);
        """
        correct = not review.is_lapse

        def work(cursor) -> None:
            self._cas_update(cursor, review.card_uuid, output, expected_revision)
            cursor.execute(insert_sql, db_utils.review_to_db_params_tuple(review))
            stats = self._read_study_stats(cursor).record(correct, review.ts)
            self._write_study_stats(cursor, stats)

        self._run_in_transaction(work, ReviewOperationError, "apply review")
        return self._fetch_card_after_write(review.card_uuid)

    # --- Collection-level resets ---

    def reset_collection_progress(
        self, collection_id: uuid.UUID, now_ms: int
    ) -> int:
        """
        Put every card of the collection back to the default scheduling
        state, due at `now_ms`. Review history is kept.

        Returns:
            int: Number of cards reset.
        """
        self._require_writable("reset collection")
        return self._run_in_transaction(
            lambda cursor: self._reset_cards(cursor, collection_id, now_ms),
            CollectionOperationError,
            "reset collection progress",
        )

    def _reset_cards(self, cursor, collection_id: uuid.UUID, now_ms: int) -> int:
        found = cursor.execute(
            "SELECT 1 FROM collections WHERE id = $1;", (collection_id,)
        ).fetchone()
        if not found:
            raise CollectionNotFoundError(f"Collection {collection_id} not found.")
        initial = SchedulingState()
        cursor.execute(
            """
            UPDATE cards
            SET interval_days = $1, ease_factor = $2, repetitions = $3,
                last_reviewed = $4, next_review = $4, revision = revision + 1
            WHERE collection_id = $5
            RETURNING uuid;
            """,
            (
                initial.interval,
                initial.ease_factor,
                initial.repetitions,
                now_ms,
                collection_id,
            ),
        )
        count = len(cursor.fetchall())
        logger.info(f"Reset {count} cards in collection {collection_id}")
        return count

    def replay_collection(
        self, collection_id: uuid.UUID, now_ms: int
    ) -> Collection:
        """
        Start a collection over: reset every card and count one more play.
        """
        self._require_writable("replay collection")

        def work(cursor) -> None:
            self._reset_cards(cursor, collection_id, now_ms)
            cursor.execute(
                "UPDATE collections SET times_played = times_played + 1 "
                "WHERE id = $1;",
                (collection_id,),
            )

        self._run_in_transaction(
            work, CollectionOperationError, "replay collection"
        )
        collection = self.get_collection(collection_id)
        if collection is None:
            raise CollectionNotFoundError(f"Collection {collection_id} not found.")
        return collection

    # --- Review Operations ---

    def get_reviews_for_card(
        self, card_uuid: uuid.UUID, order_by_ts_desc: bool = True
    ) -> List[Review]:
        order_clause = (
            "ORDER BY ts DESC, review_id DESC"
            if order_by_ts_desc
            else "ORDER BY ts ASC, review_id ASC"
        )
        rows = self._query(
            f"SELECT * FROM reviews WHERE card_uuid = $1 {order_clause};",
            (card_uuid,),
            ReviewOperationError,
            f"get reviews for card {card_uuid}",
        )
        try:
            return [db_utils.db_row_to_review(row) for row in rows]
        except MarshallingError as e:
            raise ReviewOperationError(
                f"Failed to parse reviews for card {card_uuid} from database.",
                original_exception=e,
            ) from e

    # --- Study stats ---

    def get_study_stats(self) -> StudyStats:
        rows = self._query(
            "SELECT * FROM study_stats WHERE id = 1;",
            (),
            ReviewOperationError,
            "fetch study stats",
        )
        if not rows:
            return StudyStats()
        return db_utils.db_row_to_study_stats(rows[0])

    def _read_study_stats(self, cursor) -> StudyStats:
        cursor.execute("SELECT * FROM study_stats WHERE id = 1;")
        rows = _rows_to_dicts(cursor)
        if not rows:
            return StudyStats()
        return db_utils.db_row_to_study_stats(rows[0])

    def _write_study_stats(self, cursor, stats: StudyStats) -> None:
        cursor.execute(
            """
            UPDATE study_stats
            SET cards_studied = $1, correct_answers = $2, streak = $3,
                last_study_date = $4
            WHERE id = 1;
            """,
            db_utils.study_stats_to_db_params_tuple(stats),
        )

    def reset_study_stats(self) -> None:
        self._require_writable("reset study stats")
        self._run_in_transaction(
            lambda cursor: self._write_study_stats(cursor, StudyStats()),
            ReviewOperationError,
            "reset study stats",
        )

    def get_database_stats(self, now_ms: int) -> Dict[str, Any]:
        """
        Retrieve aggregate statistics.

        Returns:
            dict with keys:
                - total_cards (int)
                - total_reviews (int)
                - collections (List[dict]): name, times_played, card_count,
                  due_count and mastered_count per collection.
                - study (StudyStats)
        """
        totals = self._query(
            "SELECT (SELECT COUNT(*) FROM cards) AS total_cards, "
            "(SELECT COUNT(*) FROM reviews) AS total_reviews;",
            (),
            DatabaseError,
            "fetch database totals",
        )
        per_collection = self._query(
            """
            SELECT
                c.name AS name,
                c.times_played AS times_played,
                COUNT(k.uuid) AS card_count,
                COUNT(CASE WHEN k.next_review <= $1 THEN 1 END) AS due_count,
                COUNT(CASE WHEN k.repetitions >= $2 AND k.ease_factor >= $3
                           THEN 1 END) AS mastered_count
            FROM collections c
            LEFT JOIN cards k ON k.collection_id = c.id
            GROUP BY c.name, c.times_played
            ORDER BY c.name;
            """,
            (now_ms, MASTERY_MIN_REPETITIONS, MASTERY_MIN_EASE_FACTOR),
            DatabaseError,
            "fetch collection stats",
        )
        total_row = totals[0] if totals else {}
        return {
            "total_cards": total_row.get("total_cards", 0) or 0,
            "total_reviews": total_row.get("total_reviews", 0) or 0,
            "collections": per_collection,
            "study": self.get_study_stats(),
        }
