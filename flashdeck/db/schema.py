"""
Defines the database schema for flashdeck using a SQL string constant.
Timestamps are stored as BIGINT milliseconds since the epoch.
"""

DB_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS collections (
        id UUID PRIMARY KEY,
        name VARCHAR NOT NULL UNIQUE,
        topic VARCHAR NOT NULL DEFAULT '',
        date_added BIGINT NOT NULL,
        times_played INTEGER NOT NULL DEFAULT 0
    );

    CREATE TABLE IF NOT EXISTS cards (
        uuid UUID PRIMARY KEY,
        collection_id UUID NOT NULL,
        question VARCHAR NOT NULL,
        answer VARCHAR NOT NULL,
        added_at BIGINT NOT NULL,
        interval_days INTEGER NOT NULL DEFAULT 0,
        ease_factor DOUBLE NOT NULL DEFAULT 2.5,
        repetitions INTEGER NOT NULL DEFAULT 0,
        last_reviewed BIGINT NOT NULL,
        next_review BIGINT NOT NULL,
        revision INTEGER NOT NULL DEFAULT 0
    );

    CREATE SEQUENCE IF NOT EXISTS review_seq;

    CREATE TABLE IF NOT EXISTS reviews (
        review_id INTEGER PRIMARY KEY DEFAULT nextval('review_seq'),
        card_uuid UUID NOT NULL,
        collection_id UUID NOT NULL,
        ts BIGINT NOT NULL,
        quality INTEGER NOT NULL CHECK (quality >= 0 AND quality <= 5),
        interval_before INTEGER NOT NULL,
        interval_after INTEGER NOT NULL,
        ease_before DOUBLE NOT NULL,
        ease_after DOUBLE NOT NULL,
        repetitions_after INTEGER NOT NULL,
        next_review BIGINT NOT NULL,
        is_lapse BOOLEAN NOT NULL
    );

    CREATE TABLE IF NOT EXISTS study_stats (
        id INTEGER PRIMARY KEY,
        cards_studied INTEGER NOT NULL DEFAULT 0,
        correct_answers INTEGER NOT NULL DEFAULT 0,
        streak INTEGER NOT NULL DEFAULT 0,
        last_study_date BIGINT
    );

    INSERT INTO study_stats (id, cards_studied, correct_answers, streak, last_study_date)
    VALUES (1, 0, 0, 0, NULL)
    ON CONFLICT (id) DO NOTHING;

    CREATE INDEX IF NOT EXISTS idx_cards_collection_id ON cards (collection_id);
    CREATE INDEX IF NOT EXISTS idx_reviews_card_uuid ON reviews (card_uuid);
"""
