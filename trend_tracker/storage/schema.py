"""
Database schema for the trend tables.

Every uniqueness rule the batch jobs rely on is enforced here rather than
in application code, so concurrent runs cannot create duplicate keywords,
clusters, memberships, matches, periods, or ranking entries.
"""

import logging

from trend_tracker.storage.database import Database

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- Keywords collected from every source
CREATE TABLE IF NOT EXISTS trend_keywords (
    id BIGSERIAL PRIMARY KEY,
    keyword TEXT NOT NULL,
    normalized_keyword TEXT NOT NULL UNIQUE,
    category TEXT,
    source TEXT NOT NULL,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_trend_keywords_active_created
    ON trend_keywords(is_active, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_trend_keywords_source
    ON trend_keywords(source);

-- Signal time series, one row per (keyword, source, collection instant)
CREATE TABLE IF NOT EXISTS trend_metrics (
    id BIGSERIAL PRIMARY KEY,
    keyword_id BIGINT NOT NULL REFERENCES trend_keywords(id) ON DELETE CASCADE,
    source TEXT NOT NULL,
    collected_at TIMESTAMPTZ NOT NULL,
    search_volume REAL NOT NULL,
    source_rank INTEGER,
    UNIQUE (keyword_id, source, collected_at)
);

CREATE INDEX IF NOT EXISTS idx_trend_metrics_keyword_collected
    ON trend_metrics(keyword_id, collected_at DESC);

-- Topic clusters
CREATE TABLE IF NOT EXISTS trend_clusters (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    normalized_name TEXT NOT NULL UNIQUE,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- A keyword belongs to at most one cluster
CREATE TABLE IF NOT EXISTS trend_cluster_members (
    keyword_id BIGINT PRIMARY KEY REFERENCES trend_keywords(id) ON DELETE CASCADE,
    cluster_id BIGINT NOT NULL REFERENCES trend_clusters(id) ON DELETE CASCADE,
    similarity_score REAL NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_trend_cluster_members_score
    ON trend_cluster_members(cluster_id, similarity_score DESC);

-- Product catalog (owned by the catalog subsystem, read-only here)
CREATE TABLE IF NOT EXISTS products (
    id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    normalized_name TEXT NOT NULL,
    category TEXT,
    is_active BOOLEAN NOT NULL DEFAULT TRUE
);

CREATE INDEX IF NOT EXISTS idx_products_active_category
    ON products(is_active, category);

-- Keyword to product links
CREATE TABLE IF NOT EXISTS trend_product_matches (
    id BIGSERIAL PRIMARY KEY,
    keyword_id BIGINT NOT NULL REFERENCES trend_keywords(id) ON DELETE CASCADE,
    product_id BIGINT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    match_score REAL NOT NULL,
    match_type TEXT NOT NULL,
    is_manual BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (keyword_id, product_id)
);

-- Calendar buckets
CREATE TABLE IF NOT EXISTS trend_ranking_periods (
    id BIGSERIAL PRIMARY KEY,
    period_kind TEXT NOT NULL,
    year INTEGER NOT NULL,
    month INTEGER,
    day INTEGER,
    started_at TIMESTAMPTZ NOT NULL,
    ended_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- month/day are NULL for coarser buckets, so uniqueness goes through COALESCE
CREATE UNIQUE INDEX IF NOT EXISTS idx_trend_ranking_periods_bucket
    ON trend_ranking_periods(period_kind, year, COALESCE(month, 0), COALESCE(day, 0));

CREATE TABLE IF NOT EXISTS trend_ranking_entries (
    period_id BIGINT NOT NULL REFERENCES trend_ranking_periods(id) ON DELETE CASCADE,
    keyword_id BIGINT NOT NULL REFERENCES trend_keywords(id) ON DELETE CASCADE,
    rank INTEGER NOT NULL,
    previous_rank INTEGER,
    score REAL NOT NULL,
    search_volume REAL NOT NULL,
    product_count INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (period_id, keyword_id),
    UNIQUE (period_id, rank)
);
"""


async def create_tables(database: Database) -> None:
    """
    Create the trend tables and indexes if they don't exist.

    Args:
        database: Connected Database instance.
    """
    await database.execute(SCHEMA_SQL)
    logger.info("Trend tables created")
