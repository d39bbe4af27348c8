"""
Database schema initialization.

Creates the ``feed_configs`` table the dashboard writes feed definitions into,
its indexes and timestamp trigger, and records the schema version.
"""

import aiosqlite
from goatbot.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the database schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables, indexes, and triggers if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS feed_configs (
                id TEXT PRIMARY KEY,
                platform TEXT NOT NULL,
                source TEXT NOT NULL,
                channel_id TEXT,
                message_template TEXT,
                check_interval_minutes INTEGER DEFAULT 15,
                last_posted_id TEXT,
                is_enabled INTEGER NOT NULL DEFAULT 1,
                meta TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_feed_configs_enabled ON feed_configs(is_enabled)")

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        """Keep ``updated_at`` current on every row update."""
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_feed_configs_timestamp
            AFTER UPDATE ON feed_configs
            FOR EACH ROW
            BEGIN
                UPDATE feed_configs SET updated_at = CURRENT_TIMESTAMP
                WHERE id = NEW.id;
            END
        """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
