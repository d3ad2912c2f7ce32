"""
Database schema creation.

Every statement is idempotent so :meth:`SchemaManager.initialize_schema` runs
on each startup.
"""

import aiosqlite

from lobbycord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables, indexes and triggers, and records the schema version."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables, indexes and triggers if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %s)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Voice channels that spawn temporary rooms
        await db.execute("""
            CREATE TABLE IF NOT EXISTS lobby_rooms (
                room_id INTEGER PRIMARY KEY,
                guild_id INTEGER NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS temporary_rooms (
                room_id INTEGER PRIMARY KEY,
                guild_id INTEGER NOT NULL,
                owner_id INTEGER NOT NULL,
                lobby_room_id INTEGER NOT NULL,
                is_persistent INTEGER NOT NULL DEFAULT 0,
                is_archived INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # One hidden category per guild for archived persistent rooms
        await db.execute("""
            CREATE TABLE IF NOT EXISTS archive_categories (
                guild_id INTEGER PRIMARY KEY,
                category_id INTEGER NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS user_birthdays (
                user_id INTEGER PRIMARY KEY,
                birth_month INTEGER NOT NULL CHECK (birth_month BETWEEN 1 AND 12),
                birth_day INTEGER NOT NULL CHECK (birth_day BETWEEN 1 AND 31),
                birth_year INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS birthday_channels (
                guild_id INTEGER PRIMARY KEY,
                channel_id INTEGER NOT NULL,
                message_id INTEGER,
                birthday_role_id INTEGER,
                custom_message TEXT,
                custom_message_without_age TEXT,
                custom_header TEXT,
                custom_footer TEXT,
                collection_title TEXT,
                collection_description TEXT,
                collection_button_label TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS guild_settings (
                guild_id INTEGER PRIMARY KEY,
                timezone TEXT NOT NULL DEFAULT 'UTC',
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # guild_id NULL means the schedule applies to every guild
        await db.execute("""
            CREATE TABLE IF NOT EXISTS schedules (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER,
                task_type TEXT NOT NULL,
                cron_expression TEXT NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1,
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
        await db.execute("CREATE INDEX IF NOT EXISTS idx_lobby_rooms_guild ON lobby_rooms(guild_id)")
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_temporary_rooms_owner "
            "ON temporary_rooms(guild_id, owner_id, lobby_room_id, is_archived)"
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_user_birthdays_date ON user_birthdays(birth_month, birth_day)")
        # NULL guild ids must collide with each other, which a plain UNIQUE would not do
        await db.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_schedules_scope "
            "ON schedules(COALESCE(guild_id, -1), task_type)"
        )

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_user_birthdays_timestamp
            AFTER UPDATE ON user_birthdays
            FOR EACH ROW
            BEGIN
                UPDATE user_birthdays SET updated_at = CURRENT_TIMESTAMP
                WHERE user_id = NEW.user_id;
            END
        """)
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_schedules_timestamp
            AFTER UPDATE ON schedules
            FOR EACH ROW
            BEGIN
                UPDATE schedules SET updated_at = CURRENT_TIMESTAMP
                WHERE id = NEW.id;
            END
        """)

        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_guild_settings_timestamp
            AFTER UPDATE ON guild_settings
            FOR EACH ROW
            BEGIN
                UPDATE guild_settings SET updated_at = CURRENT_TIMESTAMP
                WHERE guild_id = NEW.guild_id;
            END
        """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
