"""
Database package for goatbot.

- **db_connection.py**: the shared aiosqlite ``ConnectionManager``.
- **db_schema.py**: ``feed_configs`` table creation and schema versioning.
"""
