from sqlalchemy import text
from sqlalchemy.engine import Engine

# Columns added after the first deployments; create_all() does not alter existing tables.
LATE_COLUMNS = {
    "drafts": {"published_post_id": "INTEGER", "source_url": "TEXT"},
    "candidates": {"last_auto_blog_at": "TEXT"},
    "feed_sources": {"license_confirmed": "BOOLEAN DEFAULT 0"},
}

def column_exists(engine: Engine, table: str, column: str) -> bool:
    with engine.connect() as conn:
        res = conn.execute(text(f"PRAGMA table_info({table})"))
        cols = [row[1] for row in res.fetchall()]
        return column in cols

def migrate(engine: Engine) -> None:
    # SQLite only; other backends are migrated out of band
    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        for table, columns in LATE_COLUMNS.items():
            for column, ddl in columns.items():
                if not column_exists(engine, table, column):
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
