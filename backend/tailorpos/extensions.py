# Overview: Flask extension instances for database and migrations, plus SQLite connection tuning.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event

db = SQLAlchemy()
migrate = Migrate()


def _apply_sqlite_pragmas(dbapi_connection, connection_record):
    # WAL lets registers keep reading while one checkout holds the write lock
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.close()


def init_sqlite_pragmas(app) -> None:
    """Register the pragma hook on file-backed SQLite engines (no-op otherwise)."""
    uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
    if not uri.startswith("sqlite") or ":memory:" in uri:
        return
    with app.app_context():
        event.listen(db.engine, "connect", _apply_sqlite_pragmas)
