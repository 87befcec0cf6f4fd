"""
Database helpers for the training traceability app.
Engine URL normalisation and SQLite connection setup live here so that the
app factory and config stay free of driver details.
"""
import logging
from sqlalchemy import event
from sqlalchemy.engine import Engine


def normalize_pg_url_for_sqlalchemy(url: str) -> str:
    """Normalize PostgreSQL URL for SQLAlchemy driver."""
    if not isinstance(url, str) or not url:
        return url
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    if not url.startswith('postgresql://'):
        return url
    driver = None
    try:
        import psycopg  # noqa: F401
        driver = 'psycopg'
    except ImportError:
        try:
            import psycopg2  # noqa: F401
            driver = 'psycopg2'
        except ImportError:
            driver = None
    if driver:
        return url.replace('postgresql://', f'postgresql+{driver}://', 1)
    return url


def engine_options(url: str) -> dict:
    """Engine kwargs for Flask-SQLAlchemy based on the database type."""
    if isinstance(url, str) and url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Trainee rows rely on ON DELETE CASCADE; SQLite ignores it unless enabled per connection
    module = type(dbapi_connection).__module__
    if not module.startswith('sqlite3'):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def init_db(app, db) -> None:
    """Create all tables for the configured database if they don't exist."""
    with app.app_context():
        db.create_all()
    logging.info('[DB] Schema ready')
