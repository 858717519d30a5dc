# homedash/db.py
import os
from urllib.parse import urlsplit, urlunsplit
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from .models import Base
from .logger import logger


def _mask_creds(url: str) -> str:
    """Hide credentials for safe logging."""
    parts = urlsplit(url)
    if parts.username or parts.password:
        netloc = parts.hostname or ""
        if parts.port:
            netloc += f":{parts.port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    return url


def _resolve_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        return "sqlite:///./homedash.db"

    # Ensure TLS for Postgres
    if url.startswith("postgresql://") and "sslmode=" not in url:
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}sslmode=require"

    # Prefer psycopg v3 if installed; otherwise SQLAlchemy picks its default driver
    try:
        import psycopg  # noqa: F401
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    except ImportError:
        pass
    return url


def make_engine(url: str) -> Engine:
    engine_kwargs = {
        "echo": False,
        "future": True,
        "pool_pre_ping": True,   # drop dead/idle connections automatically
    }
    if url.startswith("sqlite"):
        # Needed for SQLite in threaded servers
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs.update(
            pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
            pool_recycle=180,
            pool_timeout=30,
        )
    eng = create_engine(url, **engine_kwargs)
    if url.startswith("sqlite"):
        event.listen(eng, "connect", _sqlite_fk_pragma)
    return eng


def _sqlite_fk_pragma(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


DATABASE_URL = _resolve_url()

if os.getenv("LOG_DB_URL") == "1":
    logger.info(f"DB -> {_mask_creds(DATABASE_URL)}")

engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db():
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Create tables if they don't exist. Use Alembic for real migrations."""
    Base.metadata.create_all(bind=bind or engine)
