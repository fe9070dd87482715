# pallet_orders/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from pallet_orders.utils.settings import DATABASE_URL
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    #in-memory sqlite: every session must see the same connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=True, autocommit=False)
Base = declarative_base()


def init_db() -> None:
    #models must be imported before create_all can see their tables
    import pallet_orders.data.models  # noqa: F401

    logger.info(f"Creating tables: {sorted(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
