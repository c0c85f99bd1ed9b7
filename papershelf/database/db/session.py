from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from papershelf.config import Config


def _connect_args(database_url: str) -> dict:
    # enrichment jobs run on scheduler threads
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    Config.database_url,
    pool_pre_ping=True,
    connect_args=_connect_args(Config.database_url),
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)
