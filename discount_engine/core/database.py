from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from discount_engine.core.config import settings
import os
from discount_engine.core.logging_config import get_logger
logger = get_logger("database")

# Extract path from sqlite:///path/to/db and make sure its directory exists
db_path = settings.DATABASE_URL.replace("sqlite:///", "")
db_dir = os.path.dirname(db_path)
if db_dir:
    os.makedirs(db_dir, exist_ok=True)

engine_kw = {
    "connect_args": {
        "check_same_thread": False,
        "timeout": 20.0,  # Wait up to 20 seconds for locks
    },
    "pool_pre_ping": True,
    "echo": settings.DEBUG,
}
engine = create_engine(settings.DATABASE_URL, **engine_kw)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db() -> None:
    """Create the discount tables if they do not exist yet."""
    import discount_engine.models  # noqa: F401  (registers the tables on Base)
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database ready at {db_path}")


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
