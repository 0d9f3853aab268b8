from contextlib import contextmanager
from typing import Iterator
from sqlalchemy.orm import Session
from discount_engine.core.logging_config import get_logger

logger = get_logger("db_transaction")


@contextmanager
def db_transaction(db: Session, label: str = "transaction") -> Iterator[Session]:
    """
    Unit of work on an existing session: commit when the block succeeds,
    roll back and re-raise otherwise.
    """
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"{label} rolled back: {e}", exc_info=True)
        raise
