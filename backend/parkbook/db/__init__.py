from parkbook.db.base import Base
from parkbook.db.session import get_db, engine, SessionLocal, transaction
from parkbook.db.tables import ALL_TABLE_NAMES, BOOKING_STATE_TABLE_NAMES

__all__ = [
    "get_db",
    "engine",
    "SessionLocal",
    "transaction",
    "Base",
    "ALL_TABLE_NAMES",
    "BOOKING_STATE_TABLE_NAMES",
]
