#!/usr/bin/env python3
"""
Clear carts, cart items and bookings (TRUNCATE) and reset every instance to full capacity.
Parks, pricing and templates are kept. PostgreSQL only.
Run with backend stopped to avoid locks: cd backend && python scripts/clear_booking_state.py
"""
import sys
from pathlib import Path

# backend/scripts/ -> backend/
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import text

from parkbook.db.session import engine
from parkbook.db.tables import BOOKING_STATE_TABLE_NAMES


def main():
    tables = ", ".join(BOOKING_STATE_TABLE_NAMES)
    print(f"Connecting to DB and truncating {tables} ...")
    with engine.connect() as conn:
        conn.execute(text(f"TRUNCATE TABLE {tables} RESTART IDENTITY CASCADE"))
        reset = conn.execute(text("UPDATE availability_instances SET available_tickets = ticket_limit"))
        conn.commit()
    print(f"Done. Booking state cleared; {reset.rowcount} instances reset to full capacity.")


if __name__ == "__main__":
    main()
