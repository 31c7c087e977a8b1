#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from backend/:
  python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        errors.append("backend/.env missing. Copy from backend/.env.example and set DATABASE_URL, etc.")
    else:
        print("OK  .env exists")

    # 2) DB connection and schema
    try:
        from sqlalchemy import inspect, text

        from parkbook.db.session import engine
        from parkbook.db.tables import ALL_TABLE_NAMES

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
        missing = sorted(set(ALL_TABLE_NAMES) - set(inspect(engine).get_table_names()))
        if missing:
            errors.append(f"Tables missing: {', '.join(missing)}. Run: alembic upgrade head")
            print("FAIL Schema: missing", ", ".join(missing))
        else:
            print("OK  Schema (all tables present)")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 3) Providers configured
    try:
        from parkbook.config import settings
        from parkbook.services.payments import list_gateways
        from parkbook.services.working_hours import list_providers

        if settings.payment_provider not in list_gateways():
            errors.append(f"PAYMENT_PROVIDER={settings.payment_provider} is not one of {list_gateways()}")
        elif settings.payment_provider == "chargily" and not settings.chargily_api_key:
            errors.append("PAYMENT_PROVIDER=chargily but CHARGILY_API_KEY is empty")
        else:
            print(f"OK  Payment gateway ({settings.payment_provider})")
        if settings.working_hours_provider not in list_providers():
            errors.append(f"WORKING_HOURS_PROVIDER={settings.working_hours_provider} is not one of {list_providers()}")
        else:
            print(f"OK  Working hours provider ({settings.working_hours_provider})")
    except Exception as e:
        errors.append(f"Settings: {e}")
        print("FAIL Settings:", e)

    # 4) App import (catches missing deps, bad imports)
    try:
        from parkbook.main import app  # noqa: F401
        print("OK  App import (parkbook.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        print("\nThen start backend: uvicorn parkbook.main:app --reload --port 8000")
        return 1

    print("\nAll checks passed. Start with: uvicorn parkbook.main:app --reload --port 8000")
    return 0


if __name__ == "__main__":
    sys.exit(main())
