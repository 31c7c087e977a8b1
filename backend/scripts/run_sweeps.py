#!/usr/bin/env python3
"""
Run the background sweeps once: expire stale carts, recover stale payment sessions and
extend open-ended templates. Useful with SCHEDULER_ENABLED=false or from cron.
Run from backend: python scripts/run_sweeps.py [--only carts|payments|horizon]
"""
import argparse
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from parkbook.db.session import SessionLocal
from parkbook.services.availability_service import extend_open_ended_templates
from parkbook.services.checkout_service import expire_stale_carts, recover_stale_payment_sessions

SWEEPS = {
    "payments": ("payment sessions recovered", recover_stale_payment_sessions),
    "carts": ("carts expired", expire_stale_carts),
    "horizon": ("instances created", extend_open_ended_templates),
}


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--only", choices=sorted(SWEEPS), help="run a single sweep")
    args = parser.parse_args()

    names = [args.only] if args.only else list(SWEEPS)
    db = SessionLocal()
    try:
        for name in names:
            label, sweep = SWEEPS[name]
            print(f"{name}: {sweep(db)} {label}")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
