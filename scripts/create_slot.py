"""Create a single time slot.

Usage: Run from project root directory
    python scripts/create_slot.py "2025-10-30 10:00" "2025-10-30 11:00"
    python scripts/create_slot.py 2025-10-30T10:00:00 2025-10-30T11:00:00

Times are UTC unless they carry an offset.
"""
import argparse
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session
from app.database import engine, create_db_and_tables
from app.errors import ServiceError
from app.services.slots import create_slot


def parse_time(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date format: {value}")


def main():
    parser = argparse.ArgumentParser(description="Create a time slot")
    parser.add_argument("start_time", type=parse_time, help="Start, YYYY-MM-DD HH:MM or ISO format")
    parser.add_argument("end_time", type=parse_time, help="End, YYYY-MM-DD HH:MM or ISO format")
    args = parser.parse_args()

    create_db_and_tables()

    with Session(engine) as db:
        try:
            slot = create_slot(db, args.start_time, args.end_time)
        except ServiceError as exc:
            print(f"Error: {exc.message}")
            sys.exit(1)

        print(f"Created slot #{slot.id}: {slot.start_time} - {slot.end_time}")


if __name__ == "__main__":
    main()
