"""Create back-to-back time slots for one day.

Usage: Run from project root directory
    python scripts/create_slots.py <date> <start_hour> <end_hour> <slot_duration_minutes>

Examples:
    1-hour slots from 9 AM to 5 PM on Oct 30:
        python scripts/create_slots.py 2025-10-30 9 17 60
    30-minute slots from 10 AM to 2 PM on Nov 1:
        python scripts/create_slots.py 2025-11-01 10 14 30
"""
import argparse
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session
from app.database import engine, create_db_and_tables
from app.errors import ServiceError
from app.services.slots import create_slots_for_day


def main():
    parser = argparse.ArgumentParser(description="Create time slots for a day")
    parser.add_argument("date", type=date.fromisoformat, help="Date in YYYY-MM-DD format")
    parser.add_argument("start_hour", type=int, help="Starting hour (0-23)")
    parser.add_argument("end_hour", type=int, help="Ending hour (0-23)")
    parser.add_argument("duration", type=int, help="Duration of each slot in minutes")
    args = parser.parse_args()

    create_db_and_tables()

    print("\nSlot Creation Plan:")
    print("-" * 50)
    print(f"Date:           {args.date}")
    print(f"Time Range:     {args.start_hour}:00 - {args.end_hour}:00")
    print(f"Slot Duration:  {args.duration} minutes")
    print("-" * 50)

    with Session(engine) as db:
        try:
            result = create_slots_for_day(db, args.date, args.start_hour, args.end_hour, args.duration)
        except ServiceError as exc:
            print(f"Error: {exc.message}")
            sys.exit(1)

    for slot in result.created:
        print(f"✓ Created slot #{slot.id}: {slot.start_time:%H:%M} - {slot.end_time:%H:%M}")
    for start_time, end_time, reason in result.skipped:
        print(f"⊘ Skipped ({reason}): {start_time:%H:%M} - {end_time:%H:%M}")

    print("-" * 50)
    print(f"✓ Successfully created: {len(result.created)} slot(s)")
    print(f"⊘ Skipped: {len(result.skipped)} slot(s)")


if __name__ == "__main__":
    main()
