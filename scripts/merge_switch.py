"""Run the merge-switch matchmaking pass.

Usage: Run from project root directory
    python scripts/merge_switch.py [--seed N]

Safe to run again if it fails partway.
"""
import argparse
import logging
import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session
from app.config import LOG_FORMAT, LOG_LEVEL
from app.database import engine, create_db_and_tables
from app.services.matchmaking import run_matchmaking


def main():
    parser = argparse.ArgumentParser(description="Rebuild incomplete teams into full teams")
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducible leader tie-breaks"
    )
    args = parser.parse_args()

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    create_db_and_tables()

    with Session(engine) as db:
        summary = run_matchmaking(db, rng=random.Random(args.seed))

    print("\n=== MERGE-SWITCH SUMMARY ===\n")
    for key, value in summary.as_dict().items():
        print(f"  {key:<20} {value}")


if __name__ == "__main__":
    main()
