"""
Import questions and options from CSV.

    python -m quiz_service.question_import questions.csv [--database-url URL]

CSV format:
    question_text,option_1,option_2,option_3,option_4,correct_option
    "What is 2+2?","3","4","5","6","2"

correct_option is the 1-based index of the correct option.
"""

import argparse
import csv
import logging
import sys
from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy.orm import Session

from shared.database import init_db, make_engine, make_session_factory
from . import crud
from .config import load_settings

logger = logging.getLogger(__name__)

OPTION_COLUMNS = ("option_1", "option_2", "option_3", "option_4")


@dataclass
class ImportReport:
    imported: int = 0
    skipped: list[tuple[int, str]] = field(default_factory=list)  # (line number, reason)


def parse_row(row: dict) -> tuple[str, list[str], int]:
    """Returns (question_text, options, correct_index) or raises ValueError."""
    text = (row.get("question_text") or "").strip()
    if not text:
        raise ValueError("missing question_text")

    options = [(row.get(col) or "").strip() for col in OPTION_COLUMNS]
    options = [o for o in options if o]
    if len(options) < 2:
        raise ValueError("need at least 2 options")

    raw = (row.get("correct_option") or "").strip()
    try:
        correct = int(raw)
    except ValueError:
        raise ValueError(f"correct_option {raw!r} is not a number")
    if not 1 <= correct <= len(options):
        raise ValueError(f"correct_option {correct} out of range 1-{len(options)}")
    return text, options, correct - 1


def import_rows(db: Session, rows: Iterable[dict]) -> ImportReport:
    report = ImportReport()
    # line 1 is the header
    for line_no, row in enumerate(rows, start=2):
        try:
            text, options, correct_idx = parse_row(row)
        except ValueError as e:
            report.skipped.append((line_no, str(e)))
            continue

        q = crud.create_question(db, text)
        for pos, opt_text in enumerate(options):
            crud.add_option(db, q.id, opt_text, pos == correct_idx, position=pos)
        report.imported += 1
    return report


def import_csv(db: Session, path: str) -> ImportReport:
    with open(path, newline="", encoding="utf-8-sig") as fh:
        return import_rows(db, csv.DictReader(fh))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import quiz questions from a CSV file.")
    parser.add_argument("csv_path")
    parser.add_argument("--database-url", default=None, help="defaults to DATABASE_URL")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    engine = make_engine(args.database_url or load_settings().database_url)
    init_db(engine)
    SessionLocal = make_session_factory(engine)

    with SessionLocal() as db:
        report = import_csv(db, args.csv_path)

    for line_no, reason in report.skipped:
        logger.warning("Skipped line %d: %s", line_no, reason)
    print(f"Imported {report.imported} questions, skipped {len(report.skipped)}")
    return 0 if report.imported else 1


if __name__ == "__main__":
    sys.exit(main())
