from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from prizeledger.config import Settings
from prizeledger.db.engine import get_sessionmaker, make_engine
from prizeledger.models import Base
from prizeledger.workflows import ensure_scheduled_draws

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def upgrade_db(target_revision: str = "head") -> None:
    """Apply Alembic migrations up to ``target_revision``."""
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def report_tables(settings: Settings) -> None:
    """Print ledger tables and flag any the models expect but the database lacks."""
    engine = make_engine(settings.db_url)
    present = set(inspect(engine).get_table_names())
    expected = set(Base.metadata.tables)
    print("Ledger tables:", ", ".join(sorted(present & expected)))
    missing = expected - present
    if missing:
        print("Missing tables:", ", ".join(sorted(missing)))


def schedule_draws(settings: Settings) -> None:
    """Create the next draw for every active lottery that has none pending."""
    Session = get_sessionmaker(make_engine(settings.db_url))
    with Session.begin() as session:
        created = ensure_scheduled_draws(session, tz=settings.draw_tzinfo())
        for draw in created:
            print(f"Scheduled {draw.lottery.type} draw for {draw.draw_date.isoformat()}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Migrate the ledger database.")
    parser.add_argument("--revision", default="head")
    parser.add_argument(
        "--schedule-draws",
        action="store_true",
        help="also create the next draw of each active lottery",
    )
    args = parser.parse_args()

    settings = Settings.from_env()
    upgrade_db(args.revision)
    report_tables(settings)
    if args.schedule_draws:
        schedule_draws(settings)


if __name__ == "__main__":
    main()
