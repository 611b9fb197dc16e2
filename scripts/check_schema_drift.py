from __future__ import annotations

import sys

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext

from prizeledger.config import Settings
from prizeledger.db.engine import make_engine
from prizeledger.models import Base


def _print_ops(ops, indent: int = 0) -> None:
    prefix = "  " * indent
    for op in ops:
        print(f"{prefix}- {op}")
        sub_ops = getattr(op, "ops", None)
        if sub_ops:
            _print_ops(sub_ops, indent + 1)


def main() -> int:
    """Compare the ledger models against the live schema.

    Exit codes: 0 in sync, 1 drift found, 2 the check itself failed.
    """
    engine = make_engine(Settings.from_env().db_url)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    except Exception as exc:
        print(f"Ledger schema check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2

    if upgrade_ops is None:
        print(f"Ledger schema check: ERROR for {url_display}: no upgrade ops produced.")
        return 2
    if upgrade_ops.is_empty():
        print(f"Ledger schema check: OK for {url_display}.")
        return 0
    print(f"Ledger schema check: drift detected for {url_display}; run a migration:")
    _print_ops(upgrade_ops.ops or [])
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
