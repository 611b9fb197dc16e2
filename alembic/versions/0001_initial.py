"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
MONEY = sa.Numeric(18, 4)
CENTS = sa.Numeric(18, 2)
MULTIPLIER = sa.Numeric(5, 2)
PRICE = sa.Numeric(20, 8)


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _fk(table: str, column: str, target: str, ondelete: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        [column],
        [f"{target}.id"],
        name=f"fk_{table}_{column}_{target}",
        ondelete=ondelete,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        _ts("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_table(
        "lotteries",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("ticket_price", MONEY, nullable=False),
        sa.Column("prize_pool", MONEY, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _ts("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_lotteries"),
        sa.UniqueConstraint("type", name="uq_lotteries_type"),
    )
    op.create_table(
        "trading_instruments",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("symbol", sa.String(20), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("payout_multiplier", MULTIPLIER, nullable=False),
        sa.Column("min_trade_amount", CENTS, nullable=False),
        sa.Column("max_trade_amount", CENTS, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.CheckConstraint(
            "payout_multiplier > 0",
            name="ck_trading_instruments_payout_multiplier_positive",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_trading_instruments"),
        sa.UniqueConstraint("symbol", name="uq_trading_instruments_symbol"),
    )
    op.create_table(
        "wallets",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("balance", MONEY, nullable=False),
        sa.Column("bonus_balance", MONEY, nullable=False),
        sa.Column("total_deposits", MONEY, nullable=False),
        sa.Column("total_withdrawals", MONEY, nullable=False),
        sa.Column("total_winnings", MONEY, nullable=False),
        sa.Column("total_bonuses", MONEY, nullable=False),
        _ts("updated_at"),
        sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
        sa.CheckConstraint(
            "bonus_balance >= 0", name="ck_wallets_bonus_balance_non_negative"
        ),
        _fk("wallets", "user_id", "users", "CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_wallets"),
        sa.UniqueConstraint("user_id", name="uq_wallets_user_id"),
    )
    op.create_table(
        "transactions",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("wallet_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reference", sa.String(64), nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "status IN ('pending','confirmed','failed')",
            name="ck_transactions_status_enum",
        ),
        _fk("transactions", "wallet_id", "wallets", "RESTRICT"),
        _fk("transactions", "user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
    )
    op.create_index("ix_transactions_user_type", "transactions", ["user_id", "type"])
    op.create_index("ix_transactions_reference", "transactions", ["reference"])

    op.create_table(
        "draws",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("lottery_id", ID, nullable=False),
        _ts("draw_date"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("total_prize_pool", MONEY, nullable=False),
        sa.Column("platform_fees", MONEY, nullable=False),
        sa.Column("distribution_pool", MONEY, nullable=False),
        sa.Column("prize_amount", MONEY, nullable=False),
        sa.Column("tickets_sold", sa.Integer(), nullable=False),
        sa.Column("winning_numbers", sa.JSON(), nullable=True),
        _ts("executed_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "status IN ('scheduled','active','completed','cancelled')",
            name="ck_draws_status_enum",
        ),
        _fk("draws", "lottery_id", "lotteries", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_draws"),
    )
    op.create_index("ix_draws_status_date", "draws", ["status", "draw_date"])

    op.create_table(
        "tickets",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("numbers", sa.JSON(), nullable=False),
        sa.Column("ticket_number", sa.String(32), nullable=False),
        sa.Column("is_winner", sa.Boolean(), nullable=False),
        sa.Column("prize_amount", MONEY, nullable=False),
        sa.Column("is_free_ticket", sa.Boolean(), nullable=False),
        _ts("created_at"),
        _fk("tickets", "draw_id", "draws", "RESTRICT"),
        _fk("tickets", "user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_tickets"),
        sa.UniqueConstraint(
            "draw_id", "ticket_number", name="uq_tickets_draw_ticket_number"
        ),
    )
    op.create_index("ix_tickets_draw", "tickets", ["draw_id"])

    op.create_table(
        "draw_winners",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("draw_id", ID, nullable=False),
        sa.Column("ticket_id", ID, nullable=True),
        sa.Column("user_id", ID, nullable=True),
        sa.Column("display_only", sa.Boolean(), nullable=False),
        sa.Column("display_label", sa.String(64), nullable=True),
        sa.Column("winner_type", sa.String(40), nullable=False),
        sa.Column("prize_amount", MONEY, nullable=False),
        sa.Column("prize_description", sa.Text(), nullable=True),
        sa.Column("is_distributed", sa.Boolean(), nullable=False),
        _ts("distributed_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "(display_only AND ticket_id IS NULL AND user_id IS NULL)"
            " OR (NOT display_only AND ticket_id IS NOT NULL AND user_id IS NOT NULL)",
            name="ck_draw_winners_display_only_has_no_ticket",
        ),
        _fk("draw_winners", "draw_id", "draws", "RESTRICT"),
        _fk("draw_winners", "ticket_id", "tickets", "RESTRICT"),
        _fk("draw_winners", "user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_draw_winners"),
        sa.UniqueConstraint("ticket_id", name="uq_draw_winners_ticket_id"),
    )
    op.create_index("ix_draw_winners_draw", "draw_winners", ["draw_id"])

    op.create_table(
        "monthly_ticket_bonuses",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("monthly_draw_id", ID, nullable=False),
        sa.Column("daily_tickets_count", sa.Integer(), nullable=False),
        sa.Column("bonus_tickets_awarded", sa.Integer(), nullable=False),
        _ts("created_at"),
        _fk("monthly_ticket_bonuses", "user_id", "users", "CASCADE"),
        _fk("monthly_ticket_bonuses", "monthly_draw_id", "draws", "CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_monthly_ticket_bonuses"),
        sa.UniqueConstraint(
            "user_id", "monthly_draw_id", name="uq_monthly_bonus_user_draw"
        ),
    )

    op.create_table(
        "price_history",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("instrument_id", ID, nullable=False),
        sa.Column("price", PRICE, nullable=False),
        _ts("timestamp"),
        sa.Column("source", sa.String(50), nullable=True),
        _fk("price_history", "instrument_id", "trading_instruments", "CASCADE"),
        sa.PrimaryKeyConstraint("id", name="pk_price_history"),
    )
    op.create_index(
        "ix_price_history_instrument_ts", "price_history", ["instrument_id", "timestamp"]
    )

    op.create_table(
        "binary_trades",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("instrument_id", ID, nullable=False),
        sa.Column("direction", sa.String(4), nullable=False),
        sa.Column("stake_amount", CENTS, nullable=False),
        sa.Column("entry_price", PRICE, nullable=False),
        sa.Column("exit_price", PRICE, nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        _ts("entry_time"),
        _ts("expiry_time"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payout_amount", MONEY, nullable=False),
        _ts("settled_at", nullable=True),
        sa.CheckConstraint(
            "direction IN ('up','down')", name="ck_binary_trades_direction_enum"
        ),
        sa.CheckConstraint(
            "status IN ('active','won','lost','error','cancelled')",
            name="ck_binary_trades_status_enum",
        ),
        sa.CheckConstraint("stake_amount > 0", name="ck_binary_trades_stake_positive"),
        _fk("binary_trades", "user_id", "users", "RESTRICT"),
        _fk("binary_trades", "instrument_id", "trading_instruments", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_binary_trades"),
    )
    op.create_index(
        "ix_binary_trades_status_expiry", "binary_trades", ["status", "expiry_time"]
    )

    op.create_table(
        "trade_audit_log",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("trade_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        _ts("created_at"),
        _fk("trade_audit_log", "trade_id", "binary_trades", "RESTRICT"),
        _fk("trade_audit_log", "user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_trade_audit_log"),
    )

    op.create_table(
        "mystery_search_rounds",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("encrypted_phrase", sa.Text(), nullable=False),
        sa.Column("revealed_words", sa.JSON(), nullable=False),
        sa.Column("reveals_done", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("registration_fee", MONEY, nullable=False),
        sa.Column("prize_pool", MONEY, nullable=False),
        _ts("start_time"),
        _ts("registration_ends_at"),
        _ts("end_time"),
        _ts("next_clue_reveal_at", nullable=True),
        sa.Column("winner_user_id", ID, nullable=True),
        sa.Column("rolled_over_to_id", ID, nullable=True),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "status IN ('registration','active','completed','cancelled')",
            name="ck_mystery_search_rounds_status_enum",
        ),
        _fk("mystery_search_rounds", "winner_user_id", "users", "RESTRICT"),
        _fk(
            "mystery_search_rounds",
            "rolled_over_to_id",
            "mystery_search_rounds",
            "SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_mystery_search_rounds"),
    )
    op.create_index("ix_mystery_rounds_status", "mystery_search_rounds", ["status"])

    op.create_table(
        "mystery_search_registrations",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("round_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("fee_paid", MONEY, nullable=False),
        _ts("last_wrong_guess_at", nullable=True),
        _ts("registered_at"),
        _fk("mystery_search_registrations", "round_id", "mystery_search_rounds", "CASCADE"),
        _fk("mystery_search_registrations", "user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_mystery_search_registrations"),
        sa.UniqueConstraint(
            "round_id", "user_id", name="uq_mystery_registration_round_user"
        ),
    )
    op.create_table(
        "mystery_search_submissions",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("round_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        _ts("submitted_at"),
        _fk("mystery_search_submissions", "round_id", "mystery_search_rounds", "CASCADE"),
        _fk("mystery_search_submissions", "user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_mystery_search_submissions"),
    )

    op.create_table(
        "try_your_luck_rounds",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("lock_amount", MONEY, nullable=False),
        sa.Column("prize_pool", MONEY, nullable=False),
        _ts("start_time"),
        _ts("end_time"),
        sa.Column("winner_user_id", ID, nullable=True),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "status IN ('active','completed','cancelled')",
            name="ck_try_your_luck_rounds_status_enum",
        ),
        _fk("try_your_luck_rounds", "winner_user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_try_your_luck_rounds"),
    )
    op.create_index("ix_try_your_luck_rounds_status", "try_your_luck_rounds", ["status"])

    op.create_table(
        "try_your_luck_participants",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("round_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("lock_type", sa.String(20), nullable=False),
        sa.Column("amount_locked", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("is_winner", sa.Boolean(), nullable=False),
        sa.Column("prize_amount", MONEY, nullable=False),
        sa.Column("unlock_requested", sa.Boolean(), nullable=False),
        sa.Column("carried_from_id", ID, nullable=True),
        _ts("locked_at"),
        _ts("unlocked_at", nullable=True),
        sa.CheckConstraint(
            "lock_type IN ('standard','until_win')",
            name="ck_try_your_luck_participants_lock_type_enum",
        ),
        sa.CheckConstraint(
            "status IN ('locked','won','refunded','carried','released')",
            name="ck_try_your_luck_participants_status_enum",
        ),
        _fk("try_your_luck_participants", "round_id", "try_your_luck_rounds", "CASCADE"),
        _fk("try_your_luck_participants", "user_id", "users", "RESTRICT"),
        _fk(
            "try_your_luck_participants",
            "carried_from_id",
            "try_your_luck_participants",
            "SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_try_your_luck_participants"),
        sa.UniqueConstraint("round_id", "user_id", name="uq_try_your_luck_round_user"),
    )

    op.create_table(
        "surprise_draws",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("prize_pool", MONEY, nullable=False),
        sa.Column("number_of_winners", sa.Integer(), nullable=False),
        sa.Column("ticket_price", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _ts("start_time"),
        _ts("end_time"),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "status IN ('scheduled','active','completed','cancelled')",
            name="ck_surprise_draws_status_enum",
        ),
        sa.CheckConstraint(
            "number_of_winners > 0", name="ck_surprise_draws_winners_positive"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_surprise_draws"),
    )
    op.create_table(
        "surprise_draw_tickets",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("surprise_draw_id", ID, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("ticket_number", sa.Integer(), nullable=False),
        sa.Column("is_winner", sa.Boolean(), nullable=False),
        sa.Column("prize_amount", MONEY, nullable=False),
        _ts("purchased_at"),
        _fk("surprise_draw_tickets", "surprise_draw_id", "surprise_draws", "CASCADE"),
        _fk("surprise_draw_tickets", "user_id", "users", "RESTRICT"),
        sa.PrimaryKeyConstraint("id", name="pk_surprise_draw_tickets"),
        sa.UniqueConstraint(
            "surprise_draw_id", "ticket_number", name="uq_surprise_ticket_number"
        ),
    )


def downgrade() -> None:
    op.drop_table("surprise_draw_tickets")
    op.drop_table("surprise_draws")
    op.drop_table("try_your_luck_participants")
    op.drop_index("ix_try_your_luck_rounds_status", table_name="try_your_luck_rounds")
    op.drop_table("try_your_luck_rounds")
    op.drop_table("mystery_search_submissions")
    op.drop_table("mystery_search_registrations")
    op.drop_index("ix_mystery_rounds_status", table_name="mystery_search_rounds")
    op.drop_table("mystery_search_rounds")
    op.drop_table("trade_audit_log")
    op.drop_index("ix_binary_trades_status_expiry", table_name="binary_trades")
    op.drop_table("binary_trades")
    op.drop_index("ix_price_history_instrument_ts", table_name="price_history")
    op.drop_table("price_history")
    op.drop_table("monthly_ticket_bonuses")
    op.drop_index("ix_draw_winners_draw", table_name="draw_winners")
    op.drop_table("draw_winners")
    op.drop_index("ix_tickets_draw", table_name="tickets")
    op.drop_table("tickets")
    op.drop_index("ix_draws_status_date", table_name="draws")
    op.drop_table("draws")
    op.drop_index("ix_transactions_reference", table_name="transactions")
    op.drop_index("ix_transactions_user_type", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("wallets")
    op.drop_table("trading_instruments")
    op.drop_table("lotteries")
    op.drop_table("users")
