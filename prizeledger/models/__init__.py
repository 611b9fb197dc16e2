from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .user import User  # noqa: F401
from .wallet import Wallet, Transaction  # noqa: F401
from .lottery import (  # noqa: F401
    DRAW_OPEN_STATUSES,
    Draw,
    DrawWinner,
    Lottery,
    MonthlyTicketBonus,
    Ticket,
)
from .trading import (  # noqa: F401
    BinaryTrade,
    PriceHistory,
    TradeAuditLog,
    TradingInstrument,
)
from .rounds import (  # noqa: F401
    MysterySearchRegistration,
    MysterySearchRound,
    MysterySearchSubmission,
    SurpriseDraw,
    SurpriseDrawTicket,
    TryYourLuckParticipant,
    TryYourLuckRound,
)

__all__ = [
    "Base",
    "User",
    "Wallet",
    "Transaction",
    "DRAW_OPEN_STATUSES",
    "Lottery",
    "Draw",
    "Ticket",
    "DrawWinner",
    "MonthlyTicketBonus",
    "TradingInstrument",
    "PriceHistory",
    "BinaryTrade",
    "TradeAuditLog",
    "MysterySearchRound",
    "MysterySearchRegistration",
    "MysterySearchSubmission",
    "TryYourLuckRound",
    "TryYourLuckParticipant",
    "SurpriseDraw",
    "SurpriseDrawTicket",
]
