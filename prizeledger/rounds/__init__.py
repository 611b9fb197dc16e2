"""Multi-day rounds built on the settlement executor."""

from .mystery import (
    GuessResult,
    activate_due_mystery_rounds,
    complete_mystery_round,
    create_mystery_round,
    current_mystery_round,
    register_for_mystery,
    reveal_next_clue,
    submit_guess,
)
from .seed_phrase import PhraseCipher
from .surprise import (
    activate_due_surprise_draws,
    complete_surprise_draw,
    create_surprise_draw,
    purchase_surprise_ticket,
)
from .try_your_luck import (
    RoundCompletion,
    complete_try_your_luck_round,
    create_try_your_luck_round,
    current_try_your_luck_round,
    join_try_your_luck,
    request_unlock,
)

__all__ = [
    "GuessResult",
    "PhraseCipher",
    "RoundCompletion",
    "activate_due_mystery_rounds",
    "complete_mystery_round",
    "create_mystery_round",
    "current_mystery_round",
    "register_for_mystery",
    "reveal_next_clue",
    "submit_guess",
    "activate_due_surprise_draws",
    "complete_surprise_draw",
    "create_surprise_draw",
    "purchase_surprise_ticket",
    "complete_try_your_luck_round",
    "create_try_your_luck_round",
    "current_try_your_luck_round",
    "join_try_your_luck",
    "request_unlock",
]
