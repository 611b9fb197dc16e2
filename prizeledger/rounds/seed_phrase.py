"""Secret phrase generation and authenticated encryption for mystery-search rounds."""

from __future__ import annotations

import os
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from ..randomness import RandomnessProvider

PHRASE_LENGTH = 12

# First 100 words of the BIP39 English list.
WORD_LIST = (
    "abandon ability able about above absent absorb abstract absurd abuse "
    "access accident account accuse achieve acid acoustic acquire across act "
    "action actor actress actual adapt add addict address adjust admit "
    "adult advance advice aerobic affair afford afraid again agent agree "
    "ahead aim air airport aisle alarm album alcohol alert alien "
    "all alley allow almost alone alpha already also alter always "
    "amateur amazing among amount amused analyst anchor ancient anger angle "
    "angry animal ankle announce annual another answer antenna antique anxiety "
    "any apart apology appear apple approve april arcade arch arctic "
    "area arena argue arm armed armor army around arrange arrest"
).split()


def generate_phrase(rng: RandomnessProvider, length: int = PHRASE_LENGTH) -> str:
    """Return ``length`` random words from :data:`WORD_LIST` joined by spaces."""
    return " ".join(rng.choice(WORD_LIST) for _ in range(length))


def normalize_phrase(phrase: str) -> str:
    """Lower-case and collapse whitespace so guesses compare on words only."""
    return " ".join(phrase.lower().split())


class PhraseCipher:
    """Fernet wrapper used to store round phrases at rest.

    Parameters
    ----------
    key : Optional[Union[str, bytes]], default: None
        Fernet key. Falls back to ``ROUND_SECRET_KEY``.

    Raises
    ------
    ValueError
        If no key is configured or the key is malformed.
    """

    def __init__(self, key: Optional[Union[str, bytes]] = None) -> None:
        key = key or os.getenv("ROUND_SECRET_KEY")
        if not key:
            raise ValueError("Environment variable 'ROUND_SECRET_KEY' is not set")
        if isinstance(key, str):
            key = key.encode("ascii")
        self._fernet = Fernet(key)

    def encrypt(self, phrase: str) -> str:
        return self._fernet.encrypt(phrase.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt ``token``.

        Raises
        ------
        ValueError
            If the token was tampered with or encrypted under another key.
        """
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("round phrase could not be decrypted") from exc


__all__ = [
    "PHRASE_LENGTH",
    "WORD_LIST",
    "generate_phrase",
    "normalize_phrase",
    "PhraseCipher",
]
