"""Ping-pong league helpers."""

from .models import (
    BYE,
    TBD,
    BracketMatch,
    BracketRound,
    BracketSlot,
    Game,
    Player,
    PlayerStats,
    Tournament,
    utc_now_iso,
)
from .service import GameOutcome, LeagueService
from .storage import LeagueStorage
from .validation import (
    ConcurrentLockConflict,
    ConcurrentUpdateConflict,
    InvalidGameRecord,
    InvalidValueError,
    LeagueError,
    PlayerNotFound,
    TournamentAlreadyLocked,
    TournamentNotFound,
    TournamentNotLockable,
)

__all__ = [
    "BYE",
    "TBD",
    "BracketMatch",
    "BracketRound",
    "BracketSlot",
    "Game",
    "Player",
    "PlayerStats",
    "Tournament",
    "utc_now_iso",
    "GameOutcome",
    "LeagueService",
    "LeagueStorage",
    "ConcurrentLockConflict",
    "ConcurrentUpdateConflict",
    "InvalidGameRecord",
    "InvalidValueError",
    "LeagueError",
    "PlayerNotFound",
    "TournamentAlreadyLocked",
    "TournamentNotFound",
    "TournamentNotLockable",
]
