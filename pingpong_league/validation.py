from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from .models import format_iso


class LeagueError(Exception):
    """Base exception for league operations."""


class InvalidValueError(LeagueError, ValueError):
    """Base exception for validation failures."""


class InvalidGameRecord(InvalidValueError):
    """Raised when a game result cannot be recorded as submitted."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class PlayerNotFound(LeagueError):
    """Raised when one or more referenced players do not exist."""

    def __init__(self, player_ids: Iterable[str]) -> None:
        self.player_ids = tuple(player_ids)
        super().__init__(f"Player(s) not found: {', '.join(self.player_ids)}")


class TournamentNotFound(LeagueError):
    def __init__(self, tournament_id: str) -> None:
        self.tournament_id = tournament_id
        super().__init__(f"Tournament not found: {tournament_id}")


class TournamentNotLockable(LeagueError):
    """Raised when a tournament cannot transition to the locked state."""

    def __init__(self, tournament_id: str, reason: str) -> None:
        self.tournament_id = tournament_id
        self.reason = reason
        super().__init__(f"Tournament {tournament_id} cannot be started: {reason}")


class TournamentAlreadyLocked(TournamentNotLockable):
    def __init__(self, tournament_id: str) -> None:
        super().__init__(tournament_id, "already started")


class ConcurrentUpdateConflict(LeagueError):
    """Raised when a stored record changed after it was read; re-read and retry."""

    def __init__(self, record_ids: Iterable[str], message: str | None = None) -> None:
        self.record_ids = tuple(record_ids)
        super().__init__(
            message or f"Record(s) changed concurrently: {', '.join(self.record_ids)}"
        )


class ConcurrentLockConflict(ConcurrentUpdateConflict):
    """Raised when another writer locked the tournament first."""

    def __init__(self, tournament_id: str) -> None:
        self.tournament_id = tournament_id
        super().__init__(
            [tournament_id], f"Tournament {tournament_id} was modified concurrently"
        )


def validate_player_name(raw: str) -> str:
    name = raw.strip()
    if not name:
        raise InvalidValueError("Player name is required")
    if len(name) > 64:
        raise InvalidValueError("Player name must be 64 characters or fewer")
    return name


def validate_tournament_name(raw: str) -> str:
    name = raw.strip()
    if not name:
        raise InvalidValueError("Tournament name is required")
    if len(name) > 100:
        raise InvalidValueError("Tournament name must be 100 characters or fewer")
    return name


def validate_game_record(
    player1_id: str, player2_id: str, score1: object, score2: object
) -> tuple[int, int]:
    if not player1_id or not player2_id:
        raise InvalidGameRecord("Both players are required")
    if player1_id == player2_id:
        raise InvalidGameRecord("A player cannot play against themselves")
    scores: list[int] = []
    for score in (score1, score2):
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidGameRecord(f"Score must be an integer: {score!r}")
        if score < 0:
            raise InvalidGameRecord(f"Score cannot be negative: {score}")
        scores.append(score)
    if scores[0] == scores[1]:
        raise InvalidGameRecord("Games cannot end in a tie")
    return scores[0], scores[1]


def parse_game_date(raw: str | datetime | None) -> str:
    """Normalize a game timestamp to the stored ISO format in UTC."""
    if raw is None:
        return format_iso(datetime.now(UTC))
    if isinstance(raw, datetime):
        return format_iso(raw)
    value = raw.strip()
    if not value:
        raise InvalidGameRecord("A date/time value is required")
    normalized = value.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise InvalidGameRecord(
            "Use ISO format such as 2024-05-01T18:00 or 2024-05-01 18:00"
        ) from exc
    return format_iso(parsed)


__all__ = [
    "LeagueError",
    "InvalidValueError",
    "InvalidGameRecord",
    "PlayerNotFound",
    "TournamentNotFound",
    "TournamentNotLockable",
    "TournamentAlreadyLocked",
    "ConcurrentLockConflict",
    "validate_player_name",
    "validate_tournament_name",
    "validate_game_record",
    "parse_game_date",
]
