"""State transitions for a tournament: enrollment, withdrawal and locking.

A tournament starts unlocked; its bracket is then a live preview seeded from
the current roster. Locking freezes the seed list permanently. Entrants who
join afterwards become play-ins, and removing a seeded entrant turns their
slot into a BYE so the bracket keeps its shape.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .bracket import build_bracket, seed_entrants
from .models import BYE, BracketRound, Game, Player, Tournament, utc_now_iso
from .validation import TournamentAlreadyLocked, TournamentNotLockable

log = logging.getLogger(__name__)

MIN_ENTRANTS = 2


def enroll(tournament: Tournament, player_id: str) -> bool:
    """Add an entrant. Returns False when the player is already taking part."""
    if player_id in tournament.enrolled_player_ids:
        return False
    tournament.enrolled_player_ids.append(player_id)
    if tournament.locked:
        tournament.play_in_ids.append(player_id)
        log.info(
            "Player %s joined locked tournament %s as a play-in",
            player_id,
            tournament.tournament_id,
        )
    return True


def withdraw(tournament: Tournament, player_id: str) -> bool:
    """Remove an entrant. Returns False when the player was not taking part."""
    changed = False
    if player_id in tournament.enrolled_player_ids:
        tournament.enrolled_player_ids.remove(player_id)
        changed = True
    if not tournament.locked:
        return changed
    if player_id in tournament.seed_ids:
        tournament.seed_ids = [
            BYE if seed == player_id else seed for seed in tournament.seed_ids
        ]
        changed = True
    if player_id in tournament.play_in_ids:
        tournament.play_in_ids.remove(player_id)
        changed = True
    return changed


def enrolled_players(
    tournament: Tournament, players: Mapping[str, Player]
) -> list[Player]:
    entrants: list[Player] = []
    for player_id in tournament.enrolled_player_ids:
        player = players.get(player_id)
        if player is None:
            log.warning(
                "Tournament %s references missing player %s",
                tournament.tournament_id,
                player_id,
            )
            continue
        entrants.append(player)
    return entrants


def preview_seeds(tournament: Tournament, players: Mapping[str, Player]) -> list[str]:
    return seed_entrants(enrolled_players(tournament, players))


def lock(
    tournament: Tournament,
    players: Mapping[str, Player],
    *,
    started_at: str | None = None,
) -> None:
    """Freeze the seed list. Raises if already locked or short of entrants."""
    if tournament.locked:
        raise TournamentAlreadyLocked(tournament.tournament_id)
    entrants = enrolled_players(tournament, players)
    if len(entrants) < MIN_ENTRANTS:
        raise TournamentNotLockable(
            tournament.tournament_id,
            f"at least {MIN_ENTRANTS} entrants are required",
        )
    seeds = seed_entrants(entrants)
    tournament.locked = True
    tournament.seed_ids = seeds
    tournament.bracket_size = len(seeds)
    tournament.started_at = started_at or utc_now_iso()
    tournament.play_in_ids = []


def tournament_bracket(
    tournament: Tournament,
    games: Iterable[Game],
    players: Mapping[str, Player],
) -> list[BracketRound]:
    """Frozen bracket for a locked tournament, live preview otherwise."""
    tournament_games = [
        game for game in games if game.tournament_id == tournament.tournament_id
    ]
    if tournament.locked:
        return build_bracket(
            tournament.seed_ids, tournament_games, players, tournament.play_in_ids
        )
    return build_bracket(preview_seeds(tournament, players), tournament_games, players)


__all__ = [
    "MIN_ENTRANTS",
    "enroll",
    "enrolled_players",
    "lock",
    "preview_seeds",
    "tournament_bracket",
    "withdraw",
]
