"""Elo ratings, streaks and rival tracking for recorded games."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Final

from .models import NO_VALUE, UNKNOWN_PLAYER, Game, Player

K_FACTOR: Final = 32


def expected_score(rating: int, opponent_rating: int) -> float:
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def updated_rating(
    rating: int, opponent_rating: int, won: bool, *, k_factor: int = K_FACTOR
) -> int:
    actual = 1.0 if won else 0.0
    return round(rating + k_factor * (actual - expected_score(rating, opponent_rating)))


def player_history(games: Iterable[Game], player_id: str) -> list[Game]:
    """Return the games the player took part in, keeping the input order."""
    return [game for game in games if game.involves(player_id)]


def longest_win_streak(history: Sequence[Game], player_id: str) -> int:
    longest = 0
    current = 0
    for game in history:
        if game.winner_id == player_id:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def find_rival(history: Sequence[Game], player_id: str) -> str | None:
    """Return the most frequent opponent; ties go to whoever was played first."""
    counts: dict[str, int] = {}
    for game in history:
        opponent = game.opponent_of(player_id)
        counts[opponent] = counts.get(opponent, 0) + 1
    rival: str | None = None
    best = 0
    for opponent, count in counts.items():
        if count > best:
            rival = opponent
            best = count
    return rival


def best_score(history: Sequence[Game], player_id: str) -> str:
    best: tuple[int, int] | None = None
    for game in history:
        if game.winner_id != player_id:
            continue
        own, other = game.scores_for(player_id)
        if best is None or (own - other, own) > (best[0] - best[1], best[0]):
            best = (own, other)
    if best is None:
        return NO_VALUE
    return f"{best[0]}-{best[1]}"


def _apply_to_player(
    player: Player,
    opponent_elo: int,
    won: bool,
    history: Sequence[Game],
    names: Mapping[str, str],
) -> Player:
    updated = player.clone()
    stats = updated.stats
    stats.elo = updated_rating(player.stats.elo, opponent_elo, won)
    if won:
        updated.wins += 1
        stats.win_streak += 1
        stats.loss_streak = 0
    else:
        updated.losses += 1
        stats.loss_streak += 1
        stats.win_streak = 0
    own_history = player_history(history, player.player_id)
    stats.highest_streak = max(
        longest_win_streak(own_history, player.player_id), stats.win_streak
    )
    rival_id = find_rival(own_history, player.player_id)
    stats.rival_id = rival_id
    stats.rival = names.get(rival_id, UNKNOWN_PLAYER) if rival_id else NO_VALUE
    stats.best_score = best_score(own_history, player.player_id)
    return updated


def apply_game_result(
    player_one: Player,
    player_two: Player,
    game: Game,
    previous_games: Sequence[Game],
    *,
    names: Mapping[str, str] | None = None,
) -> tuple[Player, Player]:
    """Return updated copies of both participants after ``game``.

    ``previous_games`` is the chronological league history before ``game``.
    Both ratings are computed from the pre-game ratings.
    """
    if (player_one.player_id, player_two.player_id) != (
        game.player1_id,
        game.player2_id,
    ):
        raise ValueError("Players do not match the game participants")

    lookup = dict(names or {})
    lookup[player_one.player_id] = player_one.name
    lookup[player_two.player_id] = player_two.name
    history = [*previous_games, game]
    one_won = game.winner_id == player_one.player_id

    updated_one = _apply_to_player(
        player_one, player_two.stats.elo, one_won, history, lookup
    )
    updated_two = _apply_to_player(
        player_two, player_one.stats.elo, not one_won, history, lookup
    )
    return updated_one, updated_two


def replay_games(
    players: Iterable[Player], games: Sequence[Game]
) -> dict[str, Player]:
    """Rebuild every player's record from base state by replaying ``games``.

    Achievements, tournament titles and the stored version are carried over,
    so saving the result fails if the player changed meanwhile. Games that
    reference a missing player are skipped.
    """
    rebuilt: dict[str, Player] = {}
    for player in players:
        rebuilt[player.player_id] = Player(
            player_id=player.player_id,
            name=player.name,
            achievements=list(player.achievements),
            tournaments_won=player.tournaments_won,
            version=player.version,
        )
    names = {player_id: player.name for player_id, player in rebuilt.items()}
    played: list[Game] = []
    for game in games:
        one = rebuilt.get(game.player1_id)
        two = rebuilt.get(game.player2_id)
        if one is None or two is None:
            continue
        updated_one, updated_two = apply_game_result(
            one, two, game, played, names=names
        )
        rebuilt[one.player_id] = updated_one
        rebuilt[two.player_id] = updated_two
        played.append(game)
    return rebuilt


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    rank: int
    player: Player

    @property
    def win_rate(self) -> float | None:
        if self.player.games_played == 0:
            return None
        return self.player.wins / self.player.games_played


def _ranking_key(player: Player) -> tuple[int, int, str, str]:
    return (-player.stats.elo, -player.wins, player.name.lower(), player.player_id)


def rank_players(players: Iterable[Player]) -> list[LeaderboardEntry]:
    ordered = sorted(players, key=_ranking_key)
    return [
        LeaderboardEntry(rank=index, player=player)
        for index, player in enumerate(ordered, start=1)
    ]


def top_rated_player_id(players: Iterable[Player]) -> str | None:
    """Return the player holding the highest Elo outright, or None on a tie."""
    top: Player | None = None
    tied = False
    for player in players:
        if top is None or player.stats.elo > top.stats.elo:
            top = player
            tied = False
        elif player.stats.elo == top.stats.elo:
            tied = True
    if top is None or tied:
        return None
    return top.player_id


__all__ = [
    "K_FACTOR",
    "LeaderboardEntry",
    "apply_game_result",
    "best_score",
    "expected_score",
    "find_rival",
    "longest_win_streak",
    "player_history",
    "rank_players",
    "replay_games",
    "top_rated_player_id",
    "updated_rating",
]
