"""Achievement rules evaluated for each participant after a recorded game."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Final

from .models import Game, Player

log = logging.getLogger(__name__)

WELCOME_TO_THE_PARTY_PAL: Final = "WELCOME_TO_THE_PARTY_PAL"
WELCOME_TO_THE_BIG_LEAGUES: Final = "WELCOME_TO_THE_BIG_LEAGUES"
KING_SLAYER: Final = "KING_SLAYER"
HOT_STREAK: Final = "HOT_STREAK"
BUTTERFINGERS: Final = "BUTTERFINGERS"
RIVAL_REVENGE: Final = "RIVAL_REVENGE"
COIN_FLIP_CHAMPION: Final = "COIN_FLIP_CHAMPION"
YO_YO: Final = "YO_YO"
SHOULD_BE_WORKING: Final = "SHOULD_BE_WORKING"

STREAK_THRESHOLD: Final = 5
YO_YO_WINDOW: Final = 6
COIN_FLIP_GAMES: Final = 3
WORK_DAY_STARTS_HOUR: Final = 11

# Re-announced every time they are earned; the stored flag is still set once.
REPEATABLE: Final = frozenset(
    {
        KING_SLAYER,
        HOT_STREAK,
        BUTTERFINGERS,
        RIVAL_REVENGE,
        COIN_FLIP_CHAMPION,
        YO_YO,
        SHOULD_BE_WORKING,
    }
)

TITLES: Final[dict[str, str]] = {
    WELCOME_TO_THE_PARTY_PAL: "Welcome to the Party, Pal",
    WELCOME_TO_THE_BIG_LEAGUES: "Welcome to the Big Leagues",
    KING_SLAYER: "King Slayer",
    HOT_STREAK: "Hot Streak",
    BUTTERFINGERS: "Butterfingers",
    RIVAL_REVENGE: "Rival Revenge",
    COIN_FLIP_CHAMPION: "Coin Flip Champion",
    YO_YO: "Yo-Yo",
    SHOULD_BE_WORKING: "Shouldn't You Be Working?",
}


@dataclass(slots=True, frozen=True)
class AchievementContext:
    """Inputs for one participant.

    ``player`` is the post-game record, ``previous`` the same player before the
    game, ``opponent`` the opponent before the game and ``history`` the
    player's own games in play order, ending with ``game``.
    """

    player: Player
    previous: Player
    opponent: Player
    game: Game
    history: Sequence[Game]
    top_rated_id: str | None = None

    @property
    def won(self) -> bool:
        return self.game.winner_id == self.player.player_id


def _first_game(ctx: AchievementContext) -> bool:
    return len(ctx.history) == 1


def _first_tournament_game(ctx: AchievementContext) -> bool:
    if ctx.game.tournament_id is None:
        return False
    return sum(1 for game in ctx.history if game.tournament_id is not None) == 1


def _king_slayer(ctx: AchievementContext) -> bool:
    return ctx.won and ctx.top_rated_id == ctx.opponent.player_id


def _hot_streak(ctx: AchievementContext) -> bool:
    return ctx.player.stats.win_streak >= STREAK_THRESHOLD


def _butterfingers(ctx: AchievementContext) -> bool:
    return ctx.player.stats.loss_streak >= STREAK_THRESHOLD


def _rival_revenge(ctx: AchievementContext) -> bool:
    return ctx.won and ctx.previous.stats.rival_id == ctx.opponent.player_id


def _coin_flip(ctx: AchievementContext) -> bool:
    recent = ctx.history[-COIN_FLIP_GAMES:]
    if len(recent) < COIN_FLIP_GAMES:
        return False
    player_id = ctx.player.player_id
    return all(
        game.winner_id == player_id and game.scores_for(player_id) == (2, 1)
        for game in recent
    )


def _yo_yo(ctx: AchievementContext) -> bool:
    recent = ctx.history[-YO_YO_WINDOW:]
    if len(recent) < YO_YO_WINDOW:
        return False
    outcomes = [game.winner_id == ctx.player.player_id for game in recent]
    return all(first != second for first, second in zip(outcomes, outcomes[1:]))


def _should_be_working(ctx: AchievementContext) -> bool:
    return ctx.won and ctx.game.played_at().hour < WORK_DAY_STARTS_HOUR


RULES: Final[dict[str, Callable[[AchievementContext], bool]]] = {
    WELCOME_TO_THE_PARTY_PAL: _first_game,
    WELCOME_TO_THE_BIG_LEAGUES: _first_tournament_game,
    KING_SLAYER: _king_slayer,
    HOT_STREAK: _hot_streak,
    BUTTERFINGERS: _butterfingers,
    RIVAL_REVENGE: _rival_revenge,
    COIN_FLIP_CHAMPION: _coin_flip,
    YO_YO: _yo_yo,
    SHOULD_BE_WORKING: _should_be_working,
}


@dataclass(slots=True)
class AchievementResult:
    earned: list[str] = field(default_factory=list)
    unlocked: list[str] = field(default_factory=list)
    achievements: list[str] = field(default_factory=list)

    @property
    def announcements(self) -> list[str]:
        """Achievements to announce: first unlocks plus repeatable re-earns."""
        return [
            achievement_id
            for achievement_id in self.earned
            if achievement_id in self.unlocked or achievement_id in REPEATABLE
        ]


def evaluate_achievements(
    ctx: AchievementContext,
    rules: dict[str, Callable[[AchievementContext], bool]] | None = None,
) -> AchievementResult:
    """Evaluate every rule; a failing rule is logged and skipped."""
    owned = list(ctx.player.achievements)
    result = AchievementResult()
    for achievement_id, rule in (rules or RULES).items():
        try:
            satisfied = rule(ctx)
        except Exception:  # pylint: disable=broad-except
            log.exception(
                "Achievement rule %s failed for player %s",
                achievement_id,
                ctx.player.player_id,
            )
            continue
        if not satisfied:
            continue
        result.earned.append(achievement_id)
        if achievement_id not in owned:
            owned.append(achievement_id)
            result.unlocked.append(achievement_id)
    result.achievements = owned
    return result


__all__ = [
    "WELCOME_TO_THE_PARTY_PAL",
    "WELCOME_TO_THE_BIG_LEAGUES",
    "KING_SLAYER",
    "HOT_STREAK",
    "BUTTERFINGERS",
    "RIVAL_REVENGE",
    "COIN_FLIP_CHAMPION",
    "YO_YO",
    "SHOULD_BE_WORKING",
    "REPEATABLE",
    "RULES",
    "TITLES",
    "AchievementContext",
    "AchievementResult",
    "evaluate_achievements",
]
