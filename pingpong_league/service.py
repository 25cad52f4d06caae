from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final, TypeVar

from . import lifecycle
from .achievements import AchievementContext, evaluate_achievements
from .bracket import champion_id
from .models import BracketRound, Game, Player, Tournament, utc_now_iso
from .notifications import AchievementUnlocked, Notifier, deliver
from .rating import (
    LeaderboardEntry,
    apply_game_result,
    player_history,
    rank_players,
    top_rated_player_id,
)
from .storage import LeagueStorage
from .validation import (
    ConcurrentUpdateConflict,
    PlayerNotFound,
    TournamentNotFound,
    TournamentNotLockable,
    parse_game_date,
    validate_game_record,
    validate_player_name,
    validate_tournament_name,
)

log = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS: Final = 3

_T = TypeVar("_T")


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True)
class GameOutcome:
    game: Game
    player_one: Player
    player_two: Player
    announcements: list[AchievementUnlocked] = field(default_factory=list)
    champion_id: str | None = None


class LeagueService:
    def __init__(
        self,
        storage: LeagueStorage,
        *,
        notifier: Notifier | None = None,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._storage = storage
        self._notifier = notifier
        self._new_id = id_factory
        self._clock = clock

    @staticmethod
    def _retrying(operation: Callable[[], _T], what: str) -> _T:
        """Run a read-modify-write, re-running it when a record changed under it."""
        attempt = 1
        while True:
            try:
                return operation()
            except ConcurrentUpdateConflict as exc:
                if attempt >= MAX_WRITE_ATTEMPTS:
                    raise
                log.info("%s conflicted (%s); retrying", what, exc)
                attempt += 1

    # ----- Roster -----
    def add_player(self, name: str) -> Player:
        player = Player(player_id=self._new_id(), name=validate_player_name(name))
        self._storage.save_player(player)
        log.info("Added player %s (%s)", player.name, player.player_id)
        return player

    def get_player(self, player_id: str) -> Player:
        player = self._storage.get_player(player_id)
        if player is None:
            raise PlayerNotFound([player_id])
        return player

    def rename_player(self, player_id: str, name: str) -> Player:
        new_name = validate_player_name(name)

        def rename() -> Player:
            player = self.get_player(player_id)
            player.name = new_name
            self._storage.save_player(player)
            return player

        return self._retrying(rename, f"Rename of player {player_id}")

    def remove_player(self, player_id: str) -> bool:
        """Delete a player, withdrawing them from every tournament first.

        Recorded games are kept; they show the player as unknown afterwards.
        """
        for tournament in self._storage.list_tournaments():
            taking_part = (
                player_id in tournament.enrolled_player_ids
                or player_id in tournament.participant_ids()
            )
            if not taking_part:
                continue
            try:
                self._update_tournament(
                    tournament.tournament_id,
                    lambda entry: lifecycle.withdraw(entry, player_id),
                )
            except TournamentNotFound:
                continue
        removed = self._storage.delete_player(player_id)
        if removed:
            log.info("Removed player %s", player_id)
        return removed

    def leaderboard(self) -> list[LeaderboardEntry]:
        return rank_players(self._storage.list_players())

    # ----- Games -----
    def record_game(
        self,
        player1_id: str,
        player2_id: str,
        score1: int,
        score2: int,
        *,
        date: str | datetime | None = None,
        tournament_id: str | None = None,
    ) -> GameOutcome:
        """Rate, evaluate and store one game, then announce its achievements.

        The game, both player records and a lock caused by the game are
        written in one transaction. When a player or the tournament changed
        since it was read, everything is re-read and recomputed.
        """
        score1, score2 = validate_game_record(player1_id, player2_id, score1, score2)
        game = Game(
            game_id=self._new_id(),
            player1_id=player1_id,
            player2_id=player2_id,
            score1=score1,
            score2=score2,
            date=parse_game_date(date),
            tournament_id=tournament_id,
        )
        outcome = self._retrying(
            lambda: self._store_game(game), f"Game {game.game_id}"
        )
        log.info(
            "Recorded game %s: %s %s-%s %s",
            game.game_id,
            player1_id,
            score1,
            score2,
            player2_id,
        )
        if outcome.champion_id is not None:
            log.info("Player %s won tournament %s", outcome.champion_id, tournament_id)
        for event in outcome.announcements:
            deliver(self._notifier, event)
        return outcome

    def _store_game(self, game: Game) -> GameOutcome:
        player1_id, player2_id = game.player1_id, game.player2_id
        roster = self._storage.list_players()
        lookup = {player.player_id: player for player in roster}
        missing = [pid for pid in (player1_id, player2_id) if pid not in lookup]
        if missing:
            raise PlayerNotFound(missing)

        tournament: Tournament | None = None
        locking = False
        if game.tournament_id is not None:
            tournament = self._require_tournament(game.tournament_id)
            if not tournament.locked:
                locking = self._lock_on_first_game(tournament, lookup)

        previous_games = self._storage.list_games()
        before = (lookup[player1_id], lookup[player2_id])
        updated = list(
            apply_game_result(
                before[0],
                before[1],
                game,
                previous_games,
                names={pid: player.name for pid, player in lookup.items()},
            )
        )

        all_games = [*previous_games, game]
        top_rated_id = top_rated_player_id(roster)
        announcements: list[AchievementUnlocked] = []
        for index, player in enumerate(updated):
            result = evaluate_achievements(
                AchievementContext(
                    player=player,
                    previous=before[index],
                    opponent=before[1 - index],
                    game=game,
                    history=player_history(all_games, player.player_id),
                    top_rated_id=top_rated_id,
                )
            )
            player.achievements = result.achievements
            announcements.extend(
                AchievementUnlocked(
                    player_id=player.player_id,
                    achievement_id=achievement_id,
                    player_name=player.name,
                    repeat=achievement_id not in result.unlocked,
                )
                for achievement_id in result.announcements
            )

        crowned: str | None = None
        if tournament is not None:
            crowned = self._newly_crowned(tournament, previous_games, game, lookup)
            for player in updated:
                if player.player_id == crowned:
                    player.tournaments_won += 1

        self._storage.record_game(
            game, updated, tournament=tournament if locking else None
        )
        if locking:
            log.info("Tournament %s locked by its first game", game.tournament_id)
        return GameOutcome(
            game=game,
            player_one=updated[0],
            player_two=updated[1],
            announcements=announcements,
            champion_id=crowned,
        )

    def _lock_on_first_game(
        self, tournament: Tournament, lookup: dict[str, Player]
    ) -> bool:
        """Freeze the bracket in memory; it is persisted together with the game."""
        try:
            lifecycle.lock(tournament, lookup, started_at=self._clock())
        except TournamentNotLockable as exc:
            log.warning(
                "Not locking tournament %s on first game: %s",
                tournament.tournament_id,
                exc.reason,
            )
            return False
        return True

    @staticmethod
    def _newly_crowned(
        tournament: Tournament,
        previous_games: list[Game],
        game: Game,
        lookup: dict[str, Player],
    ) -> str | None:
        before = champion_id(
            lifecycle.tournament_bracket(tournament, previous_games, lookup)
        )
        after = champion_id(
            lifecycle.tournament_bracket(tournament, [*previous_games, game], lookup)
        )
        if after is None or after == before or not game.involves(after):
            return None
        return after

    # ----- Tournaments -----
    def _require_tournament(self, tournament_id: str) -> Tournament:
        tournament = self._storage.get_tournament(tournament_id)
        if tournament is None:
            raise TournamentNotFound(tournament_id)
        return tournament

    def _update_tournament(
        self, tournament_id: str, change: Callable[[Tournament], bool]
    ) -> tuple[Tournament, bool]:
        """Apply ``change`` to a fresh read and save it if anything changed."""

        def update() -> tuple[Tournament, bool]:
            tournament = self._require_tournament(tournament_id)
            changed = change(tournament)
            if changed:
                self._storage.save_tournament(tournament)
            return tournament, changed

        return self._retrying(update, f"Update of tournament {tournament_id}")

    def get_tournament(self, tournament_id: str) -> Tournament:
        return self._require_tournament(tournament_id)

    def list_tournaments(self) -> list[Tournament]:
        return self._storage.list_tournaments()

    def create_tournament(
        self, name: str, date: str, image_url: str = ""
    ) -> Tournament:
        tournament = Tournament(
            tournament_id=self._new_id(),
            name=validate_tournament_name(name),
            date=date,
            image_url=image_url,
        )
        self._storage.save_tournament(tournament)
        log.info(
            "Created tournament %s (%s)", tournament.name, tournament.tournament_id
        )
        return tournament

    def update_tournament(
        self,
        tournament_id: str,
        *,
        name: str | None = None,
        date: str | None = None,
        image_url: str | None = None,
    ) -> Tournament:
        new_name = validate_tournament_name(name) if name is not None else None

        def edit(tournament: Tournament) -> bool:
            if new_name is not None:
                tournament.name = new_name
            if date is not None:
                tournament.date = date
            if image_url is not None:
                tournament.image_url = image_url
            return True

        tournament, _ = self._update_tournament(tournament_id, edit)
        return tournament

    def delete_tournament(self, tournament_id: str) -> bool:
        return self._storage.delete_tournament(tournament_id)

    def enroll_player(self, tournament_id: str, player_id: str) -> Tournament:
        def add(tournament: Tournament) -> bool:
            self.get_player(player_id)
            return lifecycle.enroll(tournament, player_id)

        tournament, changed = self._update_tournament(tournament_id, add)
        if changed:
            log.info("Enrolled player %s in tournament %s", player_id, tournament_id)
        return tournament

    def withdraw_player(self, tournament_id: str, player_id: str) -> Tournament:
        tournament, changed = self._update_tournament(
            tournament_id, lambda entry: lifecycle.withdraw(entry, player_id)
        )
        if changed:
            log.info("Withdrew player %s from tournament %s", player_id, tournament_id)
        return tournament

    def start_tournament(self, tournament_id: str) -> Tournament:
        tournament = self._require_tournament(tournament_id)
        lookup = {player.player_id: player for player in self._storage.list_players()}
        lifecycle.lock(tournament, lookup, started_at=self._clock())
        self._storage.lock_tournament(tournament)
        log.info(
            "Tournament %s started with %d bracket slots",
            tournament_id,
            tournament.bracket_size,
        )
        return tournament

    def get_bracket(self, tournament_id: str) -> list[BracketRound]:
        tournament = self._require_tournament(tournament_id)
        lookup = {player.player_id: player for player in self._storage.list_players()}
        games = self._storage.list_games(tournament_id)
        return lifecycle.tournament_bracket(tournament, games, lookup)


__all__ = ["GameOutcome", "LeagueService"]
