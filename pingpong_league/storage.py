from __future__ import annotations

from collections.abc import Sequence

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .models import Game, Player, Tournament
from .validation import ConcurrentLockConflict, ConcurrentUpdateConflict, PlayerNotFound

NEW_ITEM_CONDITION = "attribute_not_exists(pk)"
EXISTING_ITEM_CONDITION = "attribute_exists(pk)"
UNLOCKED_CONDITION = "locked = :unlocked"


def _error_code(exc: ClientError) -> str | None:
    return exc.response.get("Error", {}).get("Code")


def _versioned_put(
    item: dict[str, object],
    version: int,
    condition: str | None = None,
    values: dict[str, object] | None = None,
) -> dict[str, object]:
    """Build put arguments that only succeed against the version that was read.

    The stored ``version`` attribute is bumped on every write; a record read
    before it existed (version 0) must still lack the attribute.
    """
    if version:
        guard = "#version = :expected"
        guard_values: dict[str, object] = {":expected": version}
    else:
        guard = "attribute_not_exists(#version)"
        guard_values = {}
    put: dict[str, object] = {
        "Item": {**item, "version": version + 1},
        "ConditionExpression": f"{condition} AND {guard}" if condition else guard,
        "ExpressionAttributeNames": {"#version": "version"},
    }
    merged = {**(values or {}), **guard_values}
    if merged:
        put["ExpressionAttributeValues"] = merged
    return put


class LeagueStorage:
    """Players, games and tournaments of one league in a single DynamoDB table.

    Player and tournament writes are guarded by a ``version`` attribute, so a
    record saved from a stale read raises ``ConcurrentUpdateConflict`` instead
    of overwriting a newer one. Successful writes bump the in-memory version.
    """

    def __init__(self, table, league_id: str = "default") -> None:
        self._table = table
        self._league_id = league_id

    @property
    def league_id(self) -> str:
        return self._league_id

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("League table is not configured")

    def _pk(self) -> str:
        return Player.PK_TEMPLATE % self._league_id

    def _query_prefix(self, prefix: str) -> list[dict[str, object]]:
        self.ensure_table()
        items: list[dict[str, object]] = []
        kwargs: dict[str, object] = {
            "KeyConditionExpression": Key("pk").eq(self._pk())
            & Key("sk").begins_with(prefix),
            "Select": "ALL_ATTRIBUTES",
        }
        while True:
            resp = self._table.query(**kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items

    def _delete(self, key: dict[str, str]) -> bool:
        self.ensure_table()
        try:
            self._table.delete_item(
                Key=key,
                ConditionExpression=EXISTING_ITEM_CONDITION,
            )
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                return False
            raise
        return True

    def _put_versioned(self, record_id: str, put: dict[str, object]) -> None:
        self.ensure_table()
        try:
            self._table.put_item(**put)
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise ConcurrentUpdateConflict([record_id]) from exc
            raise

    # ----- Players -----
    def get_player(self, player_id: str) -> Player | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Player.key(self._league_id, player_id))
        item = resp.get("Item")
        if not item:
            return None
        return Player.from_item(item)

    def save_player(self, player: Player) -> None:
        self._put_versioned(
            player.player_id,
            _versioned_put(player.to_item(self._league_id), player.version),
        )
        player.version += 1

    def list_players(self) -> list[Player]:
        items = self._query_prefix(Player.SK_PREFIX)
        players = [Player.from_item(item) for item in items]
        players.sort(key=lambda player: (player.name.lower(), player.player_id))
        return players

    def delete_player(self, player_id: str) -> bool:
        return self._delete(Player.key(self._league_id, player_id))

    # ----- Games -----
    def list_games(self, tournament_id: str | None = None) -> list[Game]:
        """Return games in play order, optionally only those of one tournament."""
        games = [Game.from_item(item) for item in self._query_prefix(Game.SK_PREFIX)]
        if tournament_id is not None:
            games = [game for game in games if game.tournament_id == tournament_id]
        return games

    def record_game(
        self,
        game: Game,
        players: Sequence[Player],
        tournament: Tournament | None = None,
    ) -> None:
        """Write the game and the participants' updated records atomically.

        ``tournament``, when given, is a tournament locked by this game; it is
        written in the same transaction and only if the stored copy is still
        unlocked. Nothing is written when any condition fails.
        """
        self.ensure_table()
        table_name = self._table.name
        transact_items: list[dict[str, object]] = [
            {
                "Put": {
                    "TableName": table_name,
                    "Item": game.to_item(self._league_id),
                    "ConditionExpression": NEW_ITEM_CONDITION,
                }
            }
        ]
        for player in players:
            put = _versioned_put(
                player.to_item(self._league_id),
                player.version,
                condition=EXISTING_ITEM_CONDITION,
            )
            put["ReturnValuesOnConditionCheckFailure"] = "ALL_OLD"
            transact_items.append({"Put": {"TableName": table_name, **put}})
        if tournament is not None:
            put = _versioned_put(
                tournament.to_item(self._league_id),
                tournament.version,
                condition=UNLOCKED_CONDITION,
                values={":unlocked": False},
            )
            transact_items.append({"Put": {"TableName": table_name, **put}})
        try:
            self._table.meta.client.transact_write_items(TransactItems=transact_items)
        except ClientError as exc:
            if _error_code(exc) != "TransactionCanceledException":
                raise
            self._raise_cancellation(exc, players, tournament)
            raise
        for player in players:
            player.version += 1
        if tournament is not None:
            tournament.version += 1

    @staticmethod
    def _raise_cancellation(
        exc: ClientError,
        players: Sequence[Player],
        tournament: Tournament | None,
    ) -> None:
        reasons = exc.response.get("CancellationReasons", [])
        failed = [
            reason.get("Code") == "ConditionalCheckFailed" for reason in reasons
        ]
        missing: list[str] = []
        stale: list[str] = []
        for index, player in enumerate(players, start=1):
            if index >= len(failed) or not failed[index]:
                continue
            if reasons[index].get("Item"):
                stale.append(player.player_id)
            else:
                missing.append(player.player_id)
        if missing:
            raise PlayerNotFound(missing) from exc
        lock_index = len(players) + 1
        if tournament is not None and lock_index < len(failed) and failed[lock_index]:
            raise ConcurrentLockConflict(tournament.tournament_id) from exc
        if stale:
            raise ConcurrentUpdateConflict(stale) from exc

    # ----- Tournaments -----
    def get_tournament(self, tournament_id: str) -> Tournament | None:
        self.ensure_table()
        resp = self._table.get_item(Key=Tournament.key(self._league_id, tournament_id))
        item = resp.get("Item")
        if not item:
            return None
        return Tournament.from_item(item)

    def list_tournaments(self) -> list[Tournament]:
        tournaments = [
            Tournament.from_item(item)
            for item in self._query_prefix(Tournament.SK_PREFIX)
        ]
        tournaments.sort(
            key=lambda entry: (entry.date, entry.tournament_id), reverse=True
        )
        return tournaments

    def save_tournament(self, tournament: Tournament) -> None:
        """Persist a tournament if nobody has written it since it was read.

        Locking bumps the version too, so a stale copy can never undo a lock
        or drop a withdrawal made after the lock.
        """
        self._put_versioned(
            tournament.tournament_id,
            _versioned_put(tournament.to_item(self._league_id), tournament.version),
        )
        tournament.version += 1

    def lock_tournament(self, tournament: Tournament) -> None:
        """Write a freshly locked tournament; at most one writer can succeed."""
        self.ensure_table()
        if not tournament.locked:
            raise ValueError("Tournament must be locked before it is saved as locked")
        try:
            self._table.put_item(
                **_versioned_put(
                    tournament.to_item(self._league_id),
                    tournament.version,
                    condition=UNLOCKED_CONDITION,
                    values={":unlocked": False},
                )
            )
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise ConcurrentLockConflict(tournament.tournament_id) from exc
            raise
        tournament.version += 1

    def delete_tournament(self, tournament_id: str) -> bool:
        return self._delete(Tournament.key(self._league_id, tournament_id))


__all__ = ["LeagueStorage"]
