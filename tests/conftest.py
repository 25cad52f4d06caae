from __future__ import annotations

import copy
import itertools
from types import SimpleNamespace
from unittest import mock

import pytest
from botocore.exceptions import ClientError

from pingpong_league import LeagueService, LeagueStorage
from pingpong_league.models import Game, Player, PlayerStats


def _conditional_failure(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


class FakeClient:
    def __init__(self, table: FakeTable) -> None:
        self._table = table

    def transact_write_items(self, *, TransactItems):
        reasons = []
        for entry in TransactItems:
            put = entry["Put"]
            if self._table.condition_holds(
                put["Item"],
                put.get("ConditionExpression"),
                put.get("ExpressionAttributeValues") or {},
                put.get("ExpressionAttributeNames") or {},
            ):
                reasons.append({"Code": "None"})
                continue
            reason = {"Code": "ConditionalCheckFailed"}
            existing = self._table.items.get((put["Item"]["pk"], put["Item"]["sk"]))
            if put.get("ReturnValuesOnConditionCheckFailure") == "ALL_OLD" and existing:
                reason["Item"] = copy.deepcopy(existing)
            reasons.append(reason)
        if any(reason["Code"] != "None" for reason in reasons):
            raise ClientError(
                {
                    "Error": {
                        "Code": "TransactionCanceledException",
                        "Message": "Transaction cancelled",
                    },
                    "CancellationReasons": reasons,
                },
                "TransactWriteItems",
            )
        for entry in TransactItems:
            self._table.store(entry["Put"]["Item"])


class FakeTable:
    """In-memory stand-in for a boto3 DynamoDB ``Table`` resource."""

    name = "league-table"

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.meta = SimpleNamespace(client=FakeClient(self))

    def store(self, item: dict[str, object]) -> None:
        self.items[(item["pk"], item["sk"])] = copy.deepcopy(item)

    def condition_holds(self, item, expression, values, names=None) -> bool:
        if not expression:
            return True
        existing = self.items.get((item["pk"], item["sk"]))
        for placeholder, attribute in (names or {}).items():
            expression = expression.replace(placeholder, attribute)
        for clause in expression.split(" OR "):
            terms = [term.strip() for term in clause.split(" AND ")]
            if all(self._term_holds(term, existing, values) for term in terms):
                return True
        return False

    @staticmethod
    def _term_holds(term, existing, values) -> bool:
        function, _, argument = term.partition("(")
        attribute = argument.rstrip(")")
        if function == "attribute_not_exists":
            return existing is None or attribute not in existing
        if function == "attribute_exists":
            return existing is not None and attribute in existing
        name, _, placeholder = term.partition(" = ")
        return existing is not None and existing.get(name) == values[placeholder]

    def get_item(self, *, Key):
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": copy.deepcopy(item) if item is not None else None}

    def put_item(
        self,
        *,
        Item,
        ConditionExpression=None,
        ExpressionAttributeNames=None,
        ExpressionAttributeValues=None,
    ):
        if not self.condition_holds(
            Item,
            ConditionExpression,
            ExpressionAttributeValues or {},
            ExpressionAttributeNames,
        ):
            raise _conditional_failure("PutItem")
        self.store(Item)

    def query(self, *, KeyConditionExpression, Select="COUNT", **_kwargs):
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "pk":  # pragma: no branch - helper
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        matching_keys = [
            key
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        items = [copy.deepcopy(self.items[key]) for key in matching_keys]
        if Select == "COUNT":
            return {"Count": len(items)}
        return {"Items": items, "Count": len(items)}

    def delete_item(self, *, Key, ConditionExpression=None):
        item_key = (Key["pk"], Key["sk"])
        if ConditionExpression and item_key not in self.items:
            raise _conditional_failure("DeleteItem")
        self.items.pop(item_key, None)


def make_player(
    player_id: str,
    name: str | None = None,
    *,
    elo: int = 1000,
    wins: int = 0,
    losses: int = 0,
    achievements: list[str] | None = None,
    version: int = 0,
    **stats,
) -> Player:
    return Player(
        player_id=player_id,
        name=name or player_id.title(),
        wins=wins,
        losses=losses,
        stats=PlayerStats(elo=elo, **stats),
        achievements=list(achievements or []),
        version=version,
    )


def make_game(
    game_id: str,
    player1_id: str,
    player2_id: str,
    score1: int,
    score2: int,
    *,
    date: str = "2024-01-01T12:00:00.000Z",
    tournament_id: str | None = None,
) -> Game:
    return Game(
        game_id=game_id,
        player1_id=player1_id,
        player2_id=player2_id,
        score1=score1,
        score2=score2,
        date=date,
        tournament_id=tournament_id,
    )


@pytest.fixture(name="table")
def fixture_table() -> FakeTable:
    return FakeTable()


@pytest.fixture(name="storage")
def fixture_storage(table: FakeTable) -> LeagueStorage:
    return LeagueStorage(table, "office")


@pytest.fixture(name="notifier")
def fixture_notifier() -> mock.Mock:
    return mock.Mock()


@pytest.fixture(name="service")
def fixture_service(storage: LeagueStorage, notifier: mock.Mock) -> LeagueService:
    counter = itertools.count(1)
    return LeagueService(
        storage,
        notifier=notifier,
        id_factory=lambda: f"id{next(counter):03d}",
        clock=lambda: "2024-03-01T09:00:00.000Z",
    )
