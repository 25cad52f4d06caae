#!/usr/bin/env python3
"""Rebuild player ratings and statistics by replaying every recorded game.

Each player's wins, losses, Elo, streaks, rival and best score are recomputed
from base state in play order. Achievements and tournament titles are left
as stored. By default it performs no writes (dry-run). Pass ``--execute`` once
you are satisfied with the planned changes.
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:  # pragma: no cover - simple environment setup
    sys.path.insert(0, str(ROOT_DIR))

from pingpong_league.models import Game, Player
from pingpong_league.rating import replay_games
from pingpong_league.storage import LeagueStorage
from pingpong_league.validation import ConcurrentUpdateConflict

log = logging.getLogger(__name__)


@dataclass(slots=True)
class StatsChange:
    before: Player
    after: Player

    def describe(self) -> str:
        old, new = self.before, self.after
        return (
            f"{new.name} ({new.player_id}): "
            f"W/L {old.wins}/{old.losses} -> {new.wins}/{new.losses}, "
            f"elo {old.stats.elo} -> {new.stats.elo}, "
            f"best streak {old.stats.highest_streak} -> {new.stats.highest_streak}"
        )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--table",
        required=True,
        help="DynamoDB table name that stores league data",
    )
    parser.add_argument(
        "--league",
        default="default",
        help="League id to process (default: default)",
    )
    parser.add_argument(
        "--profile",
        help="Optional AWS profile to use",
    )
    parser.add_argument(
        "--region",
        help="AWS region (defaults to boto3's resolution order)",
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="Write the rebuilt records instead of printing the planned changes",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def plan_changes(players: Sequence[Player], games: Sequence[Game]) -> list[StatsChange]:
    ordered = sorted(games, key=lambda game: (game.date, game.game_id))
    rebuilt = replay_games(players, ordered)
    changes: list[StatsChange] = []
    for player in players:
        after = rebuilt[player.player_id]
        if after != player:
            changes.append(StatsChange(before=player, after=after))
    return changes


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)
    dry_run = not args.execute

    session_kwargs: dict[str, Any] = {}
    if args.profile:
        session_kwargs["profile_name"] = args.profile
    if args.region:
        session_kwargs["region_name"] = args.region
    session = boto3.Session(**session_kwargs)
    storage = LeagueStorage(session.resource("dynamodb").Table(args.table), args.league)

    try:
        changes = plan_changes(storage.list_players(), storage.list_games())
        for change in changes:
            if not dry_run:
                storage.save_player(change.after)
            action = "Would update" if dry_run else "Updated"
            log.info("%s: %s", action, change.describe())
    except ConcurrentUpdateConflict as exc:
        log.error("Players changed while replaying, run again: %s", exc)
        raise SystemExit(1) from exc
    except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network failure
        log.error("AWS request failed: %s", exc)
        raise SystemExit(2) from exc

    log.info(
        "%s complete. Players changed: %s",
        "Dry-run" if dry_run else "Execution",
        len(changes),
    )


if __name__ == "__main__":
    main()
