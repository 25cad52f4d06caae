import importlib.util
import pathlib
import sys
from unittest import mock

import pytest
from conftest import make_game, make_player

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
SCRIPT_PATH = ROOT_DIR / "scripts" / "recompute_player_stats.py"


@pytest.fixture(name="script")
def fixture_script(monkeypatch):
    module_spec = importlib.util.spec_from_file_location(
        "recompute_player_stats", SCRIPT_PATH
    )
    module = importlib.util.module_from_spec(module_spec)
    assert module_spec.loader is not None
    monkeypatch.setitem(sys.modules, module_spec.name, module)
    module_spec.loader.exec_module(module)
    return module


def test_parse_args_defaults_to_dry_run(script):
    args = script.parse_args(["--table", "league-table"])
    assert args.table == "league-table"
    assert args.league == "default"
    assert args.execute is False


def test_plan_changes_replays_games_in_date_order(script):
    alice = make_player("a", "Alice", elo=1300, wins=5)
    bob = make_player("b", "Bob")
    games = [
        make_game("g2", "b", "a", 3, 0, date="2024-02-01T12:00:00.000Z"),
        make_game("g1", "a", "b", 3, 0, date="2024-01-01T12:00:00.000Z"),
    ]

    changes = script.plan_changes([alice, bob], games)

    by_id = {change.after.player_id: change for change in changes}
    assert set(by_id) == {"a", "b"}
    rebuilt_alice = by_id["a"].after
    assert (rebuilt_alice.wins, rebuilt_alice.losses) == (1, 1)
    assert rebuilt_alice.stats.loss_streak == 1
    assert rebuilt_alice.stats.highest_streak == 1
    assert by_id["b"].after.stats.win_streak == 1
    assert "W/L 5/0 -> 1/1" in by_id["a"].describe()


def test_plan_changes_skips_players_already_up_to_date(script):
    players = [make_player("a", "Alice"), make_player("b", "Bob")]
    assert script.plan_changes(players, []) == []


def test_main_dry_run_does_not_write(script, table):
    table.store(make_player("a", "Alice", wins=3).to_item("office"))
    session = mock.Mock()
    session.resource.return_value.Table.return_value = table

    with mock.patch.object(script.boto3, "Session", return_value=session):
        script.main(["--table", "league-table", "--league", "office"])

    assert table.items[("LEAGUE#office", "PLAYER#a")]["wins"] == 3


def test_main_execute_writes_rebuilt_players(script, table):
    table.store(make_player("a", "Alice", wins=3).to_item("office"))
    session = mock.Mock()
    session.resource.return_value.Table.return_value = table

    with mock.patch.object(script.boto3, "Session", return_value=session) as factory:
        script.main(
            [
                "--table",
                "league-table",
                "--league",
                "office",
                "--region",
                "eu-west-1",
                "--execute",
            ]
        )

    factory.assert_called_once_with(region_name="eu-west-1")
    assert table.items[("LEAGUE#office", "PLAYER#a")]["wins"] == 0


def test_main_execute_stops_when_a_player_changed(script, table):
    table.store(make_player("a", "Alice", wins=3).to_item("office"))
    session = mock.Mock()
    session.resource.return_value.Table.return_value = table
    conflict = script.ConcurrentUpdateConflict(["a"])

    with (
        mock.patch.object(script.boto3, "Session", return_value=session),
        mock.patch.object(script.LeagueStorage, "save_player", side_effect=conflict),
        pytest.raises(SystemExit) as excinfo,
    ):
        script.main(["--table", "league-table", "--league", "office", "--execute"])

    assert excinfo.value.code == 1
    assert table.items[("LEAGUE#office", "PLAYER#a")]["wins"] == 3
