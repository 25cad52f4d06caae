from decimal import Decimal

from conftest import make_game, make_player

from pingpong_league.models import (
    BYE,
    BracketSlot,
    Game,
    Player,
    Tournament,
    format_iso,
    parse_iso,
)


def test_player_item_round_trip_keeps_stats_and_achievements():
    player = make_player(
        "p1",
        "Alice",
        elo=1016,
        wins=3,
        losses=1,
        achievements=["HOT_STREAK"],
        win_streak=2,
        highest_streak=3,
        rival="Bob",
        rival_id="p2",
        best_score="3-0",
    )
    player.tournaments_won = 1

    item = player.to_item("office")
    assert item["pk"] == "LEAGUE#office"
    assert item["sk"] == "PLAYER#p1"
    assert Player.from_item(item) == player


def test_player_from_item_accepts_dynamodb_decimals():
    item = {
        "pk": "LEAGUE#office",
        "sk": "PLAYER#p9",
        "name": "Zed",
        "wins": Decimal("4"),
        "losses": Decimal("2"),
        "stats": {"elo": Decimal("1042"), "win_streak": Decimal("1")},
    }
    player = Player.from_item(item)
    assert player.player_id == "p9"
    assert player.wins == 4
    assert player.stats.elo == 1042
    assert player.stats.rival == "N/A"
    assert player.achievements == []


def test_player_version_is_stored_once_written():
    assert "version" not in make_player("p1").to_item("office")
    item = make_player("p1", version=3).to_item("office")
    assert item["version"] == 3
    assert Player.from_item({**item, "version": Decimal("3")}).version == 3


def test_player_clone_is_independent():
    player = make_player("p1", "Alice", achievements=["HOT_STREAK"], version=2)

    copy = player.clone()
    copy.stats.elo = 1200
    copy.achievements.append("KING_SLAYER")

    assert copy.version == 2
    assert player.stats.elo == 1000
    assert player.achievements == ["HOT_STREAK"]


def test_tournament_clone_is_independent():
    tournament = Tournament(
        tournament_id="t1",
        name="Cup",
        date="2024-04-01",
        enrolled_player_ids=["a", "b"],
        locked=True,
        seed_ids=["a", "b"],
        version=4,
    )

    copy = tournament.clone()
    copy.enrolled_player_ids.append("c")
    copy.seed_ids[1] = BYE
    copy.play_in_ids.append("c")

    assert copy == Tournament.from_item(copy.to_item("office"))
    assert tournament.enrolled_player_ids == ["a", "b"]
    assert tournament.seed_ids == ["a", "b"]
    assert tournament.play_in_ids == []
    assert tournament.version == 4


def test_game_helpers_identify_winner_and_sides():
    game = make_game("g1", "a", "b", 1, 3)
    assert game.winner_id == "b"
    assert game.loser_id == "a"
    assert game.opponent_of("a") == "b"
    assert game.scores_for("b") == (3, 1)
    assert game.pairing() == frozenset({"a", "b"})
    assert game.played_at().hour == 12


def test_game_sort_key_is_chronological():
    game = make_game("g1", "a", "b", 2, 0, tournament_id="t1")
    item = game.to_item("office")
    assert item["sk"] == "GAME#2024-01-01T12:00:00.000Z#g1"
    assert Game.from_item(item) == game


def test_tournament_round_trip_and_participants():
    tournament = Tournament(
        tournament_id="t1",
        name="Spring Cup",
        date="2024-04-01",
        enrolled_player_ids=["a", "b", "c", "d"],
        locked=True,
        seed_ids=["a", "b", "c", BYE],
        bracket_size=4,
        started_at="2024-04-01T10:00:00.000Z",
        play_in_ids=["d"],
    )
    restored = Tournament.from_item(tournament.to_item("office"))
    assert restored == tournament
    assert restored.participant_ids() == {"a", "b", "c", "d"}


def test_unlocked_tournament_participants_are_enrolled_players():
    tournament = Tournament(
        tournament_id="t1", name="Cup", date="2024-04-01", enrolled_player_ids=["a"]
    )
    assert tournament.participant_ids() == {"a"}
    assert "started_at" not in tournament.to_item("office")


def test_bracket_slot_variants():
    seeded = BracketSlot.for_player("a", "Alice", seed=1)
    assert seeded.display() == "#1 Alice"
    assert seeded.to_dict() == {
        "kind": "player",
        "label": "Alice",
        "player_id": "a",
        "seed": 1,
    }
    assert BracketSlot.bye().display() == "BYE"
    pending = BracketSlot.pending("R1M2")
    assert pending.is_pending
    assert pending.display() == "TBD"
    assert pending.to_dict()["source_match_id"] == "R1M2"


def test_iso_helpers_normalize_to_utc():
    moment = parse_iso("2024-05-01T08:15:00.000Z")
    assert format_iso(moment) == "2024-05-01T08:15:00.000000Z"
    assert moment.tzinfo is not None
