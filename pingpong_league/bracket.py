from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from .models import (
    BYE,
    UNKNOWN_PLAYER,
    BracketMatch,
    BracketRound,
    BracketSlot,
    Game,
    Player,
)

log = logging.getLogger(__name__)

WINNER_TITLE = "Winner"
CHAMPION_MATCH_ID = "CHAMPION"


def _next_power_of_two(value: int) -> int:
    if value <= 0:
        raise ValueError("Value must be positive")
    return 1 << (value - 1).bit_length()


def _seeding_key(player: Player) -> tuple[int, str, str]:
    return (-player.stats.elo, player.name, player.player_id)


def seed_entrants(entrants: Sequence[Player]) -> list[str]:
    """Order entrants by Elo and pad with BYEs up to the next power of two."""
    if len(entrants) < 2:
        return []
    ordered = sorted(entrants, key=_seeding_key)
    seeds = [player.player_id for player in ordered]
    seeds.extend([BYE] * (_next_power_of_two(len(seeds)) - len(seeds)))
    return seeds


def fold_pairs(size: int) -> list[tuple[int, int]]:
    """Return round-one seed index pairs: top seed against bottom seed."""
    return [(index, size - 1 - index) for index in range(size // 2)]


def _round_title(match_count: int, round_number: int) -> str:
    if match_count == 1:
        return "Final"
    if match_count == 2:
        return "Semi-Finals"
    if match_count == 4:
        return "Quarter-Finals"
    return f"Round {round_number}"


def _build_slot(
    entrant_id: str, players: Mapping[str, Player], seed: int | None
) -> BracketSlot:
    if entrant_id == BYE:
        return BracketSlot.bye()
    player = players.get(entrant_id)
    if player is None:
        log.debug("Bracket entrant %s has no player record", entrant_id)
        label = UNKNOWN_PLAYER
    else:
        label = player.name
    return BracketSlot.for_player(entrant_id, label, seed)


def _index_games(games: Iterable[Game]) -> dict[frozenset[str], Game]:
    by_pair: dict[frozenset[str], Game] = {}
    for game in games:
        by_pair.setdefault(game.pairing(), game)
    return by_pair


def resolve_winner(
    competitor_one: BracketSlot,
    competitor_two: BracketSlot,
    games_by_pair: Mapping[frozenset[str], Game],
) -> tuple[BracketSlot | None, Game | None]:
    """Return the advancing slot (None while undecided) and the deciding game."""
    if competitor_one.is_bye and competitor_two.is_bye:
        return BracketSlot.bye(), None
    if competitor_one.is_bye:
        return (competitor_two if competitor_two.is_player else None), None
    if competitor_two.is_bye:
        return (competitor_one if competitor_one.is_player else None), None
    if competitor_one.is_pending or competitor_two.is_pending:
        return None, None
    game = games_by_pair.get(
        frozenset((competitor_one.player_id, competitor_two.player_id))
    )
    if game is None:
        return None, None
    if game.winner_id == competitor_one.player_id:
        return competitor_one, game
    return competitor_two, game


def _make_match(
    round_index: int,
    number: int,
    competitor_one: BracketSlot,
    competitor_two: BracketSlot,
    games_by_pair: Mapping[frozenset[str], Game],
) -> BracketMatch:
    winner, game = resolve_winner(competitor_one, competitor_two, games_by_pair)
    return BracketMatch(
        match_id=f"R{round_index + 1}M{number}",
        round_index=round_index,
        competitor_one=competitor_one,
        competitor_two=competitor_two,
        winner=winner,
        game_id=game.game_id if game is not None else None,
    )


def _advancing_slot(match: BracketMatch) -> BracketSlot:
    if match.winner is None:
        return BracketSlot.pending(match.match_id)
    return match.winner


def build_bracket(
    seed_ids: Sequence[str],
    games: Iterable[Game],
    players: Mapping[str, Player],
    play_in_ids: Sequence[str] = (),
) -> list[BracketRound]:
    """Derive every round from frozen seeds, play-ins and recorded games.

    The result depends only on the inputs: identical arguments always give an
    identical bracket.
    """
    entrant_count = sum(1 for seed in seed_ids if seed != BYE) + len(play_in_ids)
    if entrant_count < 2:
        return []

    games_by_pair = _index_games(games)
    first_round: list[tuple[BracketSlot, BracketSlot]] = []
    for top, bottom in fold_pairs(len(seed_ids)):
        first_round.append(
            (
                _build_slot(seed_ids[top], players, top + 1),
                _build_slot(seed_ids[bottom], players, bottom + 1),
            )
        )
    play_in_slots = [_build_slot(entrant, players, None) for entrant in play_in_ids]
    if len(play_in_slots) % 2:
        play_in_slots.append(BracketSlot.bye())
    for index in range(0, len(play_in_slots), 2):
        first_round.append((play_in_slots[index], play_in_slots[index + 1]))

    matches = [
        _make_match(0, number, one, two, games_by_pair)
        for number, (one, two) in enumerate(first_round, start=1)
    ]
    rounds: list[BracketRound] = []
    round_index = 0
    while True:
        rounds.append(
            BracketRound(
                title=_round_title(len(matches), round_index + 1),
                matches=tuple(matches),
            )
        )
        if len(matches) <= 1:
            break
        advancing = [_advancing_slot(match) for match in matches]
        if len(advancing) % 2:
            advancing.append(BracketSlot.bye())
        round_index += 1
        matches = [
            _make_match(
                round_index,
                index // 2 + 1,
                advancing[index],
                advancing[index + 1],
                games_by_pair,
            )
            for index in range(0, len(advancing), 2)
        ]

    final_winner = matches[0].winner if matches else None
    if final_winner is not None and final_winner.is_player:
        rounds.append(
            BracketRound(
                title=WINNER_TITLE,
                matches=(
                    BracketMatch(
                        match_id=CHAMPION_MATCH_ID,
                        round_index=round_index + 1,
                        competitor_one=final_winner,
                        competitor_two=BracketSlot.bye(),
                        winner=final_winner,
                    ),
                ),
            )
        )
    return rounds


def champion_id(rounds: Sequence[BracketRound]) -> str | None:
    if not rounds or rounds[-1].title != WINNER_TITLE:
        return None
    winner = rounds[-1].matches[0].winner
    return winner.player_id if winner is not None else None


def render_bracket(rounds: Sequence[BracketRound]) -> str:
    lines: list[str] = []
    for round_ in rounds:
        if round_.title == WINNER_TITLE:
            continue
        lines.append(round_.title)
        for match in round_.matches:
            competitor_one = match.competitor_one.display()
            competitor_two = match.competitor_two.display()
            lines.append(f"  [{match.match_id}] {competitor_one} vs {competitor_two}")
            if match.winner is not None and match.winner.is_player:
                lines.append(f"    -> Winner: {match.winner.display()}")
            else:
                lines.append("    -> Winner: TBD")
        lines.append("")
    if lines and not lines[-1]:
        lines.pop()
    if champion_id(rounds) is not None:
        champion = rounds[-1].matches[0].competitor_one
        lines.append(f"Champion: {champion.display()}")
    return "\n".join(line.rstrip() for line in lines)


__all__ = [
    "build_bracket",
    "champion_id",
    "fold_pairs",
    "render_bracket",
    "resolve_winner",
    "seed_entrants",
]
