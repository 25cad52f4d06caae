from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import ClassVar, Final, Literal

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

BYE: Final = "BYE"
TBD: Final = "TBD"

DEFAULT_ELO: Final = 1000
NO_VALUE: Final = "N/A"
UNKNOWN_PLAYER: Final = "Unknown player"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format."""
    return datetime.now(UTC).strftime(ISO_FORMAT)


def format_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime(ISO_FORMAT)


def parse_iso(value: str) -> datetime:
    return datetime.strptime(value, ISO_FORMAT).replace(tzinfo=UTC)


def _id_from_sk(item: dict[str, object]) -> str:
    return str(item["sk"]).rsplit("#", 1)[1]


def _str_list(item: dict[str, object], name: str) -> list[str]:
    values = item.get(name) or []
    return [str(value) for value in values]  # type: ignore[union-attr]


@dataclass(slots=True)
class PlayerStats:
    win_streak: int = 0
    loss_streak: int = 0
    highest_streak: int = 0
    elo: int = DEFAULT_ELO
    rival: str = NO_VALUE
    rival_id: str | None = None
    best_score: str = NO_VALUE

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "win_streak": self.win_streak,
            "loss_streak": self.loss_streak,
            "highest_streak": self.highest_streak,
            "elo": self.elo,
            "rival": self.rival,
            "best_score": self.best_score,
        }
        if self.rival_id is not None:
            data["rival_id"] = self.rival_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> PlayerStats:
        rival_id = data.get("rival_id")
        return cls(
            win_streak=int(data.get("win_streak", 0)),
            loss_streak=int(data.get("loss_streak", 0)),
            highest_streak=int(data.get("highest_streak", 0)),
            elo=int(data.get("elo", DEFAULT_ELO)),
            rival=str(data.get("rival", NO_VALUE)),
            rival_id=str(rival_id) if rival_id is not None else None,
            best_score=str(data.get("best_score", NO_VALUE)),
        )


@dataclass(slots=True)
class Player:
    player_id: str
    name: str
    wins: int = 0
    losses: int = 0
    stats: PlayerStats = field(default_factory=PlayerStats)
    achievements: list[str] = field(default_factory=list)
    tournaments_won: int = 0
    version: int = 0

    PK_TEMPLATE: ClassVar[str] = "LEAGUE#%s"
    SK_TEMPLATE: ClassVar[str] = "PLAYER#%s"
    SK_PREFIX: ClassVar[str] = "PLAYER#"

    @classmethod
    def key(cls, league_id: str, player_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % league_id, "sk": cls.SK_TEMPLATE % player_id}

    @property
    def games_played(self) -> int:
        return self.wins + self.losses

    def to_item(self, league_id: str) -> dict[str, object]:
        item = self.key(league_id, self.player_id)
        item.update(
            {
                "player_id": self.player_id,
                "name": self.name,
                "wins": self.wins,
                "losses": self.losses,
                "stats": self.stats.to_dict(),
                "achievements": list(self.achievements),
                "tournaments_won": self.tournaments_won,
            }
        )
        if self.version:
            item["version"] = self.version
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Player:
        stats_data = item.get("stats")
        return cls(
            player_id=str(item.get("player_id") or _id_from_sk(item)),
            name=str(item.get("name", "")),
            wins=int(item.get("wins", 0)),
            losses=int(item.get("losses", 0)),
            stats=(
                PlayerStats.from_dict(stats_data)  # type: ignore[arg-type]
                if isinstance(stats_data, dict)
                else PlayerStats()
            ),
            achievements=_str_list(item, "achievements"),
            tournaments_won=int(item.get("tournaments_won", 0)),
            version=int(item.get("version", 0)),
        )

    def clone(self) -> Player:
        return replace(
            self, stats=replace(self.stats), achievements=list(self.achievements)
        )


@dataclass(slots=True)
class Game:
    game_id: str
    player1_id: str
    player2_id: str
    score1: int
    score2: int
    date: str
    tournament_id: str | None = None

    PK_TEMPLATE: ClassVar[str] = "LEAGUE#%s"
    SK_TEMPLATE: ClassVar[str] = "GAME#%s#%s"
    SK_PREFIX: ClassVar[str] = "GAME#"

    @classmethod
    def key(cls, league_id: str, date: str, game_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % league_id,
            "sk": cls.SK_TEMPLATE % (date, game_id),
        }

    @property
    def winner_id(self) -> str:
        return self.player1_id if self.score1 > self.score2 else self.player2_id

    @property
    def loser_id(self) -> str:
        return self.player2_id if self.score1 > self.score2 else self.player1_id

    def involves(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def opponent_of(self, player_id: str) -> str:
        return self.player2_id if player_id == self.player1_id else self.player1_id

    def scores_for(self, player_id: str) -> tuple[int, int]:
        """Return ``(own, opponent)`` scores from the given player's side."""
        if player_id == self.player1_id:
            return self.score1, self.score2
        return self.score2, self.score1

    def pairing(self) -> frozenset[str]:
        return frozenset((self.player1_id, self.player2_id))

    def played_at(self) -> datetime:
        return parse_iso(self.date)

    def to_item(self, league_id: str) -> dict[str, object]:
        item = self.key(league_id, self.date, self.game_id)
        item.update(
            {
                "game_id": self.game_id,
                "player1_id": self.player1_id,
                "player2_id": self.player2_id,
                "score1": self.score1,
                "score2": self.score2,
                "date": self.date,
            }
        )
        if self.tournament_id is not None:
            item["tournament_id"] = self.tournament_id
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Game:
        tournament_id = item.get("tournament_id")
        return cls(
            game_id=str(item.get("game_id") or _id_from_sk(item)),
            player1_id=str(item["player1_id"]),
            player2_id=str(item["player2_id"]),
            score1=int(item["score1"]),
            score2=int(item["score2"]),
            date=str(item.get("date", "")),
            tournament_id=str(tournament_id) if tournament_id is not None else None,
        )


@dataclass(slots=True)
class Tournament:
    tournament_id: str
    name: str
    date: str
    image_url: str = ""
    enrolled_player_ids: list[str] = field(default_factory=list)
    locked: bool = False
    seed_ids: list[str] = field(default_factory=list)
    bracket_size: int = 0
    started_at: str | None = None
    play_in_ids: list[str] = field(default_factory=list)
    version: int = 0

    PK_TEMPLATE: ClassVar[str] = "LEAGUE#%s"
    SK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_PREFIX: ClassVar[str] = "TOURNAMENT#"

    @classmethod
    def key(cls, league_id: str, tournament_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % league_id,
            "sk": cls.SK_TEMPLATE % tournament_id,
        }

    def to_item(self, league_id: str) -> dict[str, object]:
        item = self.key(league_id, self.tournament_id)
        item.update(
            {
                "tournament_id": self.tournament_id,
                "name": self.name,
                "date": self.date,
                "image_url": self.image_url,
                "enrolled_player_ids": list(self.enrolled_player_ids),
                "locked": self.locked,
                "seed_ids": list(self.seed_ids),
                "bracket_size": self.bracket_size,
                "play_in_ids": list(self.play_in_ids),
            }
        )
        if self.started_at is not None:
            item["started_at"] = self.started_at
        if self.version:
            item["version"] = self.version
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Tournament:
        started_at = item.get("started_at")
        return cls(
            tournament_id=str(item.get("tournament_id") or _id_from_sk(item)),
            name=str(item.get("name", "")),
            date=str(item.get("date", "")),
            image_url=str(item.get("image_url", "")),
            enrolled_player_ids=_str_list(item, "enrolled_player_ids"),
            locked=bool(item.get("locked", False)),
            seed_ids=_str_list(item, "seed_ids"),
            bracket_size=int(item.get("bracket_size", 0)),
            started_at=str(started_at) if started_at is not None else None,
            play_in_ids=_str_list(item, "play_in_ids"),
            version=int(item.get("version", 0)),
        )

    def clone(self) -> Tournament:
        return replace(
            self,
            enrolled_player_ids=list(self.enrolled_player_ids),
            seed_ids=list(self.seed_ids),
            play_in_ids=list(self.play_in_ids),
        )

    def participant_ids(self) -> set[str]:
        """Return every concrete entrant currently able to appear in the bracket."""
        if self.locked:
            seeded = {seed for seed in self.seed_ids if seed != BYE}
            return seeded | set(self.play_in_ids)
        return set(self.enrolled_player_ids)


SlotKind = Literal["player", "bye", "pending"]


@dataclass(slots=True, frozen=True)
class BracketSlot:
    """A competitor position: a concrete player, a BYE, or awaiting a winner."""

    kind: SlotKind
    player_id: str | None = None
    label: str = ""
    seed: int | None = None
    source_match_id: str | None = None

    @classmethod
    def for_player(
        cls, player_id: str, label: str, seed: int | None = None
    ) -> BracketSlot:
        return cls(kind="player", player_id=player_id, label=label, seed=seed)

    @classmethod
    def bye(cls) -> BracketSlot:
        return cls(kind="bye", label=BYE)

    @classmethod
    def pending(cls, source_match_id: str | None = None) -> BracketSlot:
        return cls(kind="pending", label=TBD, source_match_id=source_match_id)

    @property
    def is_player(self) -> bool:
        return self.kind == "player"

    @property
    def is_bye(self) -> bool:
        return self.kind == "bye"

    @property
    def is_pending(self) -> bool:
        return self.kind == "pending"

    def display(self) -> str:
        if self.is_player and self.seed is not None:
            return f"#{self.seed} {self.label}"
        return self.label

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"kind": self.kind, "label": self.label}
        if self.player_id is not None:
            data["player_id"] = self.player_id
        if self.seed is not None:
            data["seed"] = self.seed
        if self.source_match_id is not None:
            data["source_match_id"] = self.source_match_id
        return data


@dataclass(slots=True, frozen=True)
class BracketMatch:
    match_id: str
    round_index: int
    competitor_one: BracketSlot
    competitor_two: BracketSlot
    winner: BracketSlot | None = None
    game_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "match_id": self.match_id,
            "round_index": self.round_index,
            "competitor_one": self.competitor_one.to_dict(),
            "competitor_two": self.competitor_two.to_dict(),
        }
        if self.winner is not None:
            data["winner"] = self.winner.to_dict()
        if self.game_id is not None:
            data["game_id"] = self.game_id
        return data


@dataclass(slots=True, frozen=True)
class BracketRound:
    title: str
    matches: tuple[BracketMatch, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "title": self.title,
            "matches": [match.to_dict() for match in self.matches],
        }


__all__ = [
    "BYE",
    "TBD",
    "DEFAULT_ELO",
    "ISO_FORMAT",
    "NO_VALUE",
    "UNKNOWN_PLAYER",
    "PlayerStats",
    "Player",
    "Game",
    "Tournament",
    "SlotKind",
    "BracketSlot",
    "BracketMatch",
    "BracketRound",
    "format_iso",
    "parse_iso",
    "utc_now_iso",
]
