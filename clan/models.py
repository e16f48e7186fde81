"""Data models for the clan bot."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from .config import WAR_DAYS

_INTEGER = re.compile(r"-?\d+", re.ASCII)


def parse_int(text: str, signed: bool = False) -> Optional[int]:
    """Parse a plain run of ASCII digits, or None. Only `signed` allows a leading minus."""
    text = text.strip()
    if not _INTEGER.fullmatch(text) or (text.startswith("-") and not signed):
        return None
    return int(text)


@dataclass
class Player:
    """Represents a registered clan member."""
    id: str
    name: str
    member_id: Optional[str] = None
    daily_points: List[int] = field(default_factory=lambda: [0] * WAR_DAYS)
    naval_defense_points: int = 0
    warnings: int = 0
    warned_absences: List[int] = field(default_factory=list)
    level_xp: Optional[int] = None
    king_tower: Optional[int] = None
    trophies: Optional[int] = None
    registered_at: Optional[int] = None

    @property
    def total_war_points(self) -> int:
        """Sum of the war points scored this week (pending days count as zero)."""
        return sum(points for points in self.daily_points if points > 0)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the stored document; unset progression fields are omitted."""
        from .names import sanitize_name

        doc = {
            "memberId": self.member_id,
            "name": self.name,
            "name_lowercase": self.name.lower(),
            "sanitizedName": sanitize_name(self.name),
            "dailyPoints": list(self.daily_points),
            "navalDefensePoints": self.naval_defense_points,
            "warnings": self.warnings,
            "warnedAbsences": sorted(self.warned_absences),
            "registeredAt": self.registered_at,
        }
        for key, value in (("levelXP", self.level_xp), ("kingTower", self.king_tower), ("trophies", self.trophies)):
            if value is not None:
                doc[key] = value
        return doc

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Player":
        """Build a player from a stored document, tolerating missing fields."""
        daily_points = list(data.get("dailyPoints") or [-1] * WAR_DAYS)
        daily_points += [-1] * (WAR_DAYS - len(daily_points))
        return cls(
            id=doc_id,
            name=data.get("name", ""),
            member_id=data.get("memberId"),
            daily_points=daily_points[:WAR_DAYS],
            naval_defense_points=data.get("navalDefensePoints") or 0,
            warnings=data.get("warnings") or 0,
            warned_absences=list(data.get("warnedAbsences") or []),
            level_xp=data.get("levelXP"),
            king_tower=data.get("kingTower"),
            trophies=data.get("trophies"),
            registered_at=data.get("registeredAt"),
        )


class StatType(Enum):
    """A stat that can be registered through the points menu."""
    WAR = ("Guerra", "dailyPoints", 0)
    NAVAL = ("Defesa Naval", "navalDefensePoints", 0)
    KING_TOWER = ("Torre Rei", "kingTower", 1)
    TROPHIES = ("Troféus", "trophies", 0)
    LEVEL_XP = ("Nível XP", "levelXP", 1)

    def __init__(self, label: str, field_name: str, min_value: int):
        self.label = label
        self.field_name = field_name
        self.min_value = min_value

    @classmethod
    def from_menu(cls, choice: str) -> Optional["StatType"]:
        """Map a 1-based menu choice to a stat."""
        members = list(cls)
        index = parse_int(choice)
        if index is not None and 1 <= index <= len(members):
            return members[index - 1]
        return None

    def parse(self, raw: str) -> Optional[int]:
        """Parse and validate a value for this stat."""
        value = parse_int(raw, signed=True)
        if value is None:
            return None
        return value if value >= self.min_value else None

    @property
    def prompt(self) -> str:
        """Question asked for this stat; formatted with the player name."""
        return {
            StatType.WAR: "Quantos pontos de *Guerra* para *{name}*?",
            StatType.NAVAL: "Quantos pontos de *Defesa Naval* *{name}* fez?",
            StatType.KING_TOWER: "Qual o nível da Torre de *{name}*?",
            StatType.TROPHIES: "Quantos troféus *{name}* tem?",
            StatType.LEVEL_XP: "Qual o nível de *{name}*?",
        }[self]


class ResolveStatus(Enum):
    """Outcome of a name lookup."""
    EMPTY_LIST = "empty_list"
    AMBIGUOUS = "ambiguous"
    EXACT = "exact"
    SIMILAR = "similar"
    NOT_FOUND = "not_found"


@dataclass
class Resolution:
    """Result of resolving a free-text name against the roster."""
    status: ResolveStatus
    player: Optional[Player] = None
    distance: Optional[int] = None
    suggestions: List[Player] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status in (ResolveStatus.EXACT, ResolveStatus.SIMILAR)


@dataclass
class Division:
    """A ranking division and its minimum weekly total."""
    name: str
    emoji: str
    min_points: int


@dataclass
class HallOfFameEntry:
    """Number of weekly titles won by a player name."""
    name: str
    wins: int
