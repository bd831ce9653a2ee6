"""
League tier registry.

Fifteen fixed tiers, "Liga 1" (entry) to "Liga 15" (diamond). The table is a
process constant: it is never stored or mutated.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

from src.modules.shared.validators import MAX_LEAGUE, MIN_LEAGUE, validate_league_number


@dataclass(frozen=True, slots=True)
class LeagueTier:
    id: int
    name: str
    color: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_TIER_DATA: Tuple[Tuple[str, str], ...] = (
    ("#8D8D8D", "Startowa liga"),
    ("#7DA1B9", "Wejdź do Top 10"),
    ("#7EC384", "Stabilny rozwój"),
    ("#A9D68B", "Trzymaj passę"),
    ("#C7E3A1", "Wyższy poziom"),
    ("#E4F0B8", "Lepsza konkurencja"),
    ("#F9C9A7", "Stań na podium"),
    ("#F6B38F", "Top 5 na wyciągnięcie"),
    ("#F29B78", "Blisko awansu"),
    ("#F27C8A", "Silna stawka"),
    ("#CD7F32", "Brązowa Liga"),
    ("#C0C0C0", "Srebrna Liga"),
    ("#FFD700", "Złota Liga"),
    ("#6A5ACD", "Platynowa Liga"),
    ("#00BFFF", "Diamentowa Liga"),
)

LEAGUE_TIERS: Tuple[LeagueTier, ...] = tuple(
    LeagueTier(id=index, name=f"Liga {index}", color=color, description=description)
    for index, (color, description) in enumerate(_TIER_DATA, start=MIN_LEAGUE)
)

assert len(LEAGUE_TIERS) == MAX_LEAGUE


def get_tier(league_number: Any) -> LeagueTier:
    """
    Look up a tier by id.

    Raises:
        LeagueOutOfRangeError: for anything but an int in 1..15
    """
    league_number = validate_league_number(league_number)
    return LEAGUE_TIERS[league_number - MIN_LEAGUE]


def list_tiers() -> Tuple[LeagueTier, ...]:
    """All tiers, ascending by id."""
    return LEAGUE_TIERS
