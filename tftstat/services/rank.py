# tftstat/services/rank.py
# ============================================================================
# Encodage numérique des rangs TFT (tier / division / LP) et moyenne d'équipe
# ============================================================================

from __future__ import annotations

import enum
from typing import Sequence, Tuple

APEX_LABEL = "MASTER+"
UNRANKED_TEXT = "UNRANKED"
TEAM_SIZE = 8

DIVISION_OFFSETS = {"IV": 0, "III": 100, "II": 200, "I": 300}
BAND_WIDTH = 400
DIVISION_WIDTH = 100

# Poids du vote pour départager MASTER / GRANDMASTER / CHALLENGER
APEX_WEIGHTS = {"CHALLENGER": 3, "GRANDMASTER": 2, "MASTER": 1}
GRANDMASTER_VOTE = 12
CHALLENGER_VOTE = 20


class UnknownTierError(ValueError):
    """Raised when a tier label is not one of IRON … CHALLENGER."""


class UnknownDivisionError(ValueError):
    """Raised when a division label is not one of I … IV."""


class Tier(str, enum.Enum):
    IRON = "IRON"
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
    DIAMOND = "DIAMOND"
    MASTER = "MASTER"
    GRANDMASTER = "GRANDMASTER"
    CHALLENGER = "CHALLENGER"

    @classmethod
    def parse(cls, value: "str | Tier") -> "Tier":
        if isinstance(value, Tier):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise UnknownTierError(f"Unknown tier: {value!r}") from None

    @property
    def is_apex(self) -> bool:
        return self in APEX_TIERS

    @property
    def base(self) -> int:
        return _TIER_BASE[self]


APEX_TIERS = frozenset({Tier.MASTER, Tier.GRANDMASTER, Tier.CHALLENGER})

# Les trois tiers apex partagent la même bande
_TIER_BASE = {
    Tier.IRON: 0,
    Tier.BRONZE: 400,
    Tier.SILVER: 800,
    Tier.GOLD: 1200,
    Tier.PLATINUM: 1600,
    Tier.DIAMOND: 2000,
    Tier.MASTER: 2400,
    Tier.GRANDMASTER: 2400,
    Tier.CHALLENGER: 2400,
}

# Ordre de décodage des bandes non-apex
_BANDS = (Tier.IRON, Tier.BRONZE, Tier.SILVER, Tier.GOLD, Tier.PLATINUM, Tier.DIAMOND)
_DIVISIONS = ("IV", "III", "II", "I")
APEX_BASE = _TIER_BASE[Tier.MASTER]


def division_offset(tier: Tier, division: str) -> int:
    """Offset of a division inside its tier band (always 0 for apex tiers)."""
    if tier.is_apex:
        return 0
    try:
        return DIVISION_OFFSETS[str(division).upper()]
    except KeyError:
        raise UnknownDivisionError(f"Unknown division: {division!r}") from None


def encode(tier: "str | Tier", division: str, points: int) -> int:
    """
    Convert a ranked standing to a single ordered integer.

    Points are added as-is: negative or >100 values spill into the
    neighbouring band (GOLD III 100LP == GOLD II 0LP == 1400).
    """
    t = Tier.parse(tier)
    return t.base + division_offset(t, division) + int(points)


def decode(value: int) -> Tuple[str, str, int]:
    """Inverse of :func:`encode`. Apex values decode to ``("MASTER+", "I", lp)``."""
    value = int(value)
    if value >= APEX_BASE:
        return APEX_LABEL, "I", value - APEX_BASE

    # Les valeurs négatives restent en IRON IV
    band = max(0, value // BAND_WIDTH)
    tier = _BANDS[band]
    remainder = value - tier.base

    step = max(0, min(remainder // DIVISION_WIDTH, len(_DIVISIONS) - 1))
    division = _DIVISIONS[step]
    return tier.value, division, remainder - step * DIVISION_WIDTH


def render(tier: str, division: str, points: int) -> str:
    return f"{tier} {division} {points}LP"


def _mean(values: Sequence[int]) -> int:
    """Integer mean truncated toward zero."""
    total = sum(values)
    quotient = abs(total) // len(values)
    return quotient if total >= 0 else -quotient


def team_average_value(entries: Sequence[Tuple[str, str, int]]) -> int:
    """Numeric mean of the encoded standings of a full lobby."""
    if len(entries) != TEAM_SIZE:
        raise ValueError(f"Expected {TEAM_SIZE} entries, got {len(entries)}")
    return _mean([encode(t, d, p) for t, d, p in entries])


def apex_label(tiers: Sequence["str | Tier"]) -> str:
    """Resolve the apex label of a lobby by a weighted vote over its tiers."""
    vote = sum(APEX_WEIGHTS.get(Tier.parse(t).value, 0) for t in tiers)
    if vote < GRANDMASTER_VOTE:
        return Tier.MASTER.value
    if vote < CHALLENGER_VOTE:
        return Tier.GRANDMASTER.value
    return Tier.CHALLENGER.value


def team_average(entries: Sequence[Tuple[str, str, int]]) -> str:
    """
    Average rank of a lobby, rendered as text.

    Args:
        entries: exactly 8 ``(tier, division, points)`` tuples

    Returns:
        str: e.g. ``"GRANDMASTER I 430LP"``
    """
    tier, division, points = decode(team_average_value(entries))
    if tier == APEX_LABEL:
        tier = apex_label([t for t, _, _ in entries])
    return render(tier, division, points)
