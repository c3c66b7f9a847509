# tftstat/models/documents.py
# ============================================================================
# Forme des documents stockés (summoners, standings, matches) + tâches de crawl
# Aucun document n'est modifié après insertion : seule l'expiration TTL les retire
# ============================================================================

from __future__ import annotations

import datetime as dt
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from tftstat.services.rank import TEAM_SIZE, UNRANKED_TEXT, encode, team_average, team_average_value

# Champs techniques ajoutés à chaque document
ID = "_id"
CREATED = "_documentCreated"
EXPIRE = "_documentExpire"
MATCH_TIMESTAMP = "_matchTimestamp"
PARTICIPANTS = "_participants"
AVERAGE_RANK = "_averageRank"
AVERAGE_RANK_TEXT = "_averageRankText"

IDENTITY_TTL = dt.timedelta(days=30)
STANDING_TTL = dt.timedelta(days=1)
MATCH_MIN_TTL = dt.timedelta(hours=24)
MATCH_RETENTION = dt.timedelta(days=7)
TOMBSTONE_TTL = dt.timedelta(hours=24)

RANKED_QUEUE = "RANKED_TFT"

Document = Dict[str, Any]


class StandingStatus(str, enum.Enum):
    RANKED = "ranked"
    UNRANKED = "unranked"


class MatchOutcome(enum.IntEnum):
    """Résultat du traitement d'un match_id."""
    FAILED = -1   # tombstone écrit
    REPEAT = 0    # déjà en base
    NEW = 1       # récupéré et inséré


@dataclass
class PlayerIdentity:
    """Identité d'un joueur (tft-summoner-v1)."""
    __slots__ = ("id", "puuid", "name", "account_id")

    id: str
    puuid: str
    name: Optional[str]
    account_id: Optional[str]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PlayerIdentity":
        return cls(
            id=payload["id"],
            puuid=payload["puuid"],
            name=payload.get("name") or payload.get("gameName"),
            account_id=payload.get("accountId"),
        )

    @classmethod
    def from_document(cls, doc: Document) -> "PlayerIdentity":
        return cls(id=doc["id"], puuid=doc["puuid"], name=doc.get("name"), account_id=doc.get("accountId"))

    def to_fields(self) -> Document:
        return {"id": self.id, "puuid": self.puuid, "name": self.name, "accountId": self.account_id}


@dataclass
class SkillStanding:
    """Classement d'un joueur dans la file RANKED_TFT."""
    __slots__ = ("summoner_id", "tier", "division", "league_points", "status")

    summoner_id: str
    tier: Optional[str]
    division: Optional[str]
    league_points: Optional[int]
    status: StandingStatus

    @classmethod
    def from_entries(cls, summoner_id: str, entries: List[Dict[str, Any]]) -> "SkillStanding":
        """Pick the ranked TFT entry among a summoner's league entries."""
        for entry in entries:
            if entry.get("queueType", RANKED_QUEUE) == RANKED_QUEUE and entry.get("tier"):
                return cls(
                    summoner_id=summoner_id,
                    tier=entry["tier"],
                    division=entry.get("rank", "I"),
                    league_points=int(entry.get("leaguePoints", 0)),
                    status=StandingStatus.RANKED,
                )
        return cls(summoner_id, None, None, None, StandingStatus.UNRANKED)

    @classmethod
    def from_document(cls, doc: Document) -> "SkillStanding":
        return cls(
            summoner_id=doc[ID],
            tier=doc.get("tier"),
            division=doc.get("rank"),
            league_points=doc.get("leaguePoints"),
            status=StandingStatus(doc.get("status", StandingStatus.UNRANKED.value)),
        )

    @property
    def is_ranked(self) -> bool:
        return self.status is StandingStatus.RANKED

    @property
    def as_tuple(self):
        return self.tier, self.division, self.league_points

    def to_fields(self) -> Document:
        return {
            "tier": self.tier,
            "rank": self.division,
            "leaguePoints": self.league_points,
            "status": self.status.value,
        }


@dataclass
class CrawlTask:
    """Unité de travail planifiée (joueur ou match) – jamais persistée."""
    index: int
    kind: str
    key: str
    region: str = ""


# ─── Horodatage ──────────────────────────────────────────────────────────────
def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _stamp(doc: Document, doc_id: str, created: dt.datetime, expire: dt.datetime) -> Document:
    doc[ID] = doc_id
    doc[CREATED] = created
    doc[EXPIRE] = expire
    return doc


def identity_document(key: str, identity: PlayerIdentity, created: dt.datetime) -> Document:
    return _stamp(identity.to_fields(), key, created, created + IDENTITY_TTL)


def standing_document(standing: SkillStanding, created: dt.datetime) -> Document:
    return _stamp(standing.to_fields(), standing.summoner_id, created, created + STANDING_TTL)


def match_timestamp(payload: Dict[str, Any]) -> dt.datetime:
    """Game start time (``info.game_datetime``, epoch millis)."""
    millis = payload["info"]["game_datetime"]
    return dt.datetime.fromtimestamp(millis / 1000, tz=dt.timezone.utc)


def match_expiry(created: dt.datetime, played_at: dt.datetime) -> dt.datetime:
    """Keep a match at least 24h, and until its game date is 7 days old."""
    return max(created + MATCH_MIN_TTL, played_at + MATCH_RETENTION)


def participant_entry(puuid: str, identity: PlayerIdentity, standing: SkillStanding) -> Document:
    entry = {"puuid": puuid, "summoner": identity.to_fields(), **standing.to_fields()}
    if standing.is_ranked:
        entry["numericRank"] = encode(*standing.as_tuple)
    return entry


def average_fields(standings: List[SkillStanding]) -> Document:
    """``_averageRank`` / ``_averageRankText``; only a full ranked lobby gets a value."""
    if len(standings) == TEAM_SIZE and all(s.is_ranked for s in standings):
        entries = [s.as_tuple for s in standings]
        return {AVERAGE_RANK: team_average_value(entries), AVERAGE_RANK_TEXT: team_average(entries)}
    return {AVERAGE_RANK: None, AVERAGE_RANK_TEXT: UNRANKED_TEXT}


def match_document(
    match_id: str,
    payload: Dict[str, Any],
    created: dt.datetime,
    participants: List[Document],
    standings: List[SkillStanding],
) -> Document:
    doc = dict(payload)
    played_at = match_timestamp(payload)
    doc[MATCH_TIMESTAMP] = played_at
    doc[PARTICIPANTS] = participants
    doc.update(average_fields(standings))
    return _stamp(doc, match_id, created, match_expiry(created, played_at))


def tombstone_document(match_id: str, created: dt.datetime) -> Document:
    """Placeholder so a failing match id is not re-fetched for 24 hours."""
    return _stamp({}, match_id, created, created + TOMBSTONE_TTL)
