"""Shared fixtures: in-memory document store and a scriptable Riot client."""

import asyncio
import datetime as dt
from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

from tftstat.config import Settings
from tftstat.db.document_store import DuplicateDocumentError, StoreError
from tftstat.riot.client import RiotAPIError

NOW = dt.datetime(2026, 1, 10, 12, 0, tzinfo=dt.timezone.utc)


class FakeStore:
    """Same surface as DocumentStore, backed by dicts; ``(op, _id)`` pairs in ``fail`` raise StoreError."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.fail: set = set()
        self.calls = Counter()

    def _coll(self, name: str) -> Dict[str, dict]:
        return self.collections.setdefault(name, {})

    def _check(self, op: str, doc_id: str) -> None:
        if (op, doc_id) in self.fail:
            raise StoreError(f"{op} {doc_id}: connection reset")

    async def count_by_id(self, collection: str, doc_id: str) -> int:
        self.calls["count"] += 1
        await asyncio.sleep(0)
        self._check("count", doc_id)
        return 1 if doc_id in self._coll(collection) else 0

    async def find_one_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        self.calls["find"] += 1
        await asyncio.sleep(0)
        self._check("find", doc_id)
        return self._coll(collection).get(doc_id)

    async def insert_one(self, collection: str, document: dict) -> None:
        self.calls["insert"] += 1
        await asyncio.sleep(0)
        self._check("insert", document["_id"])
        coll = self._coll(collection)
        if document["_id"] in coll:
            raise DuplicateDocumentError(f"{collection}/{document['_id']}")
        coll[document["_id"]] = document

    async def ensure_ttl_indexes(self, collections) -> None:
        pass


def summoner(n: int) -> Dict[str, Any]:
    return {"id": f"sid-{n}", "puuid": f"puuid-{n}", "name": f"Player{n}", "accountId": f"acc-{n}"}


def league_entry(tier: str, rank: str, lp: int) -> Dict[str, Any]:
    return {"queueType": "RANKED_TFT", "tier": tier, "rank": rank, "leaguePoints": lp}


def match_payload(match_id: str, puuids: List[str], played_at: dt.datetime) -> Dict[str, Any]:
    return {
        "metadata": {"match_id": match_id, "participants": list(puuids)},
        "info": {"game_datetime": int(played_at.timestamp() * 1000), "tft_set_number": 13},
    }


class FakeRiot:
    """Scriptable stand-in for RiotClient; anything in ``fail`` raises RiotAPIError."""

    def __init__(self):
        self.summoners: Dict[str, dict] = {}
        self.entries: Dict[str, list] = {}
        self.matches: Dict[str, dict] = {}
        self.match_ids: Dict[str, List[str]] = {}
        self.fail: set = set()
        self.calls = Counter()

    def add_player(self, n: int, tier: Optional[str] = "GOLD", rank: str = "II", lp: int = 50) -> dict:
        s = summoner(n)
        self.summoners[s["id"]] = s
        self.summoners[s["puuid"]] = s
        self.entries[s["id"]] = [league_entry(tier, rank, lp)] if tier else []
        return s

    async def _answer(self, name: str, key: str, value: Any) -> Any:
        self.calls[name] += 1
        await asyncio.sleep(0)
        if key in self.fail:
            raise RiotAPIError(f"{name} {key}: 503")
        return value

    async def get_summoner_by_id(self, region: str, summoner_id: str):
        return await self._answer("summoner", summoner_id, self.summoners.get(summoner_id))

    async def get_summoner_by_puuid(self, region: str, puuid: str):
        return await self._answer("summoner", puuid, self.summoners.get(puuid))

    async def get_league_entries_by_summoner(self, region: str, summoner_id: str):
        return await self._answer("entries", "entries:" + summoner_id, self.entries.get(summoner_id))

    async def get_match_ids(self, region: str, puuid: str, count: int = 10):
        return await self._answer("match_ids", "ids:" + puuid, self.match_ids.get(puuid, [])[:count])

    async def get_match_by_id(self, region: str, match_id: str):
        return await self._answer("match", match_id, self.matches.get(match_id))


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def riot():
    return FakeRiot()


@pytest.fixture
def settings():
    return Settings(
        RIOT_API_KEY="test_key",
        SUMMONERS_COLLECTION="summoners",
        STANDINGS_COLLECTION="standings",
        MATCHES_COLLECTION="matches",
        CRAWL_TARGETS=["GOLD I"],
        CYCLE_PAUSE=0,
        LADDER_RETRY_DELAY=0,
        _env_file=None,
    )
