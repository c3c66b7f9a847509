# db/cache.py – cache read-through des réponses Riot (MongoDB)
# ============================================================================
# Une lecture en base d'abord ; l'API Riot n'est appelée qu'en cas d'absence,
# et le résultat est inséré avant d'être renvoyé. Jamais de mise à jour.
#   summoners  : TTL 30 j
#   standings  : TTL 1 j
#   matches    : max(création + 24 h, date de la partie + 7 j)
#                échec API → tombstone 24 h
# ============================================================================

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from tftstat.db.document_store import DocumentStore, DuplicateDocumentError
from tftstat.models.documents import (
    Document,
    MatchOutcome,
    PlayerIdentity,
    SkillStanding,
    identity_document,
    match_document,
    match_timestamp,
    participant_entry,
    standing_document,
    tombstone_document,
    utcnow,
)
from tftstat.riot.client import RiotAPIError, RiotClient
from tftstat.services.buffer import run_bounded

log = logging.getLogger(__name__)

Clock = Callable[[], dt.datetime]


class UpstreamError(Exception):
    """Cache miss whose upstream fetch failed (or found nothing)."""
    pass


class ReadThroughCache:
    """
    Cache-aside resolver over one collection.

    Subclasses implement :meth:`_fetch` (upstream call + document building).
    A stored document is returned unchanged; it is never overwritten.
    """

    kind = "document"

    def __init__(self, store: DocumentStore, api: RiotClient, region: str,
                 collection: str, now: Clock = utcnow):
        self.store = store
        self.api = api
        self.region = region
        self.collection = collection
        self._now = now
        # Résolutions en cours, par _id : un seul appel upstream par clé
        self._in_flight: Dict[str, asyncio.Future] = {}

    async def contains(self, key: str) -> bool:
        return await self.store.count_by_id(self.collection, key) > 0

    async def lookup(self, key: str) -> Optional[Document]:
        return await self.store.find_one_by_id(self.collection, key)

    async def _single_flight(self, key: str, work: Callable[[], Awaitable[Any]]) -> Tuple[Any, bool]:
        """
        Run ``work`` once per key at a time.

        Returns ``(result, owner)``; callers arriving while the key is already
        being resolved await the same future and get ``owner=False``.
        """
        pending = self._in_flight.get(key)
        if pending is not None:
            return await asyncio.shield(pending), False

        future = asyncio.ensure_future(work())
        self._in_flight[key] = future
        try:
            return await future, True
        finally:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    async def resolve(self, key: str) -> Document:
        doc, _ = await self._single_flight(key, lambda: self._resolve(key))
        return doc

    async def _resolve(self, key: str) -> Document:
        doc = await self.lookup(key)
        if doc is not None:
            return doc
        doc = await self._fetch(key, self._now())
        return await self._insert(doc)

    async def _insert(self, doc: Document) -> Document:
        try:
            await self.store.insert_one(self.collection, doc)
            return doc
        except DuplicateDocumentError:
            # Un autre task a inséré le même _id entre-temps : on garde le sien
            existing = await self.lookup(doc["_id"])
            log.debug("[%s] %s %s stored concurrently", self.region, self.kind, doc["_id"])
            return existing if existing is not None else doc

    async def _fetch(self, key: str, created: dt.datetime) -> Document:
        raise NotImplementedError


class SummonerCache(ReadThroughCache):
    """Player identities, looked up by summoner id (``by="id"``) or puuid."""

    kind = "summoner"

    def __init__(self, *args, by: str = "id", **kwargs):
        super().__init__(*args, **kwargs)
        if by not in ("id", "puuid"):
            raise ValueError(f"Unknown summoner lookup: {by!r}")
        self.by = by

    async def _fetch(self, key: str, created: dt.datetime) -> Document:
        try:
            if self.by == "puuid":
                payload = await self.api.get_summoner_by_puuid(self.region, key)
            else:
                payload = await self.api.get_summoner_by_id(self.region, key)
        except RiotAPIError as e:
            raise UpstreamError(f"tft_summoner_v1 {self.by}={key}: {e}") from e
        if payload is None:
            raise UpstreamError(f"tft_summoner_v1 {self.by}={key}: not found")
        try:
            identity = PlayerIdentity.from_payload(payload)
        except KeyError as e:
            raise UpstreamError(f"tft_summoner_v1 {self.by}={key}: missing field {e}") from e
        return identity_document(key, identity, created)

    async def resolve_identity(self, key: str) -> PlayerIdentity:
        return PlayerIdentity.from_document(await self.resolve(key))


class StandingCache(ReadThroughCache):
    """RANKED_TFT standing of a summoner, keyed by summoner id."""

    kind = "standing"

    async def _fetch(self, key: str, created: dt.datetime) -> Document:
        try:
            entries = await self.api.get_league_entries_by_summoner(self.region, key)
        except RiotAPIError as e:
            raise UpstreamError(f"tft_league_v1 summoner={key}: {e}") from e
        if entries is None:
            raise UpstreamError(f"tft_league_v1 summoner={key}: not found")
        return standing_document(SkillStanding.from_entries(key, entries), created)

    async def resolve_standing(self, summoner_id: str) -> SkillStanding:
        return SkillStanding.from_document(await self.resolve(summoner_id))


@dataclass
class MatchResolution:
    outcome: MatchOutcome
    document: Optional[Document] = None


class MatchCache(ReadThroughCache):
    """
    Match records enriched with each participant's identity and standing.

    A failing match fetch stores a tombstone and reports ``FAILED`` instead
    of raising; participant lookups still raise, so an incomplete match is
    never stored.
    """

    kind = "match"

    def __init__(self, store: DocumentStore, api: RiotClient, region: str,
                 collection: str, summoners: SummonerCache, standings: StandingCache,
                 participant_concurrency: int = 1, now: Clock = utcnow):
        super().__init__(store, api, region, collection, now=now)
        self.summoners = summoners
        self.standings = standings
        self.participant_concurrency = participant_concurrency

    async def resolve(self, key: str, load: bool = True) -> MatchResolution:  # type: ignore[override]
        resolution, owner = await self._single_flight(key, lambda: self._resolve_match(key, load))
        if not owner and resolution.outcome is not MatchOutcome.REPEAT:
            # Le match a été traité par un autre task : déjà en base pour nous
            return MatchResolution(MatchOutcome.REPEAT, resolution.document)
        return resolution

    async def _resolve_match(self, key: str, load: bool) -> MatchResolution:
        if not load:
            if await self.contains(key):
                return MatchResolution(MatchOutcome.REPEAT)
        else:
            doc = await self.lookup(key)
            if doc is not None:
                return MatchResolution(MatchOutcome.REPEAT, doc)

        created = self._now()
        try:
            payload = await self.api.get_match_by_id(self.region, key)
        except RiotAPIError as e:
            log.error("Error on GET_MATCH(%s,%s): %s", self.region, key, e)
            payload = None

        puuids = self._participant_ids(key, payload) if payload is not None else None
        if puuids is None:
            # Document factice pour ne pas re-tenter ce match pendant 24 h
            tombstone = tombstone_document(key, created)
            stored = await self._insert(tombstone)
            if stored is not tombstone:
                # Un vrai document (ou un autre tombstone) est arrivé entre-temps
                return MatchResolution(MatchOutcome.REPEAT, stored)
            return MatchResolution(MatchOutcome.FAILED, stored)

        participants, standings = await self._enrich(puuids)
        doc = match_document(key, payload, created, participants, standings)
        stored = await self._insert(doc)
        outcome = MatchOutcome.NEW if stored is doc else MatchOutcome.REPEAT
        return MatchResolution(outcome, stored)

    def _participant_ids(self, key: str, payload: Document) -> Optional[List[str]]:
        try:
            puuids = list(payload["metadata"]["participants"])
            match_timestamp(payload)
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            log.error("Malformed match %s (%s): %r", key, self.region, e)
            return None
        return puuids

    async def _participant(self, puuid: str) -> Tuple[Document, SkillStanding]:
        identity = await self.summoners.resolve_identity(puuid)
        # Le standing est indexé par summoner id, pas par puuid
        standing = await self.standings.resolve_standing(identity.id)
        return participant_entry(puuid, identity, standing), standing

    async def _enrich(self, puuids: List[str]) -> Tuple[List[Document], List[SkillStanding]]:
        results: Dict[int, Tuple[Document, SkillStanding]] = {}
        errors: List[BaseException] = []

        def on_result(index: int, result: Any, error: Optional[BaseException]) -> None:
            if error is not None:
                errors.append(error)
            else:
                results[index] = result

        await run_bounded(
            [lambda p=p: self._participant(p) for p in puuids],
            self.participant_concurrency,
            on_result,
        )
        if errors:
            raise errors[0]
        ordered = [results[i] for i in range(len(puuids))]
        return [entry for entry, _ in ordered], [standing for _, standing in ordered]
