# tftstat/services/crawler.py
# ============================================================================
# Boucle de crawl d'une région (tourne indéfiniment)
#   1. liste complète des joueurs (LadderEnumerator)
#   2. traitement borné des joueurs (run_bounded)
#   3. pour chaque joueur : ses derniers matchs, un par un, via MatchCache
# ============================================================================

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from tftstat.config import Settings
from tftstat.db.cache import MatchCache, StandingCache, SummonerCache
from tftstat.db.document_store import DocumentStore
from tftstat.models.documents import CrawlTask, MatchOutcome
from tftstat.riot.client import RiotClient
from tftstat.services.buffer import run_bounded
from tftstat.services.ladder import LadderEnumerationError, LadderEnumerator

log = logging.getLogger(__name__)


@dataclass
class PlayerStats:
    new: int = 0
    repeat: int = 0
    failed: int = 0
    errors: int = 0


@dataclass
class CycleStats:
    """Compteurs d'un cycle, logués à la fin et exposés par /metrics."""
    region: str
    cycle: int = 0
    players: int = 0
    players_done: int = 0
    players_failed: int = 0
    new: int = 0
    repeat: int = 0
    failed: int = 0
    errors: int = 0
    aborted: bool = False
    started_at: float = field(default_factory=time.time)
    duration: float = 0.0

    def add(self, player: PlayerStats) -> None:
        self.new += player.new
        self.repeat += player.repeat
        self.failed += player.failed
        self.errors += player.errors


class CrawlStatus:
    """Dernier cycle terminé par région (lu par le health check)."""

    def __init__(self):
        self._last: Dict[str, CycleStats] = {}
        self._cycles: Dict[str, int] = {}

    def record(self, stats: CycleStats) -> None:
        self._last[stats.region] = stats
        self._cycles[stats.region] = self._cycles.get(stats.region, 0) + 1

    def snapshot(self) -> Dict[str, Any]:
        return {
            region: {**asdict(stats), "completed_cycles": self._cycles[region]}
            for region, stats in self._last.items()
        }


status = CrawlStatus()


class RegionCrawler:
    """Crawl indépendant d'une région ; le client API et le store sont partagés."""

    def __init__(self, region: str, api: RiotClient, store: DocumentStore, settings: Settings,
                 crawl_status: Optional[CrawlStatus] = None):
        self.region = region
        self.api = api
        self.settings = settings
        self.status = crawl_status if crawl_status is not None else status
        self.ladder = LadderEnumerator(
            api, region, settings.crawl_targets,
            max_attempts=settings.LADDER_MAX_ATTEMPTS,
            retry_delay=settings.LADDER_RETRY_DELAY,
        )
        self.summoners = SummonerCache(store, api, region, settings.SUMMONERS_COLLECTION)
        participants = SummonerCache(store, api, region, settings.SUMMONERS_COLLECTION, by="puuid")
        standings = StandingCache(store, api, region, settings.STANDINGS_COLLECTION)
        self.matches = MatchCache(
            store, api, region, settings.MATCHES_COLLECTION,
            summoners=participants, standings=standings,
            participant_concurrency=settings.PARTICIPANT_CONCURRENCY,
        )
        self._cycle = 0

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run cycles forever; ``stop_event`` is only checked between cycles."""
        while stop_event is None or not stop_event.is_set():
            try:
                await self.do_cycle()
            except Exception:
                log.exception("[%s] Cycle crashed, starting a new one", self.region)
                await asyncio.sleep(self.settings.CYCLE_PAUSE)
        log.info("[%s] Stop requested, crawler exiting.", self.region)

    async def do_cycle(self) -> CycleStats:
        self._cycle += 1
        stats = CycleStats(region=self.region, cycle=self._cycle)
        log.info("[%s] Main begin (cycle %d).", self.region, self._cycle)

        try:
            summoner_ids = await self.ladder.top_players()
        except LadderEnumerationError as e:
            log.error("[%s] Ladder enumeration failed, cycle aborted: %s", self.region, e)
            stats.aborted = True
            self._finish(stats)
            await asyncio.sleep(self.settings.CYCLE_PAUSE)
            return stats

        stats.players = len(summoner_ids)
        log.info("[%s] Gathered summoner ids for %d players.", self.region, len(summoner_ids))

        tasks = [CrawlTask(index, "player", sid, self.region) for index, sid in enumerate(summoner_ids)]

        def on_result(index: int, result: Optional[PlayerStats], error: Optional[BaseException]) -> None:
            if error is not None:
                stats.players_failed += 1
                log.error("[%s] Player #%d (%s) failed: %r", self.region, index, tasks[index].key, error)
                return
            stats.players_done += 1
            stats.add(result)

        await run_bounded(
            [lambda t=t: self.process_player(t) for t in tasks],
            self.settings.PLAYER_CONCURRENCY,
            on_result,
        )
        self._finish(stats)
        return stats

    def _finish(self, stats: CycleStats) -> None:
        stats.duration = round(time.time() - stats.started_at, 1)
        self.status.record(stats)
        log.info(
            "[%s] Main done: cycle=%d players=%d processed=%d player_errors=%d "
            "new=%d repeat=%d failed=%d match_errors=%d aborted=%s duration=%.1fs",
            self.region, stats.cycle, stats.players, stats.players_done, stats.players_failed,
            stats.new, stats.repeat, stats.failed, stats.errors, stats.aborted, stats.duration,
        )

    async def process_player(self, task: CrawlTask) -> PlayerStats:
        """
        All the work for one ladder player.

        Identity, match-list and store errors propagate (the player is
        abandoned until next cycle); per-match errors are only counted.
        """
        identity = await self.summoners.resolve_identity(task.key)
        match_ids = await self.api.get_match_ids(self.region, identity.puuid, self.settings.MATCH_ID_COUNT)

        player = PlayerStats()
        # Matchs traités séquentiellement, dans l'ordre renvoyé par l'API
        for position, match_id in enumerate(match_ids):
            job = CrawlTask(position, "match", match_id, self.region)
            try:
                resolution = await self.matches.resolve(job.key, load=False)
            except Exception as e:  # UpstreamError, StoreError…
                log.error("[%s] %s %d/%d %s: %r", job.region, job.kind, job.index + 1, len(match_ids), job.key, e)
                player.errors += 1
                continue
            if resolution.outcome is MatchOutcome.NEW:
                player.new += 1
            elif resolution.outcome is MatchOutcome.REPEAT:
                player.repeat += 1
            else:
                player.failed += 1

        log.debug(
            "%d %s %s %d (%d New, %d Old, %d Error, %d Failed)",
            task.index, self.region, identity.name, len(match_ids),
            player.new, player.repeat, player.errors, player.failed,
        )
        return player
