# tftstat/services/ladder.py
# ============================================================================
# Liste des joueurs à crawler : parcourt la table (tier, division) configurée
# Apex (CHALLENGER / GRANDMASTER / MASTER) : une seule liste non paginée
# Autres : pages 1, 2, 3… jusqu'à une page vide
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence, Tuple

from tftstat.riot.client import APEX_ROUTES, RiotAPIError, RiotClient

log = logging.getLogger(__name__)


class LadderEnumerationError(Exception):
    """A (tier, division) could not be listed within the retry budget."""

    def __init__(self, region: str, tier: str, division: str, attempts: int):
        super().__init__(f"[{region}] {tier} {division}: gave up after {attempts} attempts")
        self.region = region
        self.tier = tier
        self.division = division
        self.attempts = attempts


class LadderEnumerator:
    def __init__(self, api: RiotClient, region: str, targets: Sequence[Tuple[str, str]],
                 max_attempts: int = 5, retry_delay: float = 20.0):
        self.api = api
        self.region = region
        self.targets = list(targets)
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def league_entries(self, tier: str, division: str) -> List[str]:
        """Summoner ids of one (tier, division), all pages concatenated."""
        if tier.upper() in APEX_ROUTES:
            league = await self.api.get_apex_league(self.region, tier)
            if league is None:
                return []
            return [e["summonerId"] for e in league.get("entries", [])]

        ids: List[str] = []
        page = 1
        while True:
            entries = await self.api.get_league_entries(self.region, tier, division, page)
            if not entries:
                break
            ids.extend(e["summonerId"] for e in entries)
            page += 1
        return ids

    async def _league_entries_with_retry(self, tier: str, division: str) -> List[str]:
        # Une nouvelle tentative reprend la pagination depuis la page 1
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.league_entries(tier, division)
            except (RiotAPIError, KeyError, TypeError) as e:
                log.error(f"Error get_league_entries {tier} {division} ({attempt}/{self.max_attempts}): {e!r}")
                if attempt == self.max_attempts:
                    break
                await asyncio.sleep(self.retry_delay)
        raise LadderEnumerationError(self.region, tier, division, self.max_attempts)

    async def top_players(self) -> List[str]:
        """
        Summoner ids across every configured (tier, division), in table order.

        Duplicates are kept. Raises LadderEnumerationError when one pair
        exhausts its retries: an incomplete ladder aborts the cycle.
        """
        ret: List[str] = []
        for tier, division in self.targets:
            entries = await self._league_entries_with_retry(tier, division)
            log.info(f"{self.region} {tier} {division}\t{len(entries)}")
            ret.extend(entries)
        return ret
