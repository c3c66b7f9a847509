# riot/client.py

import asyncio
import logging
from collections import deque
from typing import Any, Dict, List, Optional
import time

import aiohttp

# Mapping plateforme → région globale pour /tft/match/v1
REGION_GROUPS = {
    "euw1": "europe", "eun1": "europe", "ru": "europe", "tr1": "europe",
    "kr": "asia",   "jp1": "asia",
    "na1": "americas", "br1": "americas", "la1": "americas", "la2": "americas",
    "oc1": "sea",
}

# Ligues non paginées
APEX_ROUTES = {
    "CHALLENGER": "challenger",
    "GRANDMASTER": "grandmaster",
    "MASTER": "master",
}

log = logging.getLogger(__name__)


class RiotAPIError(Exception):
    """Base exception for Riot API errors (transient from the crawler's point of view)."""
    pass


class RateLimitError(RiotAPIError):
    """Raised when rate limit is exceeded and retry fails."""
    pass


def region_group(region: str) -> str:
    """Regional routing value used by the match endpoints."""
    return REGION_GROUPS.get(region.lower(), "americas")


class RiotClient:
    """Async Riot TFT API client with built-in rate limiting and error handling."""

    def __init__(self, api_key: str, quota_max: int = 100, quota_window: float = 120):
        self.api_key = api_key
        self._session: Optional[aiohttp.ClientSession] = None

        # Pour throttling : timestamps des dernières requêtes
        self._req_times: deque = deque()
        # Quota dev Riot par défaut : 100 reqs / 120 s
        self._quota_window = quota_window    # secondes
        self._quota_max = quota_max          # nombre max de requêtes par window
        self._lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"X-Riot-Token": self.api_key},
                timeout=aiohttp.ClientTimeout(total=10)
            )
        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _throttle(self):
        """Async rate limiting - keeps the whole process under the API quota."""
        async with self._lock:
            now = time.time()

            # Purge des requêtes trop vieilles
            while self._req_times and self._req_times[0] <= now - self._quota_window:
                self._req_times.popleft()

            if len(self._req_times) >= self._quota_max:
                # On attend que la plus vieille req sorte de la fenêtre
                wait = self._quota_window - (now - self._req_times[0])
                log.debug(f"Rate limit reached, waiting {wait:.1f}s")
                await asyncio.sleep(wait)
                self._req_times.popleft()

            self._req_times.append(time.time())

    async def _request(self, url: str, max_retries: int = 3) -> Any:
        """
        Make an async HTTP request with retry logic.

        Args:
            url: The full URL to request
            max_retries: Maximum number of attempts for 429/5xx/network failures

        Returns:
            JSON response from the API, or None on 404

        Raises:
            RateLimitError: When rate limit is exceeded after retries
            RiotAPIError: For other API and network errors
        """
        await self._throttle()
        session = await self._get_session()

        for attempt in range(max_retries):
            try:
                async with session.get(url) as resp:
                    if resp.status == 429:
                        retry_after = int(resp.headers.get("Retry-After", "1")) + 1
                        if attempt < max_retries - 1:
                            log.warning(f"429 Rate limited, retrying after {retry_after}s (attempt {attempt + 1}/{max_retries})")
                            await asyncio.sleep(retry_after)
                            continue
                        else:
                            raise RateLimitError(f"Rate limit exceeded after {max_retries} attempts")

                    if resp.status == 404:
                        log.debug(f"404 Not Found: {url}")
                        return None

                    resp.raise_for_status()
                    return await resp.json()

            except aiohttp.ClientResponseError as e:
                if e.status >= 500 and attempt < max_retries - 1:
                    wait = 2 ** attempt  # Exponential backoff
                    log.warning(f"Server error {e.status}, retrying in {wait}s")
                    await asyncio.sleep(wait)
                    continue
                raise RiotAPIError(f"API error {e.status}: {e.message}") from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < max_retries - 1:
                    wait = 2 ** attempt
                    log.warning(f"Network error, retrying in {wait}s: {e!r}")
                    await asyncio.sleep(wait)
                    continue
                raise RiotAPIError(f"Network error: {e!r}") from e

        raise RiotAPIError(f"Failed after {max_retries} attempts")

    # ── tft-league-v1 ────────────────────────────────────────────────────────
    async def get_apex_league(self, region: str, tier: str) -> Optional[Dict[str, Any]]:
        """Get the full (unpaginated) CHALLENGER / GRANDMASTER / MASTER league."""
        route = APEX_ROUTES[tier.upper()]
        url = f"https://{region}.api.riotgames.com/tft/league/v1/{route}"
        return await self._request(url)

    async def get_league_entries(self, region: str, tier: str, division: str, page: int = 1) -> List[Dict[str, Any]]:
        """Get one page of league entries for a tier + division."""
        url = (
            f"https://{region}.api.riotgames.com"
            f"/tft/league/v1/entries/{tier.upper()}/{division.upper()}?page={page}"
        )
        result = await self._request(url)
        return result if result is not None else []

    async def get_league_entries_by_summoner(self, region: str, summoner_id: str) -> Optional[List[Dict[str, Any]]]:
        """Get ranked entries for a summoner (None if the summoner is unknown)."""
        url = f"https://{region}.api.riotgames.com/tft/league/v1/entries/by-summoner/{summoner_id}"
        return await self._request(url)

    # ── tft-summoner-v1 ──────────────────────────────────────────────────────
    async def get_summoner_by_id(self, region: str, summoner_id: str) -> Optional[Dict[str, Any]]:
        """Get summoner information by encrypted summoner id."""
        url = f"https://{region}.api.riotgames.com/tft/summoner/v1/summoners/{summoner_id}"
        return await self._request(url)

    async def get_summoner_by_puuid(self, region: str, puuid: str) -> Optional[Dict[str, Any]]:
        """Get summoner information by PUUID."""
        url = f"https://{region}.api.riotgames.com/tft/summoner/v1/summoners/by-puuid/{puuid}"
        return await self._request(url)

    # ── tft-match-v1 ─────────────────────────────────────────────────────────
    async def get_match_ids(self, region: str, puuid: str, count: int = 10) -> List[str]:
        """Get list of recent match IDs for a player."""
        url = (
            f"https://{region_group(region)}.api.riotgames.com"
            f"/tft/match/v1/matches/by-puuid/{puuid}/ids?start=0&count={count}"
        )
        result = await self._request(url)
        return result if result is not None else []

    async def get_match_by_id(self, region: str, match_id: str) -> Optional[Dict[str, Any]]:
        """Get detailed match information by match ID."""
        url = f"https://{region_group(region)}.api.riotgames.com/tft/match/v1/matches/{match_id}"
        return await self._request(url)
