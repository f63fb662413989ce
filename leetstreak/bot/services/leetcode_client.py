"""Read-only client for the LeetCode daily challenge API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional

import aiohttp

from leetstreak.bot.services.exceptions import MemberFetchError
from leetstreak.bot.services.exceptions import SourceUnavailableError
from leetstreak.bot.services.models import ProblemInfo
from leetstreak.bot.services.models import Submission
from leetstreak.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class _FetchFailed(Exception):
    pass


class LeetCodeClient:
    """Fetches the daily challenge, problem metadata and user submissions.

    Every request has a bounded timeout and is retried a limited number of
    times with exponential backoff on connection errors and retryable status
    codes. Callers see one of two errors: SourceUnavailableError for the
    challenge itself, MemberFetchError for a single user's history.
    """

    HEADERS = {
        "User-Agent": "leetstreak-bot",
        "Accept": "application/json",
    }

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._base_url = self._settings.leetcode_api_base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=self._settings.leetcode_request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "LeetCodeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def get_daily_slug(self) -> str:
        """Get the title slug of today's daily challenge.

        Raises:
            SourceUnavailableError: If the slug cannot be fetched
        """
        logger.info("Fetching daily challenge slug")
        try:
            data = await self._get_json("/daily")
            slug = data["question"]["titleSlug"]
        except (_FetchFailed, KeyError, TypeError) as e:
            raise SourceUnavailableError(f"Failed to fetch daily challenge slug: {e}") from e

        if not slug:
            raise SourceUnavailableError("Daily challenge response has an empty slug")
        return slug

    async def get_problem(self, slug: str) -> ProblemInfo:
        """Get title, difficulty and other metadata for a problem.

        Raises:
            SourceUnavailableError: If the problem cannot be fetched or has no difficulty
        """
        try:
            data = await self._get_json(f"/problem/{slug}")
        except _FetchFailed as e:
            raise SourceUnavailableError(f"Failed to fetch problem {slug}: {e}") from e

        if not isinstance(data, dict) or not data.get("difficulty"):
            raise SourceUnavailableError(f"Problem {slug} is missing its difficulty")

        topics = [tag.get("name") for tag in data.get("topicTags") or [] if tag.get("name")]

        return ProblemInfo(
            slug=slug,
            title=data.get("title") or slug,
            difficulty=data["difficulty"],
            topics=topics,
            acceptance_rate=_acceptance_rate(data.get("stats")),
            url=data.get("url") or f"https://leetcode.com/problems/{slug}/",
        )

    async def get_recent_submissions(self, username: str) -> List[Submission]:
        """Get a user's most recent submissions, newest first.

        Raises:
            MemberFetchError: If the history cannot be fetched
        """
        logger.info(f"Fetching submissions for user: {username}")
        try:
            data = await self._get_json(
                f"/user/{username}/submissions",
                params={"limit": self._settings.leetcode_submission_limit},
            )
        except _FetchFailed as e:
            raise MemberFetchError(username, str(e)) from e

        if not isinstance(data, list):
            raise MemberFetchError(username, "unexpected response shape")

        submissions = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            timestamp = entry.get("timestamp")
            submissions.append(
                Submission(
                    challenge_slug=entry.get("titleSlug", ""),
                    status=entry.get("statusDisplay", ""),
                    timestamp=str(timestamp) if timestamp is not None else None,
                )
            )
        return submissions

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout, headers=self.HEADERS)
        return self._session

    async def _get_json(self, path: str, params: Optional[dict] = None) -> Any:
        attempts = self._settings.leetcode_max_retries + 1
        backoff = self._settings.leetcode_retry_backoff
        url = f"{self._base_url}{path}"
        last_error: Any = None

        for attempt in range(1, attempts + 1):
            try:
                async with self._get_session().get(url, params=params) as resp:
                    if resp.status < 400:
                        return await resp.json(content_type=None)

                    last_error = f"HTTP {resp.status}"
                    if resp.status not in RETRYABLE_STATUS_CODES:
                        break

            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                last_error = e

            if attempt < attempts:
                delay = backoff * (2 ** (attempt - 1))
                logger.warning(
                    f"Request to {path} failed (attempt {attempt}/{attempts}): {last_error}; "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

        logger.error(f"Request to {path} failed: {last_error}")
        raise _FetchFailed(str(last_error))


def _acceptance_rate(stats: Any) -> Optional[str]:
    if isinstance(stats, str):
        try:
            stats = json.loads(stats)
        except ValueError:
            return None
    if isinstance(stats, dict):
        return stats.get("acRate")
    return None
