"""External legal-source search - Indian Kanoon API.

Indian Kanoon: searchable index of Indian case law, statutes and tribunal orders.
API Docs: https://api.indiankanoon.org/documentation/

Used by the grounding agent as the primary source of authority. Every call
returns a ``Result`` so the agent can degrade to general-knowledge synthesis.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import aiohttp

from .utils import FailureKind, Result, strip_html

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class LegalAuthority:
    """A judgment or statute returned by the search index."""
    external_id: str
    title: str
    court: str
    url: str
    snippet: Optional[str] = None

    @property
    def citation_ref(self) -> str:
        return f"Indian Kanoon ID: {self.external_id}"

    def to_dict(self) -> dict:
        return {
            "external_id": self.external_id,
            "title": self.title,
            "court": self.court,
            "url": self.url,
            "snippet": self.snippet,
        }


# =============================================================================
# Indian Kanoon API
# =============================================================================

class IndianKanoonClient:
    """Client for the Indian Kanoon REST API.

    Both endpoints are POST and authenticated with ``Authorization: Token <key>``.
    Without a token the client reports itself as unconfigured and the grounding
    agent skips primary-source lookup entirely.
    """

    BASE_URL = "https://api.indiankanoon.org"
    DOC_URL = "https://indiankanoon.org/doc/{tid}/"
    DEFAULT_COURT = "Indian Court"
    FULL_TEXT_LIMIT = 15000

    def __init__(
        self,
        api_token: Optional[str] = None,
        timeout: float = 30.0,
        base_url: str = BASE_URL,
    ):
        self.api_token = api_token
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_token)

    def _get_headers(self) -> dict:
        return {
            "Authorization": f"Token {self.api_token}",
            "Accept": "application/json",
            "User-Agent": "PolyPact/1.0 (Legal Research)",
        }

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._get_headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    @classmethod
    def parse_docs(cls, data: dict, max_results: int = 5) -> list[LegalAuthority]:
        """Map a search response body to authorities."""
        results = []
        for item in (data.get("docs") or [])[:max_results]:
            tid = str(item.get("tid", ""))
            if not tid:
                continue
            results.append(LegalAuthority(
                external_id=tid,
                title=item.get("title") or f"Document {tid}",
                court=item.get("docsource") or cls.DEFAULT_COURT,
                url=cls.DOC_URL.format(tid=tid),
                snippet=item.get("headline") or item.get("snippet"),
            ))
        return results

    async def search(self, query: str, max_results: int = 5) -> Result[list[LegalAuthority]]:
        """Search judgments and statutes.

        Args:
            query: Free-text query (jurisdiction terms may be appended by caller)
            max_results: Maximum authorities to return

        Returns:
            Result with the top authorities (possibly empty on zero hits)
        """
        if not self.configured:
            return Result.failure(FailureKind.TRANSPORT, "INDIAN_KANOON_API_KEY not configured")

        params = {"formInput": query, "pagenum": "0"}
        url = f"{self.base_url}/search/?{urlencode(params)}"
        logger.info(f"Indian Kanoon search: {query[:50]}...")

        try:
            session = await self._ensure_session()
            async with session.post(url) as response:
                if response.status != 200:
                    logger.warning(f"Indian Kanoon API error: {response.status}")
                    return Result.failure(FailureKind.TRANSPORT, f"HTTP {response.status}")
                data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning(f"Indian Kanoon search timed out after {self.timeout}s")
            return Result.failure(FailureKind.TIMEOUT, "search timed out")
        except Exception as e:
            logger.error(f"Indian Kanoon search failed: {e}")
            return Result.failure(FailureKind.TRANSPORT, str(e))

        results = self.parse_docs(data or {}, max_results)
        logger.info(f"Indian Kanoon found {len(results)} authorities")
        return Result.success(results)

    async def fetch_full_text(self, external_id: str, max_chars: int = FULL_TEXT_LIMIT) -> Result[str]:
        """Fetch a document's full text, HTML stripped and truncated."""
        if not self.configured:
            return Result.failure(FailureKind.TRANSPORT, "INDIAN_KANOON_API_KEY not configured")

        url = f"{self.base_url}/doc/{external_id}/"
        logger.info(f"Fetching full text for doc {external_id}")

        try:
            session = await self._ensure_session()
            async with session.post(url) as response:
                if response.status != 200:
                    logger.warning(f"Indian Kanoon doc fetch error: {response.status}")
                    return Result.failure(FailureKind.TRANSPORT, f"HTTP {response.status}")
                data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning(f"Indian Kanoon doc fetch timed out after {self.timeout}s")
            return Result.failure(FailureKind.TIMEOUT, "doc fetch timed out")
        except Exception as e:
            logger.error(f"Indian Kanoon doc fetch failed: {e}")
            return Result.failure(FailureKind.TRANSPORT, str(e))

        html = (data or {}).get("doc")
        if not html:
            return Result.failure(FailureKind.PARSE, f"No document body for {external_id}")
        return Result.success(strip_html(html)[:max_chars])
