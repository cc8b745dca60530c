from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from pubmed_search.api.results import SearchFailure, SearchOutcome, SearchSuccess, SetupRequired
from pubmed_search.config import ConfigStore, resolve_api_key
from pubmed_search.logging import mask_secret

logger = logging.getLogger(__name__)

VALYU_API_BASE = "https://api.valyu.ai/v1"
SEARCH_PATH = "/search"
SEARCH_TYPE = "proprietary"
PUBMED_SOURCE = "valyu/valyu-pubmed"
DEFAULT_LIMIT = 10


def build_search_payload(query: str, limit: int | None) -> dict[str, Any]:
    return {
        "query": query,
        "search_type": SEARCH_TYPE,
        "included_sources": [PUBMED_SOURCE],
        "limit": limit,
    }


def build_headers(api_key: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "x-api-key": api_key}


class SearchClient:
    """Single-shot client for the Valyu PubMed search endpoint.

    ``search`` never raises: a missing key, a transport error, an undecodable
    body and a non-2xx response all come back as envelopes.
    """

    def __init__(
        self,
        store: ConfigStore,
        *,
        base_url: str = VALYU_API_BASE,
        transport: httpx.BaseTransport | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._store = store
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._environ = environ

    def search(self, query: str, limit: int | None = DEFAULT_LIMIT) -> SearchOutcome:
        api_key = resolve_api_key(self._store, environ=self._environ)
        if not api_key:
            logger.info("No API key available; setup required")
            return SetupRequired()

        url = f"{self._base_url}{SEARCH_PATH}"
        logger.debug(
            "Sending search request",
            extra={"url": url, "limit": limit, "api_key": mask_secret(api_key)},
        )
        try:
            with httpx.Client(transport=self._transport, timeout=None) as client:
                response = client.post(
                    url,
                    json=build_search_payload(query, limit),
                    headers=build_headers(api_key),
                )
                data = response.json()
        except Exception as exc:
            logger.warning("Search request failed", extra={"error": str(exc)})
            return SearchFailure(error=str(exc))

        if data is None:
            logger.warning(
                "Search response body is JSON null", extra={"status": response.status_code}
            )
            return SearchFailure(error="Response body is JSON null")

        fields = data if isinstance(data, dict) else {}
        if not response.is_success:
            error = fields.get("detail") or fields.get("message") or f"HTTP {response.status_code}"
            logger.warning(
                "Search API returned an error",
                extra={"status": response.status_code, "error": error},
            )
            return SearchFailure(error=error, status=response.status_code)

        results = fields.get("results")
        if not isinstance(results, list):
            results = []
        outcome = SearchSuccess(query=query, results=results, cost=fields.get("cost") or 0)
        logger.info(
            "Search completed",
            extra={"result_count": outcome.result_count, "cost": outcome.cost},
        )
        return outcome


__all__ = [
    "DEFAULT_LIMIT",
    "PUBMED_SOURCE",
    "SEARCH_TYPE",
    "SearchClient",
    "VALYU_API_BASE",
    "build_headers",
    "build_search_payload",
]
