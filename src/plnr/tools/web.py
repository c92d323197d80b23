"""Web search and code-context lookups against the Exa API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from plnr.config.secrets import fetch_secret
from plnr.tools.result import ToolResult

_log = logging.getLogger("plnr.tools.web")

EXA_BASE_URL = "https://api.exa.ai"
EXA_KEY_VAR = "EXA_API_KEY"
_SNIPPET_CHARS = 1500


class ExaClient:
    """Thin async client for the two Exa endpoints the tools use.

    A transport can be injected for tests (httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = EXA_BASE_URL,
        timeout: float = 20.0,
        num_results: int = 5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._num_results = num_results
        self._transport = transport

    def _key(self) -> str | None:
        return self._api_key or fetch_secret(EXA_KEY_VAR)

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {"x-api-key": self._key() or "", "Content-Type": "application/json"}
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(endpoint, json=payload, headers=headers)
            response.raise_for_status()
            return response.json()

    async def search(self, query: str) -> ToolResult:
        if not self._key():
            return ToolResult.fail(f"Web search unavailable: {EXA_KEY_VAR} is not set")

        payload = {
            "query": query,
            "numResults": self._num_results,
            "contents": {"text": {"maxCharacters": _SNIPPET_CHARS}},
        }
        try:
            data = await self._post("/search", payload)
        except (httpx.HTTPError, ValueError) as e:
            _log.debug("Exa search failed: %s", e)
            return ToolResult.fail(f"Web search failed: {e}")

        results = (data.get("results") or [])[: self._num_results]
        if not results:
            return ToolResult.ok(f'No matches found on the web for "{query}"')

        blocks = []
        for i, item in enumerate(results, 1):
            title = item.get("title") or item.get("url") or "Untitled"
            text = (item.get("text") or "").strip()
            blocks.append(f"{i}. {title}\n   {item.get('url', '')}\n\n{text}".rstrip())
        return ToolResult.ok(f'Web results for "{query}":\n\n' + "\n\n---\n\n".join(blocks))

    async def code_context(self, query: str) -> ToolResult:
        if not self._key():
            return ToolResult.fail(f"Code context unavailable: {EXA_KEY_VAR} is not set")

        try:
            data = await self._post("/context", {"query": query, "tokensNum": "dynamic"})
        except (httpx.HTTPError, ValueError) as e:
            _log.debug("Exa context failed: %s", e)
            return ToolResult.fail(f"Code context failed: {e}")

        content = data.get("response")
        if not content:
            return ToolResult.ok(f'No matches found for code context "{query}"')
        return ToolResult.ok(f'Code context for "{query}":\n\n{content}')
