"""Solvr search-and-learn API client."""

from __future__ import annotations

from typing import Any, Dict, List

import requests

from clawfleet.domain.errors import CollaboratorUnavailable
from clawfleet.ports.collaborators import KnowledgeHint, KnowledgeSource


class SolvrKnowledgeClient(KnowledgeSource):
    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.solvr.dev/v1",
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def search(self, query: str, *, limit: int = 3) -> List[KnowledgeHint]:
        if not query.strip():
            return []
        headers = {"Authorization": f"Bearer {self._api_key}", "Accept": "application/json"}
        try:
            response = self._session.get(
                f"{self._api_url}/problems/search",
                params={"q": query},
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise CollaboratorUnavailable("solvr", str(exc)) from exc
        if response.status_code != 200:
            raise CollaboratorUnavailable("solvr", f"search failed with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise CollaboratorUnavailable("solvr", "search returned invalid JSON") from exc
        return [self._to_hint(item) for item in self._items(payload)[:limit]]

    def _items(self, payload: Any) -> List[Dict[str, Any]]:
        if isinstance(payload, dict):
            if payload.get("error"):
                raise CollaboratorUnavailable("solvr", str(payload["error"]))
            payload = payload.get("data") or payload.get("problems") or payload.get("results") or []
        if not isinstance(payload, list):
            raise CollaboratorUnavailable("solvr", "unexpected search payload")
        return [item for item in payload if isinstance(item, dict)]

    def _to_hint(self, item: Dict[str, Any]) -> KnowledgeHint:
        approach = ""
        for candidate in item.get("approaches") or []:
            if isinstance(candidate, dict) and candidate.get("status") in ("worked", "succeeded"):
                approach = str(candidate.get("method") or candidate.get("angle") or "")
                break
        return KnowledgeHint(
            problem_id=str(item.get("id", "")),
            title=str(item.get("title", "")),
            approach=approach,
            score=float(item.get("score") or 0.0),
        )


__all__ = ["SolvrKnowledgeClient"]
