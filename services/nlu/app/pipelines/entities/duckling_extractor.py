"""System entities (dates, numbers, amounts...) from a Duckling server"""

import time
from typing import Any, Dict, List, Optional

import httpx
import structlog

from ...models import Entity, EntityData, EntityMeta
from ..base import EntityExtractor

logger = structlog.get_logger(__name__)


class DucklingEntityExtractor(EntityExtractor):
    """Client of a Duckling `/parse` endpoint"""

    def __init__(
        self,
        enabled: bool = True,
        url: str = "http://duckling:8000",
        timeout: float = 2.0,
        tz: str = "UTC",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.enabled = enabled
        self.url = url.rstrip("/")
        self.tz = tz
        self._timeout = timeout
        self._client = client

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def extract(self, text: str, language: str) -> List[Entity]:
        if not self.enabled:
            return []

        client = await self.get_client()
        response = await client.post(
            f"{self.url}/parse",
            data={
                "text": text,
                "lang": language,
                "tz": self.tz,
                "reftime": str(int(time.time() * 1000)),
            },
        )
        response.raise_for_status()

        return [self._map_duck_to_entity(duck) for duck in response.json()]

    def _map_duck_to_entity(self, duck: Dict[str, Any]) -> Entity:
        value, unit, extras = self._get_dimension_data(duck)
        return Entity(
            name=duck["dim"],
            type="system",
            meta=EntityMeta(
                confidence=1.0,
                provider="duckling",
                source=duck.get("body", ""),
                start=duck["start"],
                end=duck["end"],
                raw=duck,
            ),
            data=EntityData(value=value, unit=unit, extras=extras),
        )

    @staticmethod
    def _get_dimension_data(duck: Dict[str, Any]):
        """(value, unit, extras) of a Duckling result"""
        payload = duck.get("value") or {}
        dim = duck.get("dim", "")

        if payload.get("type") == "interval":
            start = payload.get("from") or {}
            end = payload.get("to") or {}
            return start.get("value", end.get("value")), dim, {"from": start.get("value"), "to": end.get("value")}

        if dim == "duration":
            normalized = payload.get("normalized") or {}
            return normalized.get("value", payload.get("value")), normalized.get("unit", payload.get("unit", dim)), {}

        extras = {}
        if "grain" in payload:
            extras["grain"] = payload["grain"]
        if "product" in payload:
            extras["product"] = payload["product"]

        return payload.get("value"), payload.get("unit") or dim, extras
