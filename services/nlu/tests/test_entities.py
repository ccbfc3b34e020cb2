"""
Tests for custom (pattern / list) and system (Duckling) entity extraction.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from app.models import EntityDefinition, EntityOccurence
from app.pipelines.entities.duckling_extractor import DucklingEntityExtractor
from app.pipelines.entities.pattern_extractor import extract_list_entities, extract_pattern_entities


class TestPatternEntities:

    def test_all_matches_case_insensitive(self):
        order = EntityDefinition(name="order", type="pattern", pattern=r"ord-\d+")

        entities = extract_pattern_entities("ORD-12 and ord-7", [order])

        assert [(e.meta.source, e.meta.start, e.meta.end) for e in entities] == [
            ("ORD-12", 0, 6),
            ("ord-7", 11, 16),
        ]
        assert all(e.type == "pattern" and e.name == "order" for e in entities)
        assert entities[0].data.value == "ORD-12"

    def test_invalid_pattern_is_skipped(self):
        broken = EntityDefinition(name="broken", type="pattern", pattern="([")
        digits = EntityDefinition(name="digits", type="pattern", pattern=r"\d+")

        entities = extract_pattern_entities("call 42", [broken, digits])

        assert [e.name for e in entities] == ["digits"]

    def test_empty_matches_are_ignored(self):
        optional = EntityDefinition(name="maybe", type="pattern", pattern=r"x*")

        assert extract_pattern_entities("abc", [optional]) == []


class TestListEntities:

    @pytest.fixture
    def cities(self):
        return EntityDefinition(name="city", type="list", occurences=[
            EntityOccurence(name="New York", tags=["NYC", "big apple"]),
            EntityOccurence(name="York"),
            EntityOccurence(name="Paris"),
        ])

    def test_synonyms_resolve_to_canonical_value(self, cities):
        entities = extract_list_entities("flying from nyc to paris", [cities])

        assert [(e.meta.source, e.data.value) for e in entities] == [("nyc", "New York"), ("paris", "Paris")]
        assert all(e.type == "list" for e in entities)

    def test_whole_words_only(self, cities):
        assert extract_list_entities("comparison", [cities]) == []

    def test_longest_overlapping_match_wins(self, cities):
        entities = extract_list_entities("I love New York", [cities])

        assert [e.data.value for e in entities] == ["New York"]

    def test_results_ordered_by_position(self, cities):
        entities = extract_list_entities("york then the big apple", [cities])

        assert [e.data.value for e in entities] == ["York", "New York"]


def duckling_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestDuckling:

    @pytest.mark.asyncio
    async def test_disabled_returns_nothing(self):
        def handler(request):
            raise AssertionError("Duckling should not be called")

        extractor = DucklingEntityExtractor(enabled=False, client=duckling_client(handler))

        assert await extractor.extract("tomorrow at 5", "en") == []

    @pytest.mark.asyncio
    async def test_maps_results_to_system_entities(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[
                {
                    "body": "3 kg", "start": 4, "end": 8, "dim": "quantity", "latent": False,
                    "value": {"value": 3, "unit": "kilogram", "type": "value"},
                },
                {
                    "body": "tomorrow", "start": 9, "end": 17, "dim": "time", "latent": False,
                    "value": {"value": "2026-10-17T00:00:00.000Z", "grain": "day", "type": "value"},
                },
            ])

        extractor = DucklingEntityExtractor(url="http://duckling:8000/", tz="Europe/Paris", client=duckling_client(handler))

        entities = await extractor.extract("buy 3 kg tomorrow", "en")

        assert str(requests[0].url) == "http://duckling:8000/parse"
        form = parse_qs(requests[0].content.decode())
        assert form["text"] == ["buy 3 kg tomorrow"]
        assert form["lang"] == ["en"]
        assert form["tz"] == ["Europe/Paris"]

        quantity, time_entity = entities
        assert quantity.type == "system"
        assert quantity.name == "quantity"
        assert quantity.meta.provider == "duckling"
        assert (quantity.meta.start, quantity.meta.end, quantity.meta.source) == (4, 8, "3 kg")
        assert quantity.data.value == 3
        assert quantity.data.unit == "kilogram"
        assert time_entity.data.extras == {"grain": "day"}

    @pytest.mark.asyncio
    async def test_interval_values(self):
        def handler(request):
            return httpx.Response(200, json=[{
                "body": "from 2 to 4pm", "start": 0, "end": 13, "dim": "time",
                "value": {"type": "interval", "from": {"value": "14:00"}, "to": {"value": "16:00"}},
            }])

        extractor = DucklingEntityExtractor(client=duckling_client(handler))

        entity, = await extractor.extract("from 2 to 4pm", "en")

        assert entity.data.value == "14:00"
        assert entity.data.extras == {"from": "14:00", "to": "16:00"}

    @pytest.mark.asyncio
    async def test_server_errors_propagate(self):
        def handler(request):
            return httpx.Response(503)

        extractor = DucklingEntityExtractor(client=duckling_client(handler))

        with pytest.raises(httpx.HTTPStatusError):
            await extractor.extract("tomorrow", "en")
