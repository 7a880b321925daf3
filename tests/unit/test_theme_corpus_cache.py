"""Unit tests for the theme corpus cache."""

from __future__ import annotations

import json

import pytest

from theme_scout.services.scout.corpus import ThemeCorpusCache
from theme_scout.services.scout.types import CorpusEntry


class _InMemoryCache:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})
        self.set_calls: list[tuple[str, str, int]] = []

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.values[key] = value
        self.set_calls.append((key, value, ttl_seconds))


class _FakeCatalog:
    def __init__(self, names: list[str]) -> None:
        self.names = names
        self.calls = 0

    async def list_template_names(self) -> list[str]:
        self.calls += 1
        return list(self.names)


@pytest.mark.asyncio
async def test_cache_miss_loads_catalog_and_stores_with_ttl() -> None:
    cache = _InMemoryCache()
    catalog = _FakeCatalog(["AI", "Robotics"])
    corpus_cache = ThemeCorpusCache(cache=cache, catalog=catalog, ttl_seconds=3600)

    corpus = await corpus_cache.get_corpus("REGULAR")

    assert corpus == [CorpusEntry(title="AI"), CorpusEntry(title="Robotics")]
    assert catalog.calls == 1
    assert cache.set_calls[0][0] == "theme-corpus:REGULAR"
    assert cache.set_calls[0][2] == 3600


@pytest.mark.asyncio
async def test_cache_hit_skips_catalog() -> None:
    cached = json.dumps([{"title": "Robotics", "keywords": ["robot", "automation"]}])
    cache = _InMemoryCache({"theme-corpus:REGULAR": cached})
    catalog = _FakeCatalog(["AI"])
    corpus_cache = ThemeCorpusCache(cache=cache, catalog=catalog)

    corpus = await corpus_cache.get_corpus("REGULAR")

    assert corpus == [CorpusEntry(title="Robotics", keywords=("robot", "automation"))]
    assert catalog.calls == 0
    assert cache.set_calls == []


@pytest.mark.asyncio
async def test_cache_is_keyed_by_asset_kind() -> None:
    cache = _InMemoryCache()
    catalog = _FakeCatalog(["AI"])
    corpus_cache = ThemeCorpusCache(cache=cache, catalog=catalog)

    await corpus_cache.get_corpus("REGULAR")
    await corpus_cache.get_corpus("REGULAR")
    await corpus_cache.get_corpus("PORTFOLIO")

    assert catalog.calls == 2
    assert set(cache.values) == {"theme-corpus:REGULAR", "theme-corpus:PORTFOLIO"}


@pytest.mark.asyncio
async def test_malformed_cached_value_is_treated_as_miss() -> None:
    cache = _InMemoryCache({"theme-corpus:REGULAR": "{not json"})
    catalog = _FakeCatalog(["Robotics"])
    corpus_cache = ThemeCorpusCache(cache=cache, catalog=catalog)

    corpus = await corpus_cache.get_corpus("REGULAR")

    assert corpus == [CorpusEntry(title="Robotics")]
    assert catalog.calls == 1
    assert json.loads(cache.values["theme-corpus:REGULAR"]) == [
        {"title": "Robotics", "keywords": []}
    ]


@pytest.mark.asyncio
async def test_empty_catalog_caches_empty_corpus() -> None:
    cache = _InMemoryCache()
    corpus_cache = ThemeCorpusCache(cache=cache, catalog=_FakeCatalog([]))

    assert await corpus_cache.get_corpus("REGULAR") == []
    assert cache.values["theme-corpus:REGULAR"] == "[]"
