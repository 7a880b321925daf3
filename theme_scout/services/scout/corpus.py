"""Theme corpus lookup with a TTL cache in front of the template catalog."""

from __future__ import annotations

import json
import logging
from typing import Protocol

from theme_scout.config import settings
from theme_scout.services.scout.types import CorpusEntry

logger = logging.getLogger(__name__)

CORPUS_CACHE_KEY_PREFIX = "theme-corpus"


class CacheStore(Protocol):
    """Key/value cache with expiry."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class ThemeTemplateCatalog(Protocol):
    """Source of theme template names."""

    async def list_template_names(self) -> list[str]: ...


class ThemeCorpusCache:
    """Resolve the candidate corpus for an asset kind."""

    def __init__(
        self,
        *,
        cache: CacheStore,
        catalog: ThemeTemplateCatalog,
        ttl_seconds: int | None = None,
    ) -> None:
        self._cache = cache
        self._catalog = catalog
        self.ttl_seconds = ttl_seconds or settings.theme_corpus_cache_ttl_seconds

    async def get_corpus(self, asset_kind: str) -> list[CorpusEntry]:
        """Return cached corpus for the kind, loading from the catalog on miss."""
        key = self.cache_key(asset_kind)
        cached = await self._cache.get(key)
        if cached is not None:
            try:
                return self._decode(cached)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                logger.warning(
                    "Discarding malformed cached theme corpus",
                    extra={"asset_kind": asset_kind, "cache_key": key},
                )

        names = await self._catalog.list_template_names()
        # Catalog rows carry no keyword metadata yet; title matching still applies.
        corpus = [CorpusEntry(title=name, keywords=()) for name in names]
        await self._cache.set(key, self._encode(corpus), self.ttl_seconds)
        logger.info(
            "Theme corpus loaded from catalog",
            extra={"asset_kind": asset_kind, "entries": len(corpus)},
        )
        return corpus

    @staticmethod
    def cache_key(asset_kind: str) -> str:
        return f"{CORPUS_CACHE_KEY_PREFIX}:{asset_kind}"

    @staticmethod
    def _encode(corpus: list[CorpusEntry]) -> str:
        return json.dumps(
            [{"title": entry.title, "keywords": list(entry.keywords)} for entry in corpus],
            separators=(",", ":"),
        )

    @staticmethod
    def _decode(payload: str) -> list[CorpusEntry]:
        data = json.loads(payload)
        if not isinstance(data, list):
            raise ValueError("Cached corpus must be a list")
        corpus: list[CorpusEntry] = []
        for item in data:
            title = item["title"]
            keywords = item.get("keywords") or []
            if not isinstance(title, str) or not isinstance(keywords, list):
                raise ValueError("Invalid cached corpus entry")
            corpus.append(CorpusEntry(title=title, keywords=tuple(str(k) for k in keywords)))
        return corpus
