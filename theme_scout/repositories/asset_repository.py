"""Repository for loading asset research trees."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from theme_scout.models.asset import Asset, Card, Theme
from theme_scout.services.scout.types import AssetContentTree, CardNode, ChunkNode, ThemeNode

logger = logging.getLogger(__name__)


class AssetRepository(Protocol):
    async def get_asset_with_content_tree(self, asset_id: str) -> AssetContentTree | None: ...


def build_content_tree(asset: Asset) -> AssetContentTree:
    """Snapshot an ORM asset with loaded children into immutable nodes."""
    return AssetContentTree(
        id=str(asset.id),
        name=asset.name,
        description=asset.description,
        kind=asset.kind,
        user_id=asset.user_id,
        themes=tuple(
            ThemeNode(
                id=str(theme.id),
                name=theme.name,
                cards=tuple(
                    CardNode(
                        id=str(card.id),
                        title=card.title,
                        chunks=tuple(
                            ChunkNode(id=str(chunk.id), content=chunk.content)
                            for chunk in card.chunks
                        ),
                    )
                    for card in theme.cards
                ),
            )
            for theme in asset.themes
        ),
    )


class SqlAssetRepository:
    """Reads assets with themes, cards and chunks eagerly loaded."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_asset_with_content_tree(self, asset_id: str) -> AssetContentTree | None:
        result = await self.session.execute(
            select(Asset)
            .where(Asset.id == asset_id)
            .options(
                selectinload(Asset.themes)
                .selectinload(Theme.cards)
                .selectinload(Card.chunks)
            )
        )
        asset = result.scalar_one_or_none()
        if asset is None:
            logger.info("Asset not found", extra={"asset_id": asset_id})
            return None
        return build_content_tree(asset)
