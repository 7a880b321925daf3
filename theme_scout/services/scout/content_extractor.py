"""Flatten an asset research tree into one scoring document."""

from __future__ import annotations

from theme_scout.services.scout.types import AssetContentTree

SECTION_SEPARATOR = "\n\n"


def extract_asset_content(asset: AssetContentTree) -> str:
    """Join asset name, description and every chunk in stored tree order."""
    sections: list[str] = [asset.name]
    if asset.description:
        sections.append(asset.description)

    for theme in asset.themes:
        for card in theme.cards:
            for chunk in card.chunks:
                sections.append(chunk.content)

    return SECTION_SEPARATOR.join(sections)
