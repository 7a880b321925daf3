"""Unit tests for asset document extraction."""

from __future__ import annotations

from types import SimpleNamespace

from theme_scout.repositories.asset_repository import build_content_tree
from theme_scout.services.scout.content_extractor import extract_asset_content
from theme_scout.services.scout.types import AssetContentTree, CardNode, ChunkNode, ThemeNode


def _tree(description: str | None) -> AssetContentTree:
    return AssetContentTree(
        id="asset-1",
        name="Tesla",
        description=description,
        kind="REGULAR",
        user_id="user-1",
        themes=(
            ThemeNode(
                id="theme-1",
                name="Manufacturing",
                cards=(
                    CardNode(
                        id="card-1",
                        title="Gigafactory",
                        chunks=(
                            ChunkNode(id="chunk-1", content="First chunk."),
                            ChunkNode(id="chunk-2", content="Second chunk."),
                        ),
                    ),
                ),
            ),
            ThemeNode(
                id="theme-2",
                name="Energy",
                cards=(
                    CardNode(id="card-2", title="Empty card"),
                    CardNode(
                        id="card-3",
                        title="Storage",
                        chunks=(ChunkNode(id="chunk-3", content="Third chunk."),),
                    ),
                ),
            ),
        ),
    )


def test_extract_joins_sections_in_tree_order() -> None:
    document = extract_asset_content(_tree("EV maker"))

    assert document == "Tesla\n\nEV maker\n\nFirst chunk.\n\nSecond chunk.\n\nThird chunk."


def test_extract_skips_missing_description() -> None:
    assert extract_asset_content(_tree(None)).startswith("Tesla\n\nFirst chunk.")
    assert extract_asset_content(_tree("")).startswith("Tesla\n\nFirst chunk.")


def test_extract_asset_without_themes_is_just_the_header() -> None:
    tree = AssetContentTree(
        id="asset-2",
        name="Solo",
        description="No research yet",
        kind="REGULAR",
        user_id="user-1",
    )

    assert extract_asset_content(tree) == "Solo\n\nNo research yet"


def test_build_content_tree_snapshots_orm_rows() -> None:
    asset = SimpleNamespace(
        id="asset-1",
        name="Tesla",
        description=None,
        kind="REGULAR",
        user_id="user-1",
        themes=[
            SimpleNamespace(
                id="theme-1",
                name="Robotics",
                cards=[
                    SimpleNamespace(
                        id="card-1",
                        title="Optimus",
                        chunks=[SimpleNamespace(id="chunk-1", content="Humanoid robot.")],
                    )
                ],
            )
        ],
    )

    tree = build_content_tree(asset)

    assert tree.theme_names == ["Robotics"]
    assert tree.themes[0].cards[0].chunks[0].content == "Humanoid robot."
    assert extract_asset_content(tree) == "Tesla\n\nHumanoid robot."
