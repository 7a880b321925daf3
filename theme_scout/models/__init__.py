"""SQLAlchemy database models."""
from dotenv import load_dotenv
from theme_scout.models.asset import Asset, Card, Chunk, Theme
from theme_scout.models.base import Base
from theme_scout.models.suggested_theme import SuggestedTheme
from theme_scout.models.theme_template import ThemeTemplate
from theme_scout.models.usage_meter import UsageMeter


load_dotenv()

__all__ = [
    "Base",
    "Asset",
    "Theme",
    "Card",
    "Chunk",
    "ThemeTemplate",
    "SuggestedTheme",
    "UsageMeter",
]
