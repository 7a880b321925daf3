"""Read access to the theme template catalog."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from theme_scout.models.theme_template import ThemeTemplate


class SqlThemeTemplateCatalog:
    """Distinct template names, alphabetical."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_template_names(self) -> list[str]:
        result = await self.session.execute(
            select(ThemeTemplate.name).distinct().order_by(ThemeTemplate.name)
        )
        return [str(name) for name in result.scalars().all() if name]
