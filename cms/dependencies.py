from fastapi import Query

from cms.config import settings
from cms.schemas import ArticleListParams


class ArticleListQuery:
    """
    FastAPI dependency parsing the article list query string.

    Usage in a router::

        @router.get("")
        async def list_articles(query: ArticleListQuery = Depends()):
            params = query.params

    ``page_size`` is bounded by ``settings.MAX_PAGE_SIZE``.
    """

    def __init__(
        self,
        category_id: int | None = Query(None, ge=1, description="Only articles in this category."),
        keyword: str | None = Query(None, max_length=100, description="Substring of title or content."),
        status: int | None = Query(None, ge=0, description="Only articles with this status."),
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=settings.MAX_PAGE_SIZE,
            description="Number of articles per page.",
        ),
    ) -> None:
        self.category_id = category_id
        self.keyword = keyword or None
        self.status = status
        self.page = page
        self.page_size = page_size

    @property
    def params(self) -> ArticleListParams:
        return ArticleListParams(
            category_id=self.category_id,
            keyword=self.keyword,
            status=self.status,
            page=self.page,
            page_size=self.page_size,
        )
