from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

from cms.config import settings


# --- Admin / Category (read-only references) ---

class AdminInfo(BaseModel):
    id: int
    username: str
    nickname: str | None = None
    avatar: str | None = None
    email: str | None = None
    model_config = ConfigDict(from_attributes=True)


class CategoryInfo(BaseModel):
    id: int
    name: str
    description: str | None = None
    sort_order: int = 0
    model_config = ConfigDict(from_attributes=True)


# --- Article requests ---

class ArticleParams(BaseModel):
    """Payload for create and (full) update."""

    title: str = Field(min_length=1, max_length=300)
    content: str
    description: str | None = Field(None, max_length=500)
    img_url: str | None = Field(None, max_length=500)
    seo_keyword: str | None = Field(None, max_length=300)
    admin_id: int | None = None
    category_id: int | None = None
    status: int | None = None  # falsy -> ArticleStatus.NORMAL
    sort_order: int = 0


class ArticleListParams(BaseModel):
    category_id: int | None = None
    keyword: str | None = None
    status: int | None = None
    page: int = Field(1, ge=1)
    page_size: int = Field(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)


class ArticleBrowseUpdate(BaseModel):
    browse: int = Field(ge=0)


# --- Article responses ---

class ArticleResponse(BaseModel):
    id: int
    title: str
    description: str | None
    img_url: str | None
    content: str
    seo_keyword: str | None
    status: int
    sort_order: int
    browse: int
    created_at: datetime | None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    admin_id: int | None = None
    category_id: int | None = None
    admin_info: AdminInfo | None = None
    category_info: CategoryInfo | None = None
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleResponse):
    comment_count: int = 0


# --- Pagination ---

class PaginationMeta(BaseModel):
    current_page: int
    per_page: int
    count: int
    total: int
    total_pages: int


class ArticleListResponse(BaseModel):
    data: list[ArticleResponse]
    meta: PaginationMeta
