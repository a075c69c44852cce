"""
Article service — business logic for the Article aggregate.

Design notes
------------
- Every public function returns a ``Result``: the serialised article (or
  list payload) on success, a ``ServiceError`` tagged with an
  ``ErrorKind`` otherwise.  Nothing here raises for an expected failure.
- Soft-deleted rows (``deleted_at`` set) are invisible to every lookup.
- Admin and Category references are optional.  An id that matches no
  row is ignored and the article keeps its previous reference (``None``
  on create).
- Relationships are ``lazy="noload"`` on the model; reads use
  ``joinedload`` for the two many-to-one references.  Re-reads after a
  flush use ``populate_existing`` so server-generated columns
  (``created_at``, ``updated_at``) are fetched from the database.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.  A failed
  flush rolls the session back before the failure is returned.
- Writes queue their detail-cache invalidation on the session;
  ``cms.database.commit_session`` applies it after the commit.
"""
import logging
import math
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from cms.cache import cache, detail_key
from cms.config import settings
from cms.database import rollback_session
from cms.errors import ErrorKind, Result
from cms.models import Admin, Article, ArticleStatus, Category, Comment
from cms.schemas import ArticleListParams, ArticleParams

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _admin_to_dict(admin: Admin | None) -> dict | None:
    if admin is None:
        return None
    return {
        "id": admin.id,
        "username": admin.username,
        "nickname": admin.nickname,
        "avatar": admin.avatar,
        "email": admin.email,
    }


def _category_to_dict(category: Category | None) -> dict | None:
    if category is None:
        return None
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "sort_order": category.sort_order,
    }


def _article_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance (with its references) to a dict."""
    return {
        "id": article.id,
        "title": article.title,
        "description": article.description,
        "img_url": article.img_url,
        "content": article.content,
        "seo_keyword": article.seo_keyword,
        "status": article.status,
        "sort_order": article.sort_order,
        "browse": article.browse,
        "created_at": _isoformat(article.created_at),
        "updated_at": _isoformat(article.updated_at),
        "deleted_at": _isoformat(article.deleted_at),
        "admin_id": article.admin_id,
        "category_id": article.category_id,
        "admin_info": _admin_to_dict(article.admin_info),
        "category_info": _category_to_dict(article.category_info),
    }


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

async def _find_live(
    db: AsyncSession,
    article_id: int,
    *,
    with_refs: bool = False,
) -> Article | None:
    """Return the non-deleted article *article_id*, or None."""
    q = select(Article).where(Article.id == article_id, Article.deleted_at.is_(None))
    if with_refs:
        q = q.options(joinedload(Article.admin_info), joinedload(Article.category_info))
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _reload(db: AsyncSession, article_id: int) -> Article:
    """Re-read *article_id* after a flush, regardless of ``deleted_at``."""
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(joinedload(Article.admin_info), joinedload(Article.category_info))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one()


async def _title_taken(db: AsyncSession, title: str, exclude_id: int | None = None) -> bool:
    q = select(Article.id).where(Article.title == title, Article.deleted_at.is_(None))
    if exclude_id is not None:
        q = q.where(Article.id != exclude_id)
    result = await db.execute(q.limit(1))
    return result.first() is not None


async def _attach_refs(db: AsyncSession, article: Article, params: ArticleParams) -> None:
    """
    Point *article* at the Admin and Category named in *params*.

    Lookups that find nothing leave the current reference untouched.
    """
    if params.admin_id is not None:
        admin = await db.get(Admin, params.admin_id)
        if admin is not None:
            article.admin_info = admin

    if params.category_id is not None:
        category = await db.get(Category, params.category_id)
        if category is not None:
            article.category_info = category


def _apply_params(article: Article, params: ArticleParams) -> None:
    article.title = params.title
    article.description = params.description
    article.img_url = params.img_url
    article.content = params.content
    article.seo_keyword = params.seo_keyword
    article.status = params.status or ArticleStatus.NORMAL
    article.sort_order = params.sort_order


async def _flush_failure(db: AsyncSession, action: str, ref: str, exc: SQLAlchemyError) -> Result:
    logger.exception("Failed to %s article %s", action, ref)
    await rollback_session(db)
    return Result.failure(ErrorKind.DATABASE, f"Failed to {action} article", exc)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create(db: AsyncSession, params: ArticleParams) -> Result[dict]:
    """
    Create an article and return its serialised dict.

    Fails with ``EXISTING`` when a live article already uses the title,
    including the case where a concurrent request wins the race and the
    partial unique index rejects the insert.
    """
    if await _title_taken(db, params.title):
        return Result.failure(ErrorKind.EXISTING, "Article already exists")

    article = Article(browse=0)
    _apply_params(article, params)
    await _attach_refs(db, article, params)

    db.add(article)
    try:
        await db.flush()
    except IntegrityError as exc:
        logger.info("Title collision on insert: %r", params.title)
        await rollback_session(db)
        return Result.failure(ErrorKind.EXISTING, "Article already exists", exc)
    except SQLAlchemyError as exc:
        return await _flush_failure(db, "create", f"title={params.title!r}", exc)

    article = await _reload(db, article.id)
    logger.info("Created article id=%s title=%r", article.id, article.title)
    return Result.success(_article_to_dict(article))


async def detail(db: AsyncSession, article_id: int, status: int | None = None) -> Result[dict]:
    """
    Return *article_id* with its Admin, Category and ``comment_count``.

    Fails with ``AUTH_FAILED`` when no live article has the id.
    ``status`` is accepted for callers that pass it but is not used to
    filter the lookup.  Successful reads are cached for
    ``settings.CACHE_TTL_DETAIL`` seconds.
    """
    cached = await cache.get(detail_key(article_id))
    if cached:
        return Result.success(cached)

    try:
        article = await _find_live(db, article_id, with_refs=True)
        if article is None:
            return Result.failure(ErrorKind.AUTH_FAILED, "Article not found")

        count_q = (
            select(func.count())
            .select_from(Comment)
            .where(Comment.article_id == article_id)
        )
        comment_count: int = (await db.execute(count_q)).scalar_one()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load article id=%s", article_id)
        return Result.failure(ErrorKind.DATABASE, "Failed to load article", exc)

    data = {"comment_count": comment_count, **_article_to_dict(article)}
    await cache.set(detail_key(article_id), data, ttl=settings.CACHE_TTL_DETAIL)
    return Result.success(data)


async def destroy(db: AsyncSession, article_id: int) -> Result[dict]:
    """Soft-delete *article_id*; the row stays with ``deleted_at`` set."""
    article = await _find_live(db, article_id)
    if article is None:
        return Result.failure(ErrorKind.NOT_FOUND, "Article not found")

    article.deleted_at = datetime.now(timezone.utc)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        return await _flush_failure(db, "delete", f"id={article_id}", exc)

    cache.defer_invalidation(db, article_id)
    logger.info("Soft-deleted article id=%s", article_id)
    return Result.success(_article_to_dict(await _reload(db, article_id)))


async def update(db: AsyncSession, article_id: int, params: ArticleParams) -> Result[dict]:
    """
    Overwrite every mutable field of *article_id* from *params*.

    Fails with ``NOT_FOUND`` for a missing or soft-deleted article and
    with ``EXISTING`` when another live article already has the title.
    """
    article = await _find_live(db, article_id, with_refs=True)
    if article is None:
        return Result.failure(ErrorKind.NOT_FOUND, "Article not found")

    if params.title != article.title and await _title_taken(db, params.title, exclude_id=article_id):
        return Result.failure(ErrorKind.EXISTING, "Article already exists")

    _apply_params(article, params)
    await _attach_refs(db, article, params)

    try:
        await db.flush()
    except IntegrityError as exc:
        await rollback_session(db)
        return Result.failure(ErrorKind.EXISTING, "Article already exists", exc)
    except SQLAlchemyError as exc:
        return await _flush_failure(db, "update", f"id={article_id}", exc)

    cache.defer_invalidation(db, article_id)
    return Result.success(_article_to_dict(await _reload(db, article_id)))


async def update_browse(db: AsyncSession, article_id: int, browse: int) -> Result[dict]:
    """Set the view counter of *article_id* to *browse* (absolute value)."""
    article = await _find_live(db, article_id, with_refs=True)
    if article is None:
        return Result.failure(ErrorKind.NOT_FOUND, "Article not found")

    article.browse = browse
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        return await _flush_failure(db, "update browse count of", f"id={article_id}", exc)

    cache.defer_invalidation(db, article_id)
    return Result.success(_article_to_dict(await _reload(db, article_id)))


async def list_articles(db: AsyncSession, params: ArticleListParams) -> Result[dict]:
    """
    Return one page of live articles with pagination metadata.

    Provided filters are AND-combined: ``status``, ``category_id`` and
    ``keyword``, the last matching a substring of ``content`` or
    ``title``.  Ordered by ``sort_order`` then ``created_at``, newest
    first.

    Two SQL statements are issued: a COUNT over the filtered rows and
    the page SELECT with both references joined.
    """
    conditions = [Article.deleted_at.is_(None)]
    if params.status:
        conditions.append(Article.status == params.status)
    if params.category_id:
        conditions.append(Article.category_id == params.category_id)
    if params.keyword:
        conditions.append(
            or_(
                Article.content.contains(params.keyword, autoescape=True),
                Article.title.contains(params.keyword, autoescape=True),
            )
        )

    page, page_size = params.page, params.page_size
    try:
        count_q = select(func.count()).select_from(Article).where(*conditions)
        total: int = (await db.execute(count_q)).scalar_one()

        rows_q = (
            select(Article)
            .where(*conditions)
            .options(joinedload(Article.admin_info), joinedload(Article.category_info))
            .order_by(Article.sort_order.desc(), Article.created_at.desc(), Article.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        articles = (await db.execute(rows_q)).unique().scalars().all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to list articles with %r", params)
        return Result.failure(ErrorKind.DATABASE, "Failed to list articles", exc)

    return Result.success({
        "data": [_article_to_dict(a) for a in articles],
        "meta": {
            "current_page": page,
            "per_page": page_size,
            "count": total,
            "total": total,
            "total_pages": math.ceil(total / page_size),
        },
    })
