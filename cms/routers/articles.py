from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cms.database import get_db
from cms.dependencies import ArticleListQuery
from cms.schemas import (
    ArticleBrowseUpdate,
    ArticleDetail,
    ArticleListResponse,
    ArticleParams,
    ArticleResponse,
)
from cms.services import article_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])

# Failed results raise ServiceFailure in unwrap(); cms.main maps it to JSON.


@router.get("", response_model=ArticleListResponse)
async def list_articles(query: ArticleListQuery = Depends(), db: AsyncSession = Depends(get_db)):
    return (await article_service.list_articles(db, query.params)).unwrap()


@router.get("/{article_id}", response_model=ArticleDetail)
async def get_article(article_id: int, status: int | None = None, db: AsyncSession = Depends(get_db)):
    return (await article_service.detail(db, article_id, status)).unwrap()


@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(data: ArticleParams, db: AsyncSession = Depends(get_db)):
    return (await article_service.create(db, data)).unwrap()


@router.put("/{article_id}", response_model=ArticleResponse)
async def update_article(article_id: int, data: ArticleParams, db: AsyncSession = Depends(get_db)):
    return (await article_service.update(db, article_id, data)).unwrap()


@router.patch("/{article_id}/browse", response_model=ArticleResponse)
async def update_browse(article_id: int, data: ArticleBrowseUpdate, db: AsyncSession = Depends(get_db)):
    return (await article_service.update_browse(db, article_id, data.browse)).unwrap()


@router.delete("/{article_id}", response_model=ArticleResponse)
async def delete_article(article_id: int, db: AsyncSession = Depends(get_db)):
    return (await article_service.destroy(db, article_id)).unwrap()
