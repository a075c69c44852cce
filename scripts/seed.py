"""Populate the CMS database with admins, categories, articles and comments."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timezone, timedelta

from cms.database import engine, async_session, Base
from cms.models import Admin, Article, ArticleStatus, Category, Comment

CATEGORIES = ["News", "Guides", "Releases", "Community", "Engineering", "Design"]
TOPICS = ["python", "postgresql", "redis", "docker", "testing", "performance", "security"]


async def seed(small: bool = False, reset: bool = False):
    num_admins = 3 if small else 10
    num_articles = 50 if small else 2000
    max_comments = 3 if small else 10

    print(f"Seeding: {num_admins} admins, {len(CATEGORIES)} categories, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        admins = [
            Admin(username=f"admin_{i:02d}", nickname=f"Admin {i}", email=f"admin_{i:02d}@example.com")
            for i in range(num_admins)
        ]
        categories = [Category(name=name, sort_order=len(CATEGORIES) - i) for i, name in enumerate(CATEGORIES)]
        session.add_all(admins + categories)
        await session.flush()

        articles = []
        for i in range(num_articles):
            topic = random.choice(TOPICS)
            article = Article(
                title=f"Article {i}: notes on {topic}",
                description=f"What we learned running {topic} in production.",
                content=f"This is the full content of article {i} about {topic}. " * 20,
                seo_keyword=f"{topic},cms",
                status=ArticleStatus.NORMAL if random.random() > 0.1 else ArticleStatus.HIDDEN,
                sort_order=random.choice([0, 0, 0, 1, 5]),
                browse=random.randint(0, 5000),
                created_at=datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365)),
                admin_id=random.choice(admins).id,
                category_id=random.choice(categories).id,
            )
            articles.append(article)
        session.add_all(articles)
        await session.flush()

        total_comments = 0
        for article in articles:
            for _ in range(random.randint(0, max_comments)):
                session.add(Comment(
                    nickname=f"reader_{random.randint(1, 500)}",
                    content=f"Thanks for the write-up on article {article.id}.",
                    article_id=article.id,
                ))
                total_comments += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the CMS database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (50 articles)")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, reset=args.reset))


if __name__ == "__main__":
    main()
