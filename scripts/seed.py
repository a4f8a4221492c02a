"""Database seeder for local development and benchmarking."""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from blog.database import Base, async_session, engine
from blog.models import Article, Comment, User

TOPICS = ["café culture", "crème brûlée", "python", "fastapi", "postgresql", "redis",
          "docker", "résumé writing", "naïve bayes", "performance", "caching", "images"]


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 100 if small else 5000
    max_comments_per_article = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_articles} articles, "
          f"up to {num_articles * max_comments_per_article} comments")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        users = [
            User(name=f"User {i}", email=f"user_{i:04d}@example.com")
            for i in range(num_users)
        ]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(users)} users")

        total_comments = 0
        batch_size = 500
        for batch_start in range(0, num_articles, batch_size):
            batch = []
            for i in range(batch_start, min(batch_start + batch_size, num_articles)):
                topic = random.choice(TOPICS)
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                batch.append(Article(
                    title=f"Article {i}: notes on {topic}",
                    content=f"This is the full content of article {i} about {topic}. " * 20,
                    author_id=random.choice(users).id,
                    published_at=created,
                    created_at=created,
                ))
            session.add_all(batch)
            await session.flush()

            for article in batch:
                for _ in range(random.randint(0, max_comments_per_article)):
                    session.add(Comment(
                        content="Great article! Very helpful for understanding the topic.",
                        article_id=article.id,
                        user_id=random.choice(users).id,
                    ))
                    total_comments += 1
            await session.flush()
            print(f"  Batch {batch_start}-{batch_start + len(batch)}: articles created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
