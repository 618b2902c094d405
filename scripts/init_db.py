"""初始化数据库"""
import argparse
import asyncio
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from loguru import logger


async def init_database(user_id: str, database_url: str = None):
    """建表并为用户建立预设部门"""
    logger.info("Initializing database...")

    db = DatabaseManager(database_url)

    logger.info("Creating tables...")
    await db.create_tables_async()

    logger.info(f"Seeding default departments for {user_id}...")
    if await db.seed_defaults(user_id):
        logger.info("Created department: uncategorized")
    else:
        logger.info("Default departments already exist")

    counts = await db.count_rows(user_id)
    for table, count in counts.items():
        logger.info(f"{table}: {count} rows")

    await db.close_async()
    logger.info("Database initialization completed!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="初始化客户管理数据库")
    parser.add_argument("user_id", help="要建立预设数据的用户 ID")
    parser.add_argument("--database-url", default=None, help="覆盖 .env 中的 DATABASE_URL")
    args = parser.parse_args()
    asyncio.run(init_database(args.user_id, args.database_url))
