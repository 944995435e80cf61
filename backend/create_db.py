import asyncio
import sys

from printjob.core.config import get_settings
from printjob.core.database import create_engine_from_url, init_db

settings = get_settings()


async def create_tables():
    print(f"Creating PrintJob tables on {settings.DATABASE_URL.split('@')[-1]}...")
    engine = create_engine_from_url(settings.DATABASE_URL)
    try:
        await init_db(engine)
        print("Tables created successfully.")
    except Exception as e:
        print(f"Error creating tables: {e}")
        print("Please ensure the database is running and credentials are correct.")
    finally:
        await engine.dispose()

if __name__ == "__main__":
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(create_tables())
