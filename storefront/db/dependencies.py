from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import  AsyncSession
from storefront.db.connection import async_session

async def get_session() -> AsyncGenerator[AsyncSession,None]:
    # session opens lazily on first execute and is closed when the request is done
    async with async_session() as session:
        yield session
