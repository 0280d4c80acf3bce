import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from skillswap.api.auth import router as auth_router
from skillswap.api.health import router as health_router
from skillswap.api.swaps import router as swaps_router
from skillswap.api.ws import router as ws_router
from skillswap.config import settings
from skillswap.database import async_session, engine
from skillswap.errors import install_error_handlers
from skillswap.models import Base
from skillswap.redis_client import close_redis, open_redis
from skillswap.services.notifier import SwapEventEmitter
from skillswap.tasks.expire_pending import run_expire_loop

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        if settings.RESET_DB:
            logger.warning("RESET_DB set: dropping all tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    redis_client = open_redis()
    task = None
    if settings.PENDING_SWAP_TTL_HOURS > 0:
        logger.info("expiring pending swaps after %s hours", settings.PENDING_SWAP_TTL_HOURS)
        task = asyncio.create_task(run_expire_loop(async_session, SwapEventEmitter(redis_client)))
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await close_redis()
        await engine.dispose()


app = FastAPI(title="SkillSwap", version="0.1.0", lifespan=lifespan)
install_error_handlers(app)
app.include_router(health_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(swaps_router, prefix="/api")
app.include_router(ws_router)


@app.get("/api")
def api_root():
    return {"message": "SkillSwap API"}
