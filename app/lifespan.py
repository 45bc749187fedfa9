from contextlib import asynccontextmanager
import logging

from pipeline.runner import build_context, start_pipeline, stop_pipeline

logger = logging.getLogger("lifespan")


@asynccontextmanager
async def lifespan(app):
    logger.info("🚀 FastAPI startup")
    ctx = build_context()
    app.state.pipeline = ctx
    start_pipeline(ctx)

    yield

    logger.info("🛑 FastAPI shutdown")
    stop_pipeline(ctx)
    ctx.watchers.close()
