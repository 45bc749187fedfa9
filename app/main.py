from fastapi import FastAPI

from config.logging_config import setup_logging
from app.lifespan import lifespan
from app.api.pipeline import router as pipeline_router
from app.api.files import router as files_router
from app.api.folders import router as folders_router
from app.api.smb import router as smb_router
from app.api.dashboard import router as dashboard_router
from app.api.logs import router as log_router
from app.api.settings import router as settings_router

setup_logging()

app = FastAPI(
    title="Document Rename Pipeline API",
    lifespan=lifespan,
)

app.include_router(pipeline_router)
app.include_router(files_router)
app.include_router(folders_router)
app.include_router(smb_router)
app.include_router(dashboard_router)
app.include_router(settings_router)
app.include_router(log_router, prefix="/api")
