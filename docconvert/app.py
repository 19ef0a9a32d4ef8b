from contextlib import asynccontextmanager

from fastapi import FastAPI

# Import the conversion router
from docconvert.router import router as convert_router

# Import centralized HTTP client factory
from docconvert.utils.http_client import lifespan_http_clients

# Import centralized logging configuration
from docconvert.utils.logging_config import get_logger

from docconvert import __version__


# Set up logging
logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager with centralized HTTP client cleanup."""
    logger.info(f"docconvert {__version__} starting")
    async with lifespan_http_clients():
        yield
    logger.info("docconvert stopped")


app = FastAPI(title="docconvert", version=__version__, lifespan=lifespan)

# Include the conversion router
app.include_router(convert_router)


@app.get("/ping")
async def general_ping():
    return {"success": True, "data": "PONG!"}
