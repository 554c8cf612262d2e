import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from dotenv import load_dotenv

# Load .env from the package directory before the auth module reads its settings
env_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env")
load_dotenv(dotenv_path=env_path)

from fastapi import FastAPI
from sqlalchemy import text

from .auth_module import ClientIdMiddleware, init_auth_module, router as auth_router
from .auth_module.config import settings
from .auth_module.database import engine

# Configure Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing session storage...")
    init_auth_module()
    logger.info(f"Session storage initialized. Backend API: {settings.api_base_url}")
    yield
    logger.info("Shutting down...")


app = FastAPI(title="Serene Minds Portal", lifespan=lifespan)
app.add_middleware(ClientIdMiddleware)


# Registered before the portal router so the catch-all page route does not shadow it
@app.get("/api/health")
def health_check():
    """Health check endpoint to verify the portal is running and its storage is reachable"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error(f"Health check storage error: {e}")
        db_status = f"error: {str(e)}"

    return {
        "status": "healthy",
        "message": "Portal is running",
        "database": db_status,
        "api_base_url": settings.api_base_url,
        "timestamp": datetime.now().isoformat()
    }


app.include_router(auth_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("portal.portal:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
