from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware
import uvicorn
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from relay.api import chat
from relay.chat.config import get_config
from relay.chat.sessions import get_session_manager, set_session_manager
from relay.utils.security import SecurityHeadersMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the provider and start idle-session cleanup on startup
    manager = get_session_manager()
    manager.start_cleanup_task()
    yield
    # Stop every session and release the HTTP client on shutdown
    await manager.cleanup_all()
    await manager.service.close()
    set_session_manager(None)


app = FastAPI(lifespan=lifespan)

# Add middleware
app.add_middleware(SecurityHeadersMiddleware)  # Security headers should be first
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Include API routers
app.include_router(chat.router)


@app.get("/healthz")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    config = get_config()
    uvicorn.run("relay.main:app", host=config.host, port=config.port, reload=True)
