"""
PersonaChat API server.

Serves the conversation endpoints. Scheduling lives in the Celery worker
(see personachat.tasks); this process never runs dispatch ticks itself.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import settings
from ..core.exceptions import PersonaChatException
from ..database import init_db
from .routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    session_maker = getattr(app.state, "session_maker", None)
    await init_db(session_maker.kw["bind"] if session_maker else None)
    logger.info("PersonaChat API started")
    yield
    logger.info("PersonaChat API shutting down")


async def handle_persona_chat_exception(request: Request, exc: PersonaChatException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(session_maker=None, generator=None, channel=None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        session_maker: Session factory; defaults to the configured database
        generator: Content generator; defaults to the OpenAI backend
        channel: Delivery channel; defaults to Green API
    """
    app = FastAPI(
        title="PersonaChat",
        description="Chat with your personas",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.session_maker = session_maker
    app.state.generator = generator
    app.state.channel = channel

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PersonaChatException, handle_persona_chat_exception)
    app.include_router(router)
    return app


app = create_app()


def run(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False):
    """Run the API server."""
    import uvicorn

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    host = host or settings.API_HOST
    port = port or settings.API_PORT

    logger.info(f"Starting PersonaChat API on {host}:{port}")
    uvicorn.run("personachat.api.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
