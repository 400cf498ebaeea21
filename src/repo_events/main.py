"""
Main application entry point for Repo Events.

This module sets up the FastAPI application, configures logging, and serves
the OAuth handshake alongside the event watcher's monitoring endpoints.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .config import settings
from .exceptions import GitHubAPIError, TransportError
from .github_client import GitHubClient
from .oauth import OAuthFlow, OAuthListener
from .polling import PollSessionState, RepoEventWatcher


def setup_logging() -> None:
    """Configure structured logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level), format="%(message)s"
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.log_format == "json"
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _log_session_ended(state: PollSessionState) -> None:
    """Surface sessions that stop polling."""
    logger = structlog.get_logger()
    if state.failure is not None:
        logger.error(
            "Repository polling stopped after failure",
            repository=state.repo,
            error=str(state.failure),
        )
    else:
        logger.info("Repository polling stopped", repository=state.repo)


async def _on_token(request: Request, access_token: str) -> Response:
    """Respond to a completed OAuth handshake with the authenticated user."""
    github_client: GitHubClient = request.app.state.github_client
    try:
        user = await github_client.get_user(access_token)
    except (GitHubAPIError, TransportError) as e:
        logger = structlog.get_logger()
        logger.error("Failed to load authenticated user", error=str(e))
        return JSONResponse(
            content={"message": "Failed to load authenticated user", "error": str(e)},
            status_code=502,
        )
    return JSONResponse(content={"authenticated": True, "login": user.get("login")})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    logger = structlog.get_logger()

    logger.info("Starting Repo Events")
    logger.info(
        "Configuration loaded",
        github_api_url=settings.github_api_url,
        oauth_domains=[app_config.domain for app_config in settings.oauth_apps],
        debug=settings.debug,
    )

    # Initialize services
    github_client = GitHubClient(settings)
    watcher = RepoEventWatcher(
        github_client, settings, on_session_ended=_log_session_ended
    )

    # Store services in app state
    app.state.github_client = github_client
    app.state.watcher = watcher

    yield

    logger.info("Shutting down Repo Events")
    await watcher.shutdown()
    await github_client.aclose()


# Create FastAPI application
app = FastAPI(
    title="Repo Events",
    description="GitHub OAuth handshake and repository event polling",
    version="0.1.0",
    lifespan=lifespan,
)

# Include OAuth routes
oauth_listener = OAuthListener(OAuthFlow(settings=settings), _on_token)
app.include_router(oauth_listener.router, prefix="/oauth", tags=["oauth"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Repo Events", "version": "0.1.0", "status": "active"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/sessions")
async def sessions(request: Request) -> dict[str, Any]:
    """State of every repository poll session."""
    watcher: RepoEventWatcher = request.app.state.watcher
    return watcher.get_sessions_summary()


def main() -> None:
    """Main entry point."""
    import uvicorn

    setup_logging()
    logger = structlog.get_logger()

    logger.info(
        "Starting server", host=settings.host, port=settings.port, debug=settings.debug
    )

    uvicorn.run(
        "repo_events.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,  # We handle logging ourselves
    )


if __name__ == "__main__":
    main()
