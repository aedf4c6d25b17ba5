"""Local web shell.

A small Starlette application that performs the browser navigation the
session manager only describes: it redirects to the hosted UI, receives
the callback on the redirect URI, and replaces the callback URL with the
cleaned one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from hosted_auth.config import ConfigError
from hosted_auth.logging_config import get_logger

if TYPE_CHECKING:
    from starlette.requests import Request

    from hosted_auth.config import Config
    from hosted_auth.oauth.session import AuthSessionManager

logger = get_logger(__name__)


def _identity_payload(session_manager: AuthSessionManager) -> dict[str, Any]:
    identity = session_manager.get_signed_in_identity()
    if identity is None:
        return {"signed_in": False}
    return {
        "signed_in": True,
        "label": identity.label,
        "email": identity.claims.email,
        "sub": identity.claims.sub,
        "expires_at": identity.claims.exp,
    }


def callback_path(config: Config) -> str:
    """Path component of the redirect URI, where callbacks arrive."""
    return urlsplit(config.redirect_uri or "/").path or "/"


def create_web_app(config: Config, session_manager: AuthSessionManager) -> Starlette:
    """Create the Starlette application for the web shell.

    Args:
        config: Application configuration
        session_manager: Session manager handling the OAuth flow

    Returns:
        Configured Starlette application
    """

    async def health_check(request: Request) -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse({
            "status": "ok",
            "app_name": config.app_name,
            "environment": config.environment.value,
        })

    async def login(request: Request) -> Response:
        """Redirect to the hosted UI sign-in page."""
        try:
            url = session_manager.login()
        except ConfigError as e:
            return JSONResponse({"error": str(e)}, status_code=500)
        return RedirectResponse(url=url, status_code=302)

    async def logout(request: Request) -> Response:
        """Clear local tokens and redirect to the hosted UI logout page."""
        try:
            url = session_manager.logout()
        except ConfigError as e:
            return JSONResponse({"error": str(e)}, status_code=500)
        return RedirectResponse(url=url, status_code=302)

    async def me(request: Request) -> JSONResponse:
        """Current signed-in identity."""
        return JSONResponse(_identity_payload(session_manager))

    async def home(request: Request) -> Response:
        """Landing page; completes the sign-in when it is the OAuth callback."""
        result = await session_manager.handle_auth_callback(str(request.url))
        if result.clean_url is not None:
            logger.debug("Callback handled (%s)", result.outcome.value)
            return RedirectResponse(url=result.clean_url, status_code=303)
        return JSONResponse(_identity_payload(session_manager))

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/auth/login", login, methods=["GET"]),
        Route("/auth/logout", logout, methods=["GET"]),
        Route("/auth/me", me, methods=["GET"]),
        Route(callback_path(config), home, methods=["GET"]),
    ]

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=[f"http://{config.host}:{config.port}"],
            allow_methods=["GET"],
            allow_headers=["*"],
        )
    ]

    return Starlette(routes=routes, middleware=middleware)


async def run_web(app: Starlette, host: str, port: int) -> None:
    """Run the web shell using uvicorn.

    Args:
        app: Starlette ASGI application
        host: Host to bind to
        port: Port to bind to
    """
    import uvicorn

    logger.info("Starting web shell on http://%s:%d", host, port)

    server = uvicorn.Server(uvicorn.Config(app=app, host=host, port=port, log_level="info"))
    await server.serve()
