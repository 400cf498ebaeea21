"""
GitHub OAuth handshake for Repo Events.

This module stores OAuth app credentials per serving domain, builds the
authorization redirect, exchanges authorization codes for access tokens and
exposes the whole flow as a FastAPI route.
"""

import base64
import binascii
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs, urlencode

import httpx
import structlog
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from .config import OAuthAppConfig, Settings, get_settings
from .exceptions import ConfigurationError, OAuthError, TransportError

logger = structlog.get_logger(__name__)

TokenCallback = Callable[[Request, str], Awaitable[Response]]


def encode_state(domain: str) -> str:
    """Encode the serving domain into the OAuth ``state`` parameter."""
    return base64.b64encode(domain.encode("utf-8")).decode("ascii")


def decode_state(state: str) -> str:
    """Decode the serving domain from the OAuth ``state`` parameter."""
    try:
        return base64.b64decode(state.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError) as e:
        raise OAuthError(f"Invalid OAuth state: {state!r}") from e


class OAuthAppRegistry:
    """OAuth app credentials keyed by the domain that serves the callback."""

    def __init__(self, apps: list[OAuthAppConfig] | None = None) -> None:
        self._apps: dict[str, OAuthAppConfig] = {}
        for app in apps or []:
            self._apps[app.domain] = app

    def init(
        self, domain: str, app_id: str, app_secret: str, app_redirect: str
    ) -> OAuthAppConfig:
        """
        Register the OAuth app used for a domain.

        Args:
            domain: Host name the callback is served on
            app_id: OAuth app client ID
            app_secret: OAuth app client secret
            app_redirect: Base redirect URL registered with the app

        Returns:
            The stored app configuration
        """
        if not all((domain, app_id, app_secret, app_redirect)):
            raise ConfigurationError(
                "OAuth app configuration requires domain, app id, secret and redirect",
                context={"domain": domain},
            )

        app = OAuthAppConfig(
            domain=domain,
            client_id=app_id,
            client_secret=app_secret,
            redirect=app_redirect,
        )
        self._apps[domain] = app
        logger.info("OAuth app configured", domain=domain)
        return app

    def get(self, domain: str) -> OAuthAppConfig:
        """Get the app for a domain, raising ConfigurationError if missing."""
        app = self._apps.get(domain)
        if app is None:
            raise ConfigurationError(
                f"No OAuth app configured for domain: {domain}",
                context={"domain": domain},
            )
        return app

    def __contains__(self, domain: object) -> bool:
        return domain in self._apps


class OAuthFlow:
    """Authorization-code flow against GitHub's OAuth endpoints."""

    def __init__(
        self,
        apps: OAuthAppRegistry | None = None,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the OAuth flow.

        Args:
            apps: App credentials per domain (defaults to those in settings)
            settings: Application settings (defaults to the global settings)
            transport: Optional httpx transport, used to stub the network
        """
        self.settings = settings or get_settings()
        if apps is None:
            apps = OAuthAppRegistry(self.settings.oauth_apps)
        self.apps = apps
        self._transport = transport

    def authorize_url(self, domain: str, path: str, scope: str) -> str:
        """
        Build the GitHub authorization URL for a domain.

        The callback path is appended to the app's redirect base, and the
        domain travels in ``state`` so the exchange can find its app again.
        """
        app = self.apps.get(domain)
        query = urlencode(
            {
                "redirect_uri": f"{app.redirect}{path}",
                "scope": scope,
                "client_id": app.client_id,
                "state": encode_state(domain),
            }
        )
        return f"{self.settings.github_oauth_url}/authorize?{query}"

    async def exchange_code(self, code: str, state: str) -> str:
        """
        Exchange an authorization code for an access token.

        Args:
            code: Code returned by GitHub to the callback
            state: State returned by GitHub to the callback

        Returns:
            The user's access token

        Raises:
            OAuthError: If GitHub did not return a token
            ConfigurationError: If the domain in ``state`` has no app
            TransportError: If GitHub could not be reached
        """
        domain = decode_state(state)
        app = self.apps.get(domain)

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self.settings.github_oauth_url}/access_token",
                    data={
                        "client_id": app.client_id,
                        "client_secret": app.client_secret,
                        "code": code,
                        "state": state,
                    },
                    headers={
                        "Accept": "application/json",
                        "User-Agent": self.settings.user_agent,
                    },
                )
        except httpx.TransportError as e:
            logger.error("OAuth token exchange failed", domain=domain, error=str(e))
            raise TransportError(f"OAuth token exchange failed: {e}") from e

        reply = self._parse_reply(response)
        access_token = reply.get("access_token")
        if response.status_code != 200 or not access_token:
            logger.error(
                "OAuth token exchange rejected",
                domain=domain,
                status_code=response.status_code,
                error=reply.get("error"),
            )
            reason = (
                reply.get("error_description")
                or reply.get("error")
                or response.status_code
            )
            raise OAuthError(
                f"GitHub did not return an access token: {reason}",
                domain=domain,
                context={"error": reply.get("error")},
            )

        logger.info("OAuth token exchange succeeded", domain=domain)
        return str(access_token)

    def _parse_reply(self, response: httpx.Response) -> dict[str, Any]:
        """Parse a JSON or url-encoded token reply."""
        if "json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except ValueError:
                return {}
            return data if isinstance(data, dict) else {}

        return {key: values[0] for key, values in parse_qs(response.text).items()}


class OAuthListener:
    """
    FastAPI route driving the OAuth handshake.

    A request without ``code`` is redirected to GitHub; the callback request
    carrying ``code`` is exchanged for a token, which is handed to
    ``on_token`` to build the response.
    """

    def __init__(
        self,
        flow: OAuthFlow,
        on_token: TokenCallback,
        scope: str | None = None,
        path: str = "/github",
    ) -> None:
        self.flow = flow
        self.on_token = on_token
        self.scope = scope or flow.settings.oauth_scope
        self.router = APIRouter()
        self.router.get(path)(self.handle_oauth)

    async def handle_oauth(self, request: Request) -> Response:
        """Handle both legs of the OAuth handshake."""
        domain = request.url.hostname or ""

        if domain not in self.flow.apps:
            logger.error(
                "OAuth app not configured for domain",
                domain=domain,
            )
            return JSONResponse(
                content={"message": f"OAuth app not configured for {domain}"},
                status_code=500,
            )

        code = request.query_params.get("code")
        if not code:
            return RedirectResponse(
                self.flow.authorize_url(domain, request.url.path, self.scope)
            )

        try:
            access_token = await self.flow.exchange_code(
                code, request.query_params.get("state", "")
            )
        except (OAuthError, ConfigurationError, TransportError) as e:
            return JSONResponse(
                content={"message": "OAuth token exchange failed", "error": str(e)},
                status_code=502,
            )

        return await self.on_token(request, access_token)
