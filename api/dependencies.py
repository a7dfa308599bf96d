"""Request-scoped wiring: backend client, session manager, user and store.

The browser's session travels in two http-only cookies. Each request
restores it into a fresh backend client. A listener on the auth client
records the latest session in `SessionCookies`, and the middleware set up
by `create_app` writes it to whatever response goes out, error responses
included.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator
from urllib.parse import urlsplit

import jwt
from fastapi import Depends, HTTPException, Request, Response
from supabase import AsyncClient
from supabase_auth.errors import AuthError, AuthRetryableError
from supabase_auth.types import Session, User

from baas.client import create_client
from baas.config import BaasConfig
from baas.session import AuthPolicy, Location, SessionManager
from shared.types import AuthEvent

from .config import APIConfig
from .database import session_scope
from .store import CatalogStore, RestCatalogStore, SqlCatalogStore

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "catalog-access-token"
REFRESH_COOKIE = "catalog-refresh-token"
REFRESH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30

# Header carrying the page the browser is on (path and query)
LOCATION_HEADER = "X-Page-Location"

PUBLIC_PATHS = (
    "/forgot-password",
    "/update-password",
    "/reset-password",
    "/resend-verification",
    "/verify",
    "/oauth",
    "/refresh",
    "/health",
)

# Events after which the session in hand is the one the browser should keep
SESSION_EVENTS = (
    AuthEvent.SIGNED_IN,
    AuthEvent.TOKEN_REFRESHED,
    AuthEvent.USER_UPDATED,
    AuthEvent.PASSWORD_RECOVERY,
)


def get_config(request: Request) -> APIConfig:
    return request.app.state.config


def get_baas_config(request: Request) -> BaasConfig:
    return request.app.state.baas_config


def build_policy(config: APIConfig, baas_config: BaasConfig) -> AuthPolicy:
    return AuthPolicy(
        require_auth=config.require_auth,
        login_path=config.login_path,
        home_path=config.home_path,
        public_paths=PUBLIC_PATHS,
        auto_refresh_session=baas_config.auto_refresh_session,
        refresh_threshold=baas_config.refresh_threshold,
        site_url=config.site_url,
    )


def page_location(request: Request) -> Location:
    """The page the user is on.

    Falls back to the request path, with the `/auth` prefix dropped so that
    `/auth/login` stands for the login page.
    """
    header = request.headers.get(LOCATION_HEADER)
    if header:
        parts = urlsplit(header)
        return Location(path=parts.path or "/", query=parts.query)
    path = request.url.path
    if path.startswith("/auth/"):
        path = path[len("/auth"):]
    return Location(path=path, query=request.url.query)


def is_jwt(token: str) -> bool:
    """Whether `token` parses as a JWT. The signature is the auth server's to check."""
    try:
        jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return False
    return True


def read_tokens(request: Request) -> tuple[str | None, str | None]:
    """Access and refresh token from the Authorization header or the cookies.

    An access token that is not a JWT is dropped; with a refresh cookie the
    session is then refreshed on restore.
    """
    refresh_token = request.cookies.get(REFRESH_COOKIE) or None
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        access_token: str | None = token.strip()
    else:
        access_token = request.cookies.get(ACCESS_COOKIE) or None

    if access_token and not is_jwt(access_token):
        logger.debug("Ignoring malformed access token")
        access_token = None
    return access_token, refresh_token


class SessionCookies:
    """Latest session seen while serving one request.

    Several auth events can fire during a single request (verifying a
    recovery token signs in, the password update follows, then a sign out).
    Only the final state reaches the response, once per cookie, and nothing
    is written when the tokens are the ones the request came with.
    """

    def __init__(self, access_token: str | None, refresh_token: str | None) -> None:
        self.received = (access_token, refresh_token)
        self.session: Session | None = None
        self.changed = False

    def track(self, event: str, session: Session | None) -> None:
        """Auth state listener."""
        if event == AuthEvent.SIGNED_OUT:
            self.session = None
            self.changed = True
        elif event in SESSION_EVENTS and session is not None:
            self.session = session
            self.changed = True

    def discard(self) -> None:
        """Forget tokens the auth server no longer accepts."""
        self.session = None
        self.changed = True

    def apply(self, response: Response, secure: bool = False) -> None:
        if not self.changed:
            return
        if self.session is None:
            response.delete_cookie(ACCESS_COOKIE, path="/")
            response.delete_cookie(REFRESH_COOKIE, path="/")
            return

        session = self.session
        if (session.access_token, session.refresh_token or None) == self.received:
            return

        max_age = None
        if session.expires_at is not None:
            max_age = max(0, int(session.expires_at - time.time()))
        response.set_cookie(
            ACCESS_COOKIE,
            session.access_token,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=secure,
            samesite="lax",
        )
        if session.refresh_token:
            response.set_cookie(
                REFRESH_COOKIE,
                session.refresh_token,
                max_age=REFRESH_COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                secure=secure,
                samesite="lax",
            )
        logger.debug("Session cookies written")


def session_cookies(request: Request) -> SessionCookies:
    """This request's `SessionCookies`, created on first use."""
    cookies = getattr(request.state, "session_cookies", None)
    if cookies is None:
        cookies = SessionCookies(*read_tokens(request))
        request.state.session_cookies = cookies
    return cookies


async def get_backend(request: Request) -> AsyncClient:
    """Backend client for this request; sessions are never shared between requests."""
    return await create_client(get_baas_config(request), http=request.app.state.http)


async def restore_session(backend: AsyncClient, cookies: SessionCookies) -> None:
    """Hand the request's tokens to the auth client.

    The auth server checks the access token, or exchanges the refresh
    token when the access token is missing or expired. Tokens it rejects
    are discarded; a network failure only leaves the request signed out.
    """
    access_token, refresh_token = cookies.received
    if not access_token and not refresh_token:
        return
    try:
        await backend.auth.set_session(access_token or "", refresh_token or "")
    except AuthRetryableError as e:
        logger.warning("Auth server unreachable while restoring session: %s", e)
    except AuthError as e:
        logger.info("Stored session rejected by auth server: %s", e)
        cookies.discard()


async def get_session_manager(
    request: Request,
    backend: AsyncClient = Depends(get_backend),
) -> AsyncIterator[SessionManager]:
    cookies = session_cookies(request)
    # Subscribed before the restore so the refreshed tokens reach the cookies
    subscription = backend.auth.on_auth_state_change(cookies.track)
    await restore_session(backend, cookies)
    manager = SessionManager(
        backend.auth,
        policy=build_policy(get_config(request), get_baas_config(request)),
        location=page_location(request),
    )
    await manager.initialize()
    try:
        yield manager
    finally:
        manager.close()
        subscription.unsubscribe()


async def require_user(
    manager: SessionManager = Depends(get_session_manager),
) -> User:
    """The signed-in user; 401 with the login redirect otherwise."""
    if manager.user is None:
        raise HTTPException(
            status_code=401,
            detail={
                "message": "Not authenticated",
                "redirect": manager.redirect.path if manager.redirect else None,
            },
        )
    return manager.user


async def get_store(
    request: Request,
    user: User = Depends(require_user),
    backend: AsyncClient = Depends(get_backend),
) -> AsyncIterator[CatalogStore]:
    """Catalog store for the signed-in user (direct SQL or backend REST)."""
    if get_config(request).database_url:
        async with session_scope() as session:
            yield SqlCatalogStore(session, user.id)
    else:
        yield RestCatalogStore(backend, user.id)


async def require_moderator(
    request: Request, user: User = Depends(require_user)
) -> User:
    """The signed-in user, if listed in `moderator_emails`; 403 otherwise."""
    moderators = {e.lower() for e in get_config(request).moderator_emails}
    if not user.email or user.email.lower() not in moderators:
        raise HTTPException(status_code=403, detail="Only moderators can review GPSR submissions")
    return user


async def get_moderation_store(
    request: Request,
    user: User = Depends(require_moderator),
    backend: AsyncClient = Depends(get_backend),
) -> AsyncIterator[CatalogStore]:
    """Store not bound to one owner, for reviewing any supplier's product."""
    if get_config(request).database_url:
        async with session_scope() as session:
            yield SqlCatalogStore(session, None)
    else:
        yield RestCatalogStore(backend, None)
