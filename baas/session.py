"""Session lifecycle management on top of the backend SDK auth client.

`SessionManager` is the piece every request (or long-lived client) talks to:
it retrieves the current session, refreshes it before it expires, keeps
`user` in sync with auth state changes and decides where the user should be
sent (login page, home page) as that state changes.

Auth operations are wrapped so that failures come back as
`AuthResponse.error` instead of raising, mirroring how callers render them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

from supabase_auth import AsyncGoTrueClient
from supabase_auth.errors import AuthError
from supabase_auth.types import Session, Subscription, User

from shared.types import AuthEvent, OAuthProvider, OtpType

logger = logging.getLogger(__name__)

# Token types tried, in order, when a recovery link doesn't say which it is
RECOVERY_TOKEN_TYPES = (OtpType.recovery, OtpType.signup, OtpType.magiclink, OtpType.email)

# Path segments shorter than this are route names, not tokens
MIN_PATH_TOKEN_LENGTH = 30


@dataclass
class AuthPolicy:
    """Redirect and refresh policy.

    Attributes:
        require_auth: Send signed-out users to the login page.
        login_path: Login page path.
        home_path: Where signed-in users land after logging in.
        signup_path: Prefix of the signup pages (never redirected away from).
        public_paths: Path prefixes reachable without a session.
        auto_refresh_session: Refresh tokens proactively before they expire.
        refresh_threshold: Seconds before expiry that trigger a refresh.
        site_url: Public origin used to build email and OAuth redirect links.
    """

    require_auth: bool = True
    login_path: str = "/login"
    home_path: str = "/"
    signup_path: str = "/signup"
    public_paths: tuple[str, ...] = ("/forgot-password", "/update-password")
    auto_refresh_session: bool = True
    refresh_threshold: int = 300
    site_url: str = "http://localhost:8000"

    def is_signup(self, path: str) -> bool:
        return path.startswith(self.signup_path)

    def is_public(self, path: str) -> bool:
        return (
            path == self.login_path
            or self.is_signup(path)
            or any(path.startswith(p) for p in self.public_paths)
        )


@dataclass
class Location:
    """Where the user currently is."""

    path: str
    query: str = ""


@dataclass
class Redirect:
    """Navigation decision; `replace` means the current entry is not kept in history."""

    path: str
    replace: bool = False


@dataclass
class AuthResponse:
    """Result of a wrapped auth operation. `error` is set instead of raising."""

    error: AuthError | None = None
    user: User | None = None
    session: Session | None = None
    data: Any = None
    message: str | None = None


@dataclass
class RecoveryLink:
    """Token and error details carried by a password recovery link."""

    token: str | None = None
    type: str | None = None
    error_code: str | None = None
    error_description: str | None = None


class SessionManager:
    """Tracks one user's session and applies the redirect policy.

    Navigation decisions are passed to `navigate` when given and always
    recorded in `redirect`.
    """

    def __init__(
        self,
        auth: AsyncGoTrueClient,
        policy: AuthPolicy | None = None,
        location: Location | None = None,
        navigate: Callable[[Redirect], None] | None = None,
    ) -> None:
        self.auth = auth
        self.policy = policy or AuthPolicy()
        self.location = location or Location(path=self.policy.home_path)
        self.user: User | None = None
        self.loading = True
        self.redirect: Redirect | None = None
        self._navigate = navigate
        self._subscription: Subscription | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def navigate(self, path: str, replace: bool = False) -> None:
        self.redirect = Redirect(path=path, replace=replace)
        logger.debug("Navigating to %s (replace=%s)", path, replace)
        if self._navigate:
            self._navigate(self.redirect)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def get_session(self, force_refresh: bool = False) -> Session | None:
        """Return a usable session, refreshing it when needed.

        With `force_refresh` the session is always exchanged. Otherwise it is
        refreshed when it expires within `refresh_threshold` seconds. Errors
        are logged and reported as no session.
        """
        try:
            if force_refresh:
                return (await self.auth.refresh_session()).session

            session = await self.auth.get_session()
            if (
                session is not None
                and self.policy.auto_refresh_session
                and session.expires_at is not None
                and session.expires_at < time.time() + self.policy.refresh_threshold
            ):
                logger.debug(
                    "Session expires within %ss, refreshing", self.policy.refresh_threshold
                )
                session = (await self.auth.refresh_session(session.refresh_token)).session
            return session
        except AuthError as e:
            logger.error("Error in get_session: %s", e)
            return None

    async def initialize(self) -> None:
        """Load the session, subscribe to changes and apply the redirect policy."""
        session = await self.get_session()
        self.user = session.user if session else None
        self.loading = False

        if self._subscription is None:
            self._subscription = self.auth.on_auth_state_change(self.handle_auth_state_change)

        path = self.location.path
        if session is None and self.policy.require_auth and not self.policy.is_public(path):
            self.navigate(self.policy.login_path, replace=True)

    def handle_auth_state_change(self, event: str, session: Session | None) -> None:
        """Keep `user` in sync and redirect on sign-in / sign-out.

        Called synchronously by the auth client, which does not catch what
        a listener raises.
        """
        self.loading = True
        path = self.location.path
        query = self.location.query

        if event in (AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED, AuthEvent.USER_UPDATED):
            if session is not None and session.user is not None:
                self.user = session.user

            # Only leave the login page, never a signup flow
            if (
                path == self.policy.login_path
                and not self.policy.is_signup(path)
                and "from=signup" not in query
            ):
                self.navigate(self.policy.home_path)
        elif event == AuthEvent.SIGNED_OUT:
            self.user = None

            if (
                self.policy.require_auth
                and path != self.policy.login_path
                and not self.policy.is_signup(path)
            ):
                self.navigate(self.policy.login_path, replace=True)

        self.loading = False

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # ------------------------------------------------------------------
    # Wrapped operations
    # ------------------------------------------------------------------

    async def sign_up(
        self, email: str, password: str, user_data: dict[str, Any] | None = None
    ) -> AuthResponse:
        try:
            result = await self.auth.sign_up(
                {"email": email, "password": password, "options": {"data": user_data or {}}}
            )
        except AuthError as e:
            logger.error("Sign up error: %s", e)
            return AuthResponse(error=e)
        return AuthResponse(user=result.user, session=result.session, data=result.user)

    async def sign_in(self, email: str, password: str) -> AuthResponse:
        try:
            result = await self.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as e:
            logger.error("Sign in error: %s", e)
            return AuthResponse(error=e)
        return AuthResponse(user=result.user, session=result.session, data=result.session)

    async def sign_in_with_provider(self, provider: OAuthProvider | str) -> AuthResponse:
        try:
            provider = OAuthProvider(provider)
        except ValueError:
            logger.error("Sign in with unsupported provider %s", provider)
            return AuthResponse(
                error=AuthError(f"Unsupported provider: {provider}", "provider_not_supported")
            )

        try:
            result = await self.auth.sign_in_with_oauth(
                {
                    "provider": provider.value,
                    "options": {"redirect_to": f"{self.policy.site_url}{self.policy.home_path}"},
                }
            )
        except AuthError as e:
            logger.error("Sign in with %s error: %s", provider.value, e)
            return AuthResponse(error=e)
        return AuthResponse(data=result.url, message="Redirecting to provider...")

    async def sign_out(self) -> AuthResponse:
        try:
            await self.auth.sign_out()
        except AuthError as e:
            logger.error("Sign out error: %s", e)
            return AuthResponse(error=e)
        return AuthResponse()

    async def reset_password(self, email: str) -> AuthResponse:
        try:
            await self.auth.reset_password_for_email(
                email, {"redirect_to": f"{self.policy.site_url}/update-password"}
            )
        except AuthError as e:
            logger.error("Password reset error: %s", e)
            return AuthResponse(error=e)
        return AuthResponse()

    async def update_user(
        self,
        email: str | None = None,
        password: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> AuthResponse:
        changes = {"email": email, "password": password, "data": data}
        try:
            result = await self.auth.update_user(
                {key: value for key, value in changes.items() if value is not None}
            )
        except AuthError as e:
            logger.error("Update user error: %s", e)
            return AuthResponse(error=e)
        self.user = result.user
        return AuthResponse(user=result.user, data=result.user)

    async def update_password(self, new_password: str) -> AuthResponse:
        try:
            await self.auth.update_user({"password": new_password})
        except AuthError as e:
            logger.error("Update password error: %s", e)
            return AuthResponse(error=e)
        return AuthResponse()

    async def send_verification_email(self, email: str) -> AuthResponse:
        try:
            await self.auth.resend(
                {
                    "type": OtpType.signup.value,
                    "email": email,
                    "options": {"email_redirect_to": f"{self.policy.site_url}/verify-email"},
                }
            )
        except AuthError as e:
            logger.error("Send verification email error: %s", e)
            return AuthResponse(error=e)
        return AuthResponse()

    async def verify_email(self, token: str) -> AuthResponse:
        try:
            result = await self.auth.verify_otp(
                {"token_hash": token, "type": OtpType.email.value}
            )
        except AuthError as e:
            logger.error("Verify email error: %s", e)
            return AuthResponse(error=e)
        return AuthResponse(user=result.user, session=result.session, data=result.session)

    async def verify_recovery_token(self, token: str) -> AuthResponse:
        """Verify a token from a recovery link whose type is unknown.

        Email clients sometimes turn `+` into spaces, so those are restored
        first. Types are tried in `RECOVERY_TOKEN_TYPES` order.
        """
        clean_token = token.replace(" ", "+")
        for token_type in RECOVERY_TOKEN_TYPES:
            try:
                result = await self.auth.verify_otp(
                    {"token_hash": clean_token, "type": token_type.value}
                )
            except AuthError as e:
                logger.debug("Verification with type %s failed: %s", token_type.value, e)
                continue
            logger.info("Token verified with type %s", token_type.value)
            return AuthResponse(user=result.user, session=result.session, data=token_type)

        return AuthResponse(
            error=AuthError("Could not verify token with any known type", "invalid_token")
        )

    async def refresh_session(self) -> AuthResponse:
        session = await self.get_session(force_refresh=True)
        return AuthResponse(
            user=session.user if session else None, session=session, data=session
        )

    # ------------------------------------------------------------------
    # Status checks
    # ------------------------------------------------------------------

    def is_email_confirmed(self) -> bool:
        """Synchronous check against the user already loaded."""
        return bool(self.user and self.user.email_confirmed_at)

    async def check_email_confirmed(self) -> bool:
        session = await self.get_session()
        return bool(session and session.user and session.user.email_confirmed_at)

    async def is_session_valid(self) -> bool:
        session = await self.get_session()
        return bool(session and session.user)


def parse_recovery_link(url: str) -> RecoveryLink:
    """Pull the token and error details out of a recovery link.

    Auth servers and email clients disagree about where the token goes:
    the fragment (`#access_token=...&type=recovery`), the query
    (`?token=...`), a trailing path segment, or a bare fragment. The first
    one found wins, in that order.
    """
    parts = urlsplit(url)
    fragment = parse_qs(parts.fragment)
    query = parse_qs(parts.query)

    def first(params: dict[str, list[str]], *keys: str) -> str | None:
        for key in keys:
            if params.get(key):
                return params[key][0]
        return None

    segment = parts.path.rstrip("/").rsplit("/", 1)[-1]
    path_token = (
        segment
        if segment and segment != "update-password" and len(segment) > MIN_PATH_TOKEN_LENGTH
        else None
    )
    implicit_token = (
        parts.fragment
        if parts.fragment and "=" not in parts.fragment and "&" not in parts.fragment
        else None
    )

    token = (
        first(fragment, "access_token")
        or first(query, "token", "access_token")
        or path_token
        or implicit_token
    )
    token_type = first(fragment, "type") or first(query, "type") or ("recovery" if token else None)

    return RecoveryLink(
        token=token,
        type=token_type,
        error_code=first(fragment, "error_code") or first(query, "error_code"),
        error_description=(
            first(fragment, "error_description") or first(query, "error_description")
        ),
    )


def recovery_error_message(code: str, description: str | None = None) -> str:
    """User facing message for an error code carried by a recovery link."""
    messages = {
        "otp_expired": "This password reset link has expired. ",
        "invalid_token": "The password reset link is invalid. ",
        "access_denied": "Access denied. The link may have been used already or is invalid. ",
    }
    if code in messages:
        return messages[code] + "Please request a new password reset link."
    return description or "An error occurred while processing your request."
