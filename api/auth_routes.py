"""Authentication endpoints.

Thin HTTP layer over `SessionManager`: every handler calls one wrapped
operation and turns its `AuthResponse` into JSON. Session cookies follow
the auth events and are written once the response is ready.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from baas.session import (
    AuthResponse,
    SessionManager,
    parse_recovery_link,
    recovery_error_message,
)
from shared.types import OAuthProvider

from .dependencies import get_session_manager
from .schemas import (
    Account,
    AuthOut,
    Credentials,
    EmailIn,
    SignUpIn,
    TokenIn,
    UpdatePasswordIn,
    UpdateUserIn,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _raise_for_error(result: AuthResponse, status_code: int = 400) -> None:
    if result.error is not None:
        raise HTTPException(
            status_code=429 if getattr(result.error, "status", None) == 429 else status_code,
            detail={"message": result.error.message, "code": result.error.code},
        )


def _auth_out(manager: SessionManager, message: str | None = None) -> AuthOut:
    return AuthOut(
        authenticated=manager.is_authenticated,
        user=Account.model_validate(manager.user) if manager.user else None,
        email_confirmed=manager.is_email_confirmed(),
        message=message,
        redirect=manager.redirect.path if manager.redirect else None,
    )


@router.post("/signup", response_model=AuthOut)
async def sign_up(
    body: SignUpIn, manager: SessionManager = Depends(get_session_manager)
) -> AuthOut:
    """Register a user.

    Without a session in the response the user has to confirm their email
    first.
    """
    result = await manager.sign_up(body.email, body.password, body.data)
    _raise_for_error(result)
    if result.session is None:
        out = _auth_out(manager, "Check your email to confirm your account")
        out.user = Account.model_validate(result.user) if result.user else None
        return out
    return _auth_out(manager, "Account created")


@router.post("/login", response_model=AuthOut)
async def login(
    body: Credentials, manager: SessionManager = Depends(get_session_manager)
) -> AuthOut:
    result = await manager.sign_in(body.email, body.password)
    _raise_for_error(result, status_code=401)
    return _auth_out(manager)


@router.get("/oauth/{provider}", response_model=AuthOut)
async def oauth(provider: str, manager: SessionManager = Depends(get_session_manager)) -> AuthOut:
    """URL of the provider's consent page; the client navigates there."""
    if provider not in {p.value for p in OAuthProvider}:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
    result = await manager.sign_in_with_provider(provider)
    _raise_for_error(result)
    out = _auth_out(manager, result.message)
    out.url = result.data
    return out


@router.post("/logout", response_model=AuthOut)
async def logout(manager: SessionManager = Depends(get_session_manager)) -> AuthOut:
    result = await manager.sign_out()
    _raise_for_error(result, status_code=502)
    return _auth_out(manager)


@router.post("/reset-password", response_model=AuthOut)
async def reset_password(
    body: EmailIn, manager: SessionManager = Depends(get_session_manager)
) -> AuthOut:
    result = await manager.reset_password(body.email)
    _raise_for_error(result)
    return _auth_out(manager, "Check your email for the password reset link")


@router.post("/update-password", response_model=AuthOut)
async def update_password(
    body: UpdatePasswordIn, manager: SessionManager = Depends(get_session_manager)
) -> AuthOut:
    """Set a new password from a recovery link, or for the signed-in user.

    On success the user is signed out and sent to the login page.
    """
    if body.password != body.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")

    token = body.token
    if body.link:
        link = parse_recovery_link(body.link)
        if link.error_code:
            raise HTTPException(
                status_code=400,
                detail=recovery_error_message(link.error_code, link.error_description),
            )
        token = token or link.token

    if token:
        verified = await manager.verify_recovery_token(token)
        if verified.error is not None:
            raise HTTPException(
                status_code=400, detail=recovery_error_message("invalid_token")
            )
    elif not manager.is_authenticated:
        raise HTTPException(
            status_code=400, detail=recovery_error_message("invalid_token")
        )

    result = await manager.update_password(body.password)
    if result.error is not None:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Failed to update password: {result.error.message}. "
                "Please try requesting a new password reset link."
            ),
        )

    logger.info("Password updated, signing out")
    await manager.sign_out()
    out = _auth_out(manager, "Password updated successfully")
    out.redirect = manager.policy.login_path
    return out


@router.post("/resend-verification", response_model=AuthOut)
async def resend_verification(
    body: EmailIn, manager: SessionManager = Depends(get_session_manager)
) -> AuthOut:
    result = await manager.send_verification_email(body.email)
    _raise_for_error(result)
    return _auth_out(manager, "Verification email sent")


@router.post("/verify", response_model=AuthOut)
async def verify(body: TokenIn, manager: SessionManager = Depends(get_session_manager)) -> AuthOut:
    result = await manager.verify_email(body.token)
    _raise_for_error(result)
    return _auth_out(manager, "Email verified")


@router.post("/refresh", response_model=AuthOut)
async def refresh(manager: SessionManager = Depends(get_session_manager)) -> AuthOut:
    result = await manager.refresh_session()
    if result.session is None:
        raise HTTPException(status_code=401, detail="Session could not be refreshed")
    return _auth_out(manager)


@router.get("/me", response_model=AuthOut)
async def me(manager: SessionManager = Depends(get_session_manager)) -> AuthOut:
    """Current user, or `authenticated: false` with the login redirect."""
    return _auth_out(manager)


@router.patch("/me", response_model=AuthOut)
async def update_me(
    body: UpdateUserIn, manager: SessionManager = Depends(get_session_manager)
) -> AuthOut:
    if not manager.is_authenticated:
        raise HTTPException(status_code=401, detail="Not authenticated")
    result = await manager.update_user(email=body.email, password=body.password, data=body.data)
    _raise_for_error(result)
    return _auth_out(manager, "Profile updated")
