"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /auth/register         -- create account; welcome message
  POST /auth/login            -- password check; token or 2FA challenge
  POST /auth/verify-2fa       -- exchange pending 2FA code for a token
  POST /auth/forgot-password  -- issue reset token (always 200 {ok:true})
  POST /auth/reset-password   -- exchange reset token for a new password
  GET  /auth/me               -- current session's user (Bearer token)
  POST /auth/two-factor       -- enable/disable 2FA (Bearer token)

Security:
  Every route carries the shared "auth" rate limit (AUTH_RATE_LIMIT per
  client address across the whole /auth surface).
  Login and verify responses set Cache-Control: no-store -- they carry
  session tokens.
  Handlers are thin: validation, state changes, and notification ordering all
  live in AuthService. Service errors (AuthError) are turned into the error
  envelope by the handler in api/main.py.

Handlers are plain `def` so FastAPI runs them in its threadpool; bcrypt and
SMTP calls block.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import auth_limit
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    OkResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
    TwoFactorToggleRequest,
    TwoFactorToggleResponse,
    UserRef,
    VerifyTwoFactorRequest,
)
from auth.dependencies import get_auth_service, get_current_user
from auth.models import User
from auth.service import AuthService

router = APIRouter()


def _no_store(payload: dict) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=payload)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=RegisterResponse)
@auth_limit
def register(
    request: Request,
    body: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    """Create an account with 2FA enabled. Returns the new id and email, never the hash."""
    result = service.register(body.name, body.email, body.password)
    return RegisterResponse(user=UserRef(**result))


@router.post("/auth/login", response_model=LoginResponse)
@auth_limit
def login(
    request: Request,
    body: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with email and password.

    Returns the same generic error for unknown email and wrong password to
    avoid leaking account existence.
    """
    result = service.login(body.email, body.password)
    resp = LoginResponse(
        token=result.token,
        two_fa_required=True if result.two_fa_required else None,
        user=UserRef(id=result.user_id, email=result.email),
    )
    return _no_store(resp.model_dump(by_alias=True, exclude_none=True))


@router.post("/auth/verify-2fa", response_model=TokenResponse)
@auth_limit
def verify_two_factor(
    request: Request,
    body: VerifyTwoFactorRequest,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Exchange the delivered 2FA code for a session token. Single use."""
    token = service.verify_two_factor(body.user_id, body.code)
    return _no_store(TokenResponse(token=token).model_dump())


@router.post("/auth/forgot-password", response_model=OkResponse)
@auth_limit
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> OkResponse:
    """Send a reset token if the account exists. The response never says which."""
    service.forgot_password(body.email)
    return OkResponse()


@router.post("/auth/reset-password", response_model=OkResponse)
@auth_limit
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> OkResponse:
    service.reset_password(body.email, body.reset_token, body.new_password)
    return OkResponse()


# ---------------------------------------------------------------------------
# Session endpoints (Bearer token)
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
@auth_limit
def me(request: Request, current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the current session."""
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        two_fa_enabled=current_user.two_fa_enabled,
    )


@router.post("/auth/two-factor", response_model=TwoFactorToggleResponse)
@auth_limit
def set_two_factor(
    request: Request,
    body: TwoFactorToggleRequest,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> TwoFactorToggleResponse:
    """Enable or disable the emailed second factor for the current user."""
    enabled = service.set_two_factor(current_user.id, body.enabled)
    return TwoFactorToggleResponse(two_fa_enabled=enabled)
