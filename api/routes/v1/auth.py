"""
api/routes/v1/auth.py -- Session REST endpoints.

Routes (mounted under /api/auth):
  POST /signup   -- register a user; 201
  POST /login    -- verify password; issue access + refresh tokens
  POST /logout   -- revoke a refresh token (requires bearer access token)
  POST /refresh  -- exchange a refresh token for a new access token

Handlers are thin: unpack the body, call the SessionManager on app.state,
map the result onto a response model. Failures are ServiceError subclasses
raised by the manager (or by require_access_token) and rendered by the
exception handler in api/main.py -- no handler here builds an error body.

Security:
  [H2] POST /login is rate-limited to 10 requests/minute per client IP.
  [C1] Unknown email and wrong password return the identical 401 body.
  [M5] Cache-Control: no-store on responses that carry tokens.
"""

from fastapi import APIRouter, Depends, Request, Response
from slowapi import Limiter

from api.limiter import LOGIN_RATE_LIMIT
from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RefreshTokenRequest,
    SignupRequest,
    SignupResponse,
    UserResponse,
)
from auth.dependencies import require_access_token
from auth.models import AccessClaims
from auth.session import SessionManager


def _manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def signup(request: Request, body: SignupRequest) -> SignupResponse:
    """Register a new user. The password hash is never returned."""
    user = _manager(request).signup(body.email, body.password, body.name)
    return SignupResponse(user=UserResponse.from_public(user))


def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password; return both tokens and the user."""
    result = _manager(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user=UserResponse.from_public(result.user),
    )


def logout(
    request: Request,
    body: RefreshTokenRequest,
    claims: AccessClaims = Depends(require_access_token),
) -> MessageResponse:
    """Revoke a refresh token. Idempotent: unknown tokens still return 200.

    The caller's access token is not revoked; it lapses at its own exp.
    """
    _manager(request).logout(body.refresh_token)
    return MessageResponse(message="Logout successful")


def refresh(request: Request, response: Response, body: RefreshTokenRequest) -> RefreshResponse:
    """Exchange a live refresh token for a new access token. No rotation."""
    access_token = _manager(request).refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return RefreshResponse(access_token=access_token)


def create_router(limiter: Limiter) -> APIRouter:
    """Build the auth router with login wrapped by the app's limiter.

    Auth policy:
    - POST /signup:   public
    - POST /login:    public, rate-limited
    - POST /refresh:  public -- the refresh token is the credential
    - POST /logout:   requires bearer access token (require_access_token)

    The limiter must wrap the handler itself, before registration: the route
    has to call the wrapper, and SlowAPIMiddleware skips decorated routes on
    the assumption that the wrapper enforces the limit [H2].
    """
    router = APIRouter()
    router.add_api_route("/signup", signup, methods=["POST"], response_model=SignupResponse, status_code=201)
    router.add_api_route(
        "/login",
        limiter.limit(LOGIN_RATE_LIMIT)(login),
        methods=["POST"],
        response_model=LoginResponse,
    )
    router.add_api_route("/logout", logout, methods=["POST"], response_model=MessageResponse)
    router.add_api_route("/refresh", refresh, methods=["POST"], response_model=RefreshResponse)
    return router
