# =============================================================================
# ADAPTIVE AUTH - AUTH ROUTES
# =============================================================================
# File: api/v1/auth_routes.py
# Description: Registration, login, logout and profile endpoints
# =============================================================================

from typing import NoReturn

from fastapi import APIRouter, status

from adaptive_auth.api.dependencies import ClientEngine
from adaptive_auth.auth.schemas import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    SchemaResponse,
    TokenLoginRequest,
    UpdateUserRequest,
)
from adaptive_auth.auth.service import AuthenticationEngine
from adaptive_auth.core.exceptions import AuthenticationError, AuthSystemException


router = APIRouter(prefix="/auth", tags=["Authentication"])


def raise_recorded(engine: AuthenticationEngine) -> NoReturn:
    """Re-raise the failure the engine recorded so the handler renders it."""
    raise engine.last_exception or AuthSystemException()


async def require_login(engine: AuthenticationEngine) -> str:
    user = await engine.current_user()
    if user is None:
        raise AuthenticationError(message="Not authenticated")
    return str(user[engine.mapping.login_column])


# =============================================================================
# REGISTRATION
# =============================================================================

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="Create an account; `fields` must cover the table's mandatory columns.",
)
async def register(payload: RegisterRequest, engine: ClientEngine) -> AuthResponse:
    if not await engine.create_account(payload.login, payload.password, payload.fields):
        raise_recorded(engine)
    return AuthResponse(success=True, message="Account created")


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================

@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Authenticate",
    description="Check credentials and open the session bound to the client cookie.",
)
async def login(payload: LoginRequest, engine: ClientEngine) -> AuthResponse:
    """
    Authenticate with login and password.

    Every failure (unknown login, wrong password, too many attempts)
    answers 401 with the same error code.
    """
    if not await engine.authenticate(payload.login, payload.password):
        raise_recorded(engine)
    return AuthResponse(
        success=True,
        message="Login successful",
        user=await engine.current_user(),
    )


@router.post(
    "/login/token",
    response_model=AuthResponse,
    summary="Authenticate with a one-time token",
)
async def login_with_token(payload: TokenLoginRequest, engine: ClientEngine) -> AuthResponse:
    if not await engine.authenticate_with_token(payload.token):
        raise_recorded(engine)
    return AuthResponse(
        success=True,
        message="Login successful",
        user=await engine.current_user(),
    )


@router.post("/logout", response_model=MessageResponse, summary="Close the session")
async def logout(engine: ClientEngine) -> MessageResponse:
    await engine.logout()
    return MessageResponse(message="Logged out")


# =============================================================================
# CURRENT USER
# =============================================================================

@router.get("/me", response_model=AuthResponse, summary="Current user")
async def me(engine: ClientEngine) -> AuthResponse:
    user = await engine.current_user()
    if user is None:
        raise AuthenticationError(message="Not authenticated")
    return AuthResponse(success=True, message="Authenticated", user=user)


@router.patch("/me", response_model=AuthResponse, summary="Update the current user")
async def update_me(payload: UpdateUserRequest, engine: ClientEngine) -> AuthResponse:
    login = await require_login(engine)
    if not await engine.update_user(login, payload.fields):
        raise_recorded(engine)
    return AuthResponse(success=True, message="Profile updated", user=await engine.current_user())


@router.delete("/me", response_model=MessageResponse, summary="Delete the current user")
async def delete_me(engine: ClientEngine) -> MessageResponse:
    login = await require_login(engine)
    if not await engine.delete_user(login):
        raise_recorded(engine)
    return MessageResponse(message="Account deleted")


# =============================================================================
# SCHEMA
# =============================================================================

@router.get(
    "/schema",
    response_model=SchemaResponse,
    summary="User table structure",
    description="Columns of the user table and the fields registration must supply.",
)
async def schema(engine: ClientEngine) -> SchemaResponse:
    mapping = engine.mapping
    return SchemaResponse(
        table_name=mapping.table_name,
        login_column=mapping.login_column,
        password_column=mapping.password_column,
        columns=engine.table_schema(),
        mandatory_fields=engine.mandatory_fields(),
    )
