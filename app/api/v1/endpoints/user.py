"""
Account API endpoints.

Provides signup, login, session status, logout and user listing. Signup and
login set the session cookie; logout expires it.
"""

from fastapi import APIRouter, Depends, Response, Security, status

from app.core.security import UserContext, clear_session_cookie, get_current_user, set_session_cookie
from app.schemas.user import (
    ErrorResponse,
    LoginRequest,
    SignupRequest,
    UserListResponse,
    UserResponse,
    UserSummary,
)
from app.services.auth_service import AuthService
from app.services.database import UserStore, get_user_store

router = APIRouter()

ERROR_RESPONSES = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_auth_service(store: UserStore = Depends(get_user_store)) -> AuthService:
    return AuthService(store)


@router.get(
    "/",
    response_model=UserListResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Security(get_current_user)],
)
async def get_all_users(
    auth_service: AuthService = Depends(get_auth_service),
) -> UserListResponse:
    """List every account (id, name, email)."""
    users = await auth_service.list_users()
    return UserListResponse(users=[UserSummary(**u) for u in users])


@router.post(
    "/signup",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def signup(
    request: SignupRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """
    Create an account and start a session.

    **Request Body:**
    ```json
    {
        "name": "Ada",
        "email": "ada@example.com",
        "password": "secret"
    }
    ```

    Returns 409 if the email is already registered.
    """
    user, token = await auth_service.signup(name=request.name, email=request.email, password=request.password)
    set_session_cookie(response, token)
    return UserResponse(name=user.name, email=user.email)


@router.post("/login", response_model=UserResponse, responses=ERROR_RESPONSES)
async def login(
    request: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """
    Login with email and password.

    Sets an httpOnly session cookie valid for seven days.
    Returns 409 for an unknown email and 403 for a wrong password.
    """
    user, token = await auth_service.login(email=request.email, password=request.password)
    set_session_cookie(response, token)
    return UserResponse(name=user.name, email=user.email)


@router.get("/auth-status", response_model=UserResponse, responses=ERROR_RESPONSES)
async def verify_user(
    user_ctx: UserContext = Security(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Confirm the session cookie still maps to an existing user."""
    user = await auth_service.get_verified_user(user_ctx.user_id)
    return UserResponse(name=user.name, email=user.email)


@router.get("/logout", response_model=UserResponse, responses=ERROR_RESPONSES)
async def logout(
    response: Response,
    user_ctx: UserContext = Security(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """End the session by expiring the cookie."""
    user = await auth_service.get_verified_user(user_ctx.user_id)
    clear_session_cookie(response)
    return UserResponse(name=user.name, email=user.email)
