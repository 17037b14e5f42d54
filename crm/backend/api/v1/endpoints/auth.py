"""
Authentication API Endpoints.

Password login and administrator impersonation. Tokens are stateless JWTs;
ending an impersonation issues a fresh token for the original user.
"""

from fastapi import APIRouter

from crm.backend.core.dependencies import AuthUser, DbSession
from crm.backend.schemas.auth import ImpersonateRequest, LoginRequest, MeResponse, TokenResponse, UserResponse
from crm.backend.schemas.base import ApiResponse
from crm.backend.services.auth import AuthService

router = APIRouter()


@router.post("/login", response_model=ApiResponse[TokenResponse], summary="Log in with email and password")
async def login(data: LoginRequest, db: DbSession) -> ApiResponse[TokenResponse]:
    token, user = await AuthService(db).login(data.email, data.password)
    return ApiResponse(data=TokenResponse(access_token=token, user=UserResponse.model_validate(user)))


@router.post("/impersonate", response_model=ApiResponse[TokenResponse], summary="Act as another user")
async def impersonate(data: ImpersonateRequest, db: DbSession, user: AuthUser) -> ApiResponse[TokenResponse]:
    token, target = await AuthService(db).impersonate(user, data.user_id)
    return ApiResponse(data=TokenResponse(
        access_token=token,
        user=UserResponse.model_validate(target),
        impersonating=True,
    ))


@router.post("/impersonate/end", response_model=ApiResponse[TokenResponse], summary="Switch back to the original user")
async def end_impersonation(db: DbSession, user: AuthUser) -> ApiResponse[TokenResponse]:
    token, original = await AuthService(db).end_impersonation(user)
    return ApiResponse(data=TokenResponse(access_token=token, user=UserResponse.model_validate(original)))


@router.get("/me", response_model=ApiResponse[MeResponse], summary="Identity carried by the token")
async def me(user: AuthUser) -> ApiResponse[MeResponse]:
    return ApiResponse(data=MeResponse.model_validate(user))
