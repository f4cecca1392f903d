from __future__ import annotations

from fastapi import APIRouter, HTTPException

from portal.schemas import LoginRequest, LoginResponse, TokenSchema, UserSchema

from ..dependencies import CurrentUser, authenticate_credentials

router = APIRouter(prefix="/auth", tags=["auth"])

TOKEN_TTL_SECONDS = 3600


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest) -> LoginResponse:
    account = authenticate_credentials(payload.username, payload.password)
    if account is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return LoginResponse(
        success=True,
        message="Login successful",
        user=UserSchema(
            id=account.user_id,
            username=account.username,
            display_name=account.display_name,
            roles=[role.value for role in account.roles],
        ),
        token=TokenSchema(access_token=account.token, expires_in=TOKEN_TTL_SECONDS),
    )


@router.get("/me", response_model=UserSchema)
async def me(user: CurrentUser) -> UserSchema:
    return UserSchema(
        id=user.user_id,
        username=user.username,
        display_name=user.display_name,
        roles=[role.value for role in user.roles],
    )
