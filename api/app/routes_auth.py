"""Restaurant registration and login."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import Token, create_access_token, hash_password, verify_password
from .db import get_session
from .deps.tenant import get_tenant_id
from .repos_sqlalchemy import restaurants_repo_sql
from .schemas import PasswordChange
from .utils.responses import ok

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger("api.auth")


class RegisterPayload(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=128)


@router.post("/register")
async def register(
    payload: RegisterPayload, session: AsyncSession = Depends(get_session)
) -> dict:
    """Create a restaurant account and return its access token."""

    if await restaurants_repo_sql.get_by_email(session, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    restaurant = await restaurants_repo_sql.create_restaurant(
        session,
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
    )
    logger.info("restaurant registered", extra={"restaurant": restaurant.id})
    token = create_access_token(restaurant.id, {"email": restaurant.email, "name": restaurant.name})
    return ok(Token(access_token=token, restaurant_id=restaurant.id).model_dump())


@router.post("/login")
async def login(
    form: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Exchange email and password for a bearer token."""

    restaurant = await restaurants_repo_sql.get_by_email(session, form.username)
    if restaurant is None or not verify_password(form.password, restaurant.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    token = create_access_token(restaurant.id, {"email": restaurant.email, "name": restaurant.name})
    return ok(Token(access_token=token, restaurant_id=restaurant.id).model_dump())


@router.put("/change-password")
async def change_password(
    payload: PasswordChange,
    restaurant_id: str = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_session),
) -> dict:
    """Replace the signed-in restaurant's password after checking the current one."""

    restaurant = await restaurants_repo_sql.get_restaurant(session, restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Restaurant not found")
    if not verify_password(payload.current_password, restaurant.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect"
        )
    await restaurants_repo_sql.update_restaurant(
        session, restaurant_id, password_hash=hash_password(payload.new_password)
    )
    logger.info("password changed", extra={"restaurant": restaurant_id})
    return ok({"message": "Password changed successfully"})
