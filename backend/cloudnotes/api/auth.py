from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status

from cloudnotes.errors import Unauthenticated
from cloudnotes.models.auth import LoginRequest, RegisterRequest, TokenResponse, VerifyResponse
from cloudnotes.storage.users_store import UsersStore
from cloudnotes.utils.auth_gate import get_tenant_id
from cloudnotes.utils.auth_hash import hash_password, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


def get_users(request: Request) -> UsersStore:
    return request.app.state.users


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, request: Request, users: UsersStore = Depends(get_users)):
    hpw = hash_password(req.password, request.app.state.pwd_context)  # never store plaintext
    users.create(req.user_id, hpw, name=req.name, email=req.email)
    return {"user_id": req.user_id}


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, request: Request, users: UsersStore = Depends(get_users)):
    rec = users.get(req.user_id)
    if rec is None:
        raise Unauthenticated("Invalid credentials")

    if not verify_password(req.password, rec.hashed_password, request.app.state.pwd_context):
        raise Unauthenticated("Invalid credentials")

    token = request.app.state.identity.create_access_token(subject=req.user_id)
    return TokenResponse(access_token=token)


@router.get("/verify", response_model=VerifyResponse)
def verify(tenant_id: str = Depends(get_tenant_id), users: UsersStore = Depends(get_users)):
    return VerifyResponse(userId=tenant_id, profile=users.get_profile(tenant_id))
