from __future__ import annotations

from typing import Any, Dict

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, Form, HTTPException, Security, status
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..database import get_database
from ..models.user import AuthResponse, UserCreate, UserPublic
from ..services.lifecycle import UserRole, utcnow
from ..utils.logging import log_db_error
from ..utils.security import InvalidTokenError, create_access_token, decode_access_token, hash_password, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

OTHER_ROLE: Dict[str, UserRole] = {"donor": "hospital", "hospital": "donor"}


async def get_account_collection(database: AsyncIOMotorDatabase = Depends(get_database)) -> AsyncIOMotorCollection:
    return database.get_collection("accounts")


def _public(account: Dict[str, Any]) -> UserPublic:
    return UserPublic(**{**account, "_id": str(account["_id"])})


def landing_route(role: str, profile_completed: bool) -> str:
    return f"/{role}/dashboard" if profile_completed else f"/{role}/profile-setup"


def _duplicate_detail(requested_role: str, existing_role: str | None) -> str:
    if existing_role and existing_role != requested_role:
        return (
            f"This email is already registered as a {existing_role}. "
            f"Please use a different email or login to {existing_role} portal."
        )
    return "Email already registered"


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register_user(
    payload: UserCreate, accounts: AsyncIOMotorCollection = Depends(get_account_collection)
) -> UserPublic:
    try:
        existing = await accounts.find_one({"email": payload.email})
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=_duplicate_detail(payload.role, existing.get("role")),
            )
        doc = {
            "email": payload.email,
            "password": hash_password(payload.password),
            "role": payload.role,
            "profile_completed": False,
            "created_at": utcnow(),
        }
        try:
            result = await accounts.insert_one(doc)
        except DuplicateKeyError as exc:
            # lost a race with a concurrent registration for the same email
            winner = await accounts.find_one({"email": payload.email})
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=_duplicate_detail(payload.role, winner.get("role") if winner else None),
            ) from exc
        stored = await accounts.find_one({"_id": result.inserted_id})
    except PyMongoError as exc:  # pragma: no cover - requires external service
        log_db_error("register_user", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Registration failed. Try again when database is available.",
        ) from exc
    return _public(stored)


class LoginForm:
    def __init__(
        self,
        username: str = Form(...),
        password: str = Form(...),
        role: UserRole = Form(...),
    ) -> None:
        self.username = username.strip().lower()
        self.password = password
        self.role = role


@router.post("/login", response_model=AuthResponse)
async def login_user(
    form_data: LoginForm = Depends(), accounts: AsyncIOMotorCollection = Depends(get_account_collection)
) -> AuthResponse:
    try:
        account = await accounts.find_one({"email": form_data.username})
    except PyMongoError as exc:  # pragma: no cover
        log_db_error("login_user", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login unavailable. Try again shortly.",
        ) from exc
    if not account or not verify_password(form_data.password, account.get("password", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password")
    if account.get("role") != form_data.role:
        other = OTHER_ROLE[form_data.role]
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=(
                f"This account is not registered as a {form_data.role}. "
                f"Please sign up as a {form_data.role} or login to {other} portal."
            ),
        )
    user = _public(account)
    token = create_access_token(user.id, user.role)
    return AuthResponse(
        access_token=token,
        user=user,
        redirect=landing_route(user.role, user.profile_completed),
        message="Welcome back",
    )


async def resolve_token(token: str, accounts: AsyncIOMotorCollection) -> UserPublic:
    try:
        payload = decode_access_token(token)
        object_id = ObjectId(payload.sub)
    except InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except (InvalidId, TypeError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject") from exc
    account = await accounts.find_one({"_id": object_id})
    if not account:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account no longer exists")
    user = _public(account)
    if user.role != payload.role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token role does not match account")
    return user


async def get_current_user(
    token: str | None = Security(oauth2_scheme),
    accounts: AsyncIOMotorCollection = Depends(get_account_collection),
) -> UserPublic:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization token")
    return await resolve_token(token, accounts)


def require_roles(*roles: UserRole):
    def dependency(user: UserPublic = Depends(get_current_user)) -> UserPublic:
        if roles and user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions for this action",
            )
        return user

    return dependency


@router.get("/me", response_model=UserPublic)
async def read_current_user(user: UserPublic = Depends(get_current_user)) -> UserPublic:
    return user
