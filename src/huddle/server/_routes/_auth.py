"""Registration, login and bulk user import."""

import anyio
from fastapi import APIRouter, HTTPException, Request, status

from huddle.auth import hash_password, verify_password
from huddle.exceptions import AuthError, StorageError
from huddle.server._deps import Context, CurrentIdentity
from huddle.server._schemas import (
    AutoLoginRequest,
    ImportUsersResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
)
from huddle.storage import UserSummary, parse_users_csv

router = APIRouter(prefix="", tags=["auth"])

_INVALID_CREDENTIALS = "Invalid user id or password"


def _unauthorized(detail: str = _INVALID_CREDENTIALS) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, context: Context) -> MessageResponse:
    password_hash = await anyio.to_thread.run_sync(hash_password, body.password)
    created = await context.store.run(
        context.store.db.create_user, body.id, body.username, password_hash
    )
    if not created:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User id {body.id} is already registered",
        )
    context.logger.info("user_registered", user_id=body.id)
    return MessageResponse(message="Registration complete")


@router.post("/login")
async def login(body: LoginRequest, context: Context) -> LoginResponse:
    user = await context.store.run(context.store.db.get_user, body.id)
    if user is None:
        raise _unauthorized()
    matches = await anyio.to_thread.run_sync(verify_password, body.password, user.password)
    if not matches:
        raise _unauthorized()
    return LoginResponse(
        user=UserSummary(id=user.id, username=user.username),
        token=context.gate.issue(user.id, user.username),
    )


@router.post("/login/auto")
async def auto_login(body: AutoLoginRequest, context: Context) -> LoginResponse:
    """Exchange a still-valid token for a fresh one."""
    try:
        identity = context.gate.authenticate_token(body.token)
    except AuthError as e:
        raise _unauthorized(str(e)) from e

    user = await context.store.run(context.store.db.get_user, identity.user_id)
    if user is None:
        raise _unauthorized("User no longer exists")
    return LoginResponse(
        user=UserSummary(id=user.id, username=user.username),
        token=context.gate.issue(user.id, user.username),
    )


def _hash_rows(rows: list[tuple[int, str, str]]) -> list[tuple[int, str, str]]:
    return [(user_id, name, hash_password(password)) for user_id, name, password in rows]


@router.post("/import-users-csv")
async def import_users_csv(
    request: Request,
    identity: CurrentIdentity,
    context: Context,
) -> ImportUsersResponse:
    """Import users from a CSV body with id, username and password columns."""
    raw = await request.body()
    try:
        rows, dropped = parse_users_csv(raw.decode("utf-8-sig"))
    except UnicodeDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="CSV body is not UTF-8"
        ) from e
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    hashed = await anyio.to_thread.run_sync(_hash_rows, rows)
    result = await context.store.run(context.store.db.import_users, hashed)
    context.logger.info(
        "users_imported",
        by=identity.key,
        imported=result.imported,
        skipped=result.skipped + dropped,
    )
    return ImportUsersResponse(imported=result.imported, skipped=result.skipped + dropped)
