"""FastAPI dependencies."""

from typing import Annotated, cast

from fastapi import Depends, Header, HTTPException, status
from starlette.requests import HTTPConnection

from huddle.auth import Identity
from huddle.exceptions import AuthError, UnauthenticatedError

from ._context import ServerContext


def get_context(connection: HTTPConnection) -> ServerContext:
    return cast("ServerContext", connection.app.state.context)


Context = Annotated[ServerContext, Depends(get_context)]


def require_identity(
    context: Context,
    authorization: Annotated[str | None, Header()] = None,
) -> Identity:
    """Resolve the bearer token to an identity.

    Raises:
        HTTPException: 401 when no usable credential is present, 403 when the
            credential is invalid or expired.
    """
    try:
        return context.gate.authenticate_header(authorization)
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from e


CurrentIdentity = Annotated[Identity, Depends(require_identity)]
