"""Chat application factory."""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from huddle.exceptions import StorageConflictError, StorageError

from ._context import ServerContext
from ._routes import router


async def _conflict_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


async def _storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    context: ServerContext = request.app.state.context
    context.logger.error("storage_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage error"},
    )


def create_app(context: ServerContext) -> FastAPI:
    """Build the chat application for one running episode.

    Args:
        context: Store, registry, auth gate and logger of the episode.

    Returns:
        A FastAPI app serving the chat HTTP API and the WebSocket endpoint.
    """
    app = FastAPI(title="huddle", docs_url=None, redoc_url="/api-docs")
    app.state.context = context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StorageConflictError, _conflict_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)
    app.include_router(router)
    return app
