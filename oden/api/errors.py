import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from oden.core.locks import LockTimeout
from oden.domain.errors import INVARIANT, GameError
from oden.schemas.common import ErrorBody, ErrorOut

logger = logging.getLogger(__name__)


async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    if exc.category == INVARIANT:
        logger.error("invariant violated on %s %s: %s", request.method, request.url.path, exc.to_dict())
    else:
        logger.info("rejected %s %s: %s", request.method, request.url.path, exc.kind)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorOut(error=ErrorBody(kind=exc.kind, message=exc.message)).model_dump(),
    )


async def lock_timeout_handler(request: Request, exc: LockTimeout) -> JSONResponse:
    logger.warning("lock timeout on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content=ErrorOut(error=ErrorBody(kind="busy", message="Try again shortly")).model_dump(),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(LockTimeout, lock_timeout_handler)
