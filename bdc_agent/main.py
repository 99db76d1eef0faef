import hmac
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import db
from .api_inventory import router as inventory_router
from .config import Settings, init_logging, load_settings
from .errors import ConfigError, UpstreamError
from .openai_client import OpenAIClient
from .reply_service import EmptyConversationError, ReplyRequest, ReplyResponse, ReplyService

logger = logging.getLogger(__name__)

REPLY_PATH = "/agent/reply"


class ReplyRejected(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _reply_error(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    body = ReplyResponse(suggestions=[], error=error, detail=detail)
    return JSONResponse(status_code=status_code, content=body.to_payload())


def verify_bearer(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """
    Reject before any upstream work: no server token configured, or the
    caller's bearer token does not match it.
    """
    settings: Settings = request.app.state.settings
    try:
        settings.require_agent_bearer()
    except ConfigError as e:
        logger.error("%s", e)
        raise ReplyRejected(500, str(e)) from e

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        token.strip().encode(), settings.agent_bearer.encode()
    ):
        raise ReplyRejected(401, "Unauthorized")


def get_reply_service(request: Request) -> ReplyService:
    settings: Settings = request.app.state.settings
    llm = OpenAIClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.openai_timeout,
    )
    return ReplyService(llm)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db.init_db(settings.db_path)
        logger.info("Inventory database ready at %s", settings.db_path)
        yield

    app = FastAPI(title="BDC Agent API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials="*" not in settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ReplyRejected)
    async def reply_rejected_handler(request: Request, exc: ReplyRejected):
        return _reply_error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        # The chat widget renders `suggestions` unconditionally.
        if request.url.path == REPLY_PATH:
            return _reply_error(422, "Invalid request body")
        return await request_validation_exception_handler(request, exc)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.post(REPLY_PATH, dependencies=[Depends(verify_bearer)])
    def agent_reply(
        payload: ReplyRequest,
        service: ReplyService = Depends(get_reply_service),
    ):
        try:
            result = service.suggest(payload)
        except EmptyConversationError as e:
            return _reply_error(400, str(e))
        except ConfigError as e:
            logger.error("%s", e)
            return _reply_error(500, str(e))
        except UpstreamError as e:
            logger.warning("Reply suggestion failed (%s): %s", e.kind, e.message)
            return _reply_error(e.status_code, e.message, e.detail)
        return result.to_payload()

    # /api/inventory: search + stats + sync trigger + detail
    app.include_router(inventory_router, prefix="/api/inventory", tags=["inventory"])
    return app


def run() -> None:
    settings = load_settings()
    init_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
