from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from shared.database import init_db, make_engine, make_session_factory
from .config import Settings, load_settings
from .errors import InvalidInput, QuizError, StoreFailure
from .routes import build_router

logger = logging.getLogger("quiz-service")


def _error_response(err: QuizError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content=err.payload())


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    engine = make_engine(settings.database_url)
    init_db(engine)
    SessionLocal = make_session_factory(engine)

    app = FastAPI(title="Quiz Service", version="1.0.0")
    app.state.settings = settings
    app.state.SessionLocal = SessionLocal

    origins = list(settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject "*" with credentials
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(QuizError)
    async def quiz_error_handler(request: Request, exc: QuizError):
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = {}
        for e in exc.errors():
            loc = [str(p) for p in e.get("loc", ()) if p not in ("body", "query")]
            errors[".".join(loc) or "body"] = e.get("msg", "Invalid value")
        return _error_response(InvalidInput("Invalid request", errors))

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Store failure on %s: %s", request.url.path, exc)
        return _error_response(StoreFailure("Storage temporarily unavailable"))

    @app.get("/health", operation_id="health_check", tags=["Health"])
    def health_check():
        return {"status": "healthy", "service": "quiz-service"}

    app.include_router(build_router(SessionLocal, settings), prefix="/quiz", tags=["Quiz"])
    return app


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.getenv("PORT", "8004"))
    uvicorn.run("quiz_service.main:create_app", factory=True, host="0.0.0.0", port=port)
