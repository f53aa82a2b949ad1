"""FastAPI application factory and global exception handling."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from page_digest import __version__ as app_version
from page_digest.api.routes import router
from page_digest.config import get_settings
from page_digest.pipeline.service import DigestService, create_digest_service


def create_application(service: Optional[DigestService] = None) -> FastAPI:
    """Create and configure the FastAPI application instance."""
    service = service or create_digest_service()
    settings = service.settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Summarize or translate page content with Gemini.",
        version=app_version,
    )
    app.state.digest_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "validation_error", "details": _jsonable(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        detail = exc.detail
        if isinstance(detail, dict) and "error" in detail:
            payload = detail
        elif detail == "There was an error parsing the body":
            payload = {"error": "invalid_json", "details": detail}
        else:
            payload = {"error": "http_error", "details": detail}
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.get("/healthz", tags=["health"])
    async def healthz() -> dict[str, Any]:
        return {
            "status": "ok",
            "version": app_version,
            "language_model": settings.language_model,
            "api_key_configured": bool(settings.api_key),
            "streaming": settings.streaming,
        }

    app.include_router(router)
    return app


def _jsonable(errors: Any) -> Any:
    # pydantic puts the raised ValueError under ctx["error"]
    for error in errors:
        ctx = error.get("ctx")
        if ctx and "error" in ctx:
            ctx["error"] = str(ctx["error"])
    return errors


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "page_digest.main:create_application",
        factory=True,
        host="0.0.0.0",
        port=8080,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
