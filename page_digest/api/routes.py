"""HTTP route handlers for the digest API."""

from __future__ import annotations

import math
from typing import Any, Dict, Type

import anyio
import orjson
from anyio.streams.memory import MemoryObjectSendStream
from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import BaseModel, ValidationError

from page_digest.config import Settings
from page_digest.pipeline.limits import CHARACTER_LIMITS
from page_digest.pipeline.orchestrator import RESULT_SLOTS
from page_digest.pipeline.presentation import Presentation, clipboard_text
from page_digest.pipeline.service import DigestService

from .schemas import (
    DigestRequestModel,
    DigestResponseModel,
    ModelLimitsModel,
    ModelsResponseModel,
    ResultModel,
)


router = APIRouter()


def get_service(request: Request) -> DigestService:
    return request.app.state.digest_service


async def _load_request_model(
    http_request: Request, model_cls: Type[BaseModel], settings: Settings
) -> BaseModel:
    header_length = http_request.headers.get("content-length")
    if header_length:
        try:
            content_length = int(header_length)
        except ValueError:
            content_length = None
        else:
            if content_length > settings.max_payload_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail={
                        "error": "payload_too_large",
                        "limit_bytes": settings.max_payload_bytes,
                    },
                )

    body_bytes = await http_request.body()
    if body_bytes and len(body_bytes) > settings.max_payload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={
                "error": "payload_too_large",
                "limit_bytes": settings.max_payload_bytes,
            },
        )

    if not body_bytes:
        data: Dict[str, Any] = {}
    else:
        try:
            data = orjson.loads(body_bytes)
        except orjson.JSONDecodeError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "invalid_json", "details": str(exc)},
            ) from exc

    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


async def load_digest_request(http_request: Request) -> DigestRequestModel:
    service = get_service(http_request)
    return await _load_request_model(http_request, DigestRequestModel, service.settings)


class EventStreamPresentation(Presentation):
    """Forwards pipeline output to a Server-Sent Events stream."""

    def __init__(self, send_stream: MemoryObjectSendStream) -> None:
        self.send_stream = send_stream

    async def show_status(self, message: str) -> None:
        await self.send_stream.send({"phase": "status", "status": message})

    async def clear_status(self) -> None:
        await self.send_stream.send({"phase": "status", "status": ""})

    async def render(self, content: str) -> None:
        await self.send_stream.send({"phase": "partial", "content": content})


def _sse(event: Dict[str, Any]) -> str:
    return f"data: {orjson.dumps(event).decode()}\n\n"


@router.post("/v1/digest")
async def digest(
    digest_request: DigestRequestModel = Depends(load_digest_request),
    service: DigestService = Depends(get_service),
):
    run_kwargs = dict(
        page=digest_request.page.to_page(),
        trigger=digest_request.trigger,
        language_model=digest_request.language_model,
        language_code=digest_request.language_code,
        use_cache=digest_request.use_cache,
        streaming=digest_request.streaming,
    )

    if digest_request.stream:

        async def event_stream():
            send_stream, receive_stream = anyio.create_memory_object_stream(math.inf)

            async def _run() -> None:
                async with send_stream:
                    outcome = await service.orchestrator.run(
                        presentation=EventStreamPresentation(send_stream), **run_kwargs
                    )
                    footer = DigestResponseModel.from_domain(outcome).model_dump()
                    await send_stream.send({"phase": "complete", **footer})

            async with anyio.create_task_group() as tg:
                tg.start_soon(_run)
                try:
                    async with receive_stream:
                        async for event in receive_stream:
                            yield _sse(event)
                finally:
                    tg.cancel_scope.cancel()

        return StreamingResponse(event_stream(), media_type="text/event-stream")

    outcome = await service.orchestrator.run(**run_kwargs)
    return JSONResponse(content=DigestResponseModel.from_domain(outcome).model_dump())


def _not_found(index: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "result_not_found", "index": index},
    )


@router.get("/v1/results/latest", response_model=ResultModel)
async def latest_result(service: DigestService = Depends(get_service)):
    index, result = await service.latest_result()
    if result is None:
        raise _not_found(index)
    return ResultModel.from_domain(index, result)


@router.get("/v1/results/{index}", response_model=ResultModel)
async def get_result(
    index: int = Path(ge=0, lt=RESULT_SLOTS),
    service: DigestService = Depends(get_service),
):
    result = await service.get_result(index)
    if result is None:
        raise _not_found(index)
    return ResultModel.from_domain(index, result)


@router.get("/v1/results/{index}/copy", response_class=PlainTextResponse)
async def copy_result(
    index: int = Path(ge=0, lt=RESULT_SLOTS),
    service: DigestService = Depends(get_service),
):
    result = await service.get_result(index)
    if result is None:
        raise _not_found(index)
    return PlainTextResponse(clipboard_text(result.response_content))


@router.get("/v1/models", response_model=ModelsResponseModel)
async def list_models(service: DigestService = Depends(get_service)):
    return ModelsResponseModel(
        default_language_model=service.settings.language_model,
        models=[
            ModelLimitsModel(
                model_id=model_id,
                limits={action.value: limit for action, limit in limits.items()},
            )
            for model_id, limits in CHARACTER_LIMITS.items()
        ],
    )
