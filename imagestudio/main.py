"""FastAPI entry point exposing the ImageStudio relay."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .errors import GenerationValidationError
from .schemas import BatchResponse, ErrorResponse
from .service import GENERIC_FAILURE, RelayService, get_relay_service

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

app = FastAPI(title="ImageStudio Relay", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.get("/health", summary="Health Check Endpoint")
async def healthcheck(relay: RelayService = Depends(get_relay_service)):
    return {
        "status": "ok",
        "imageModel": relay.settings.image_model_id,
        "defaultCredential": relay.has_default_credential,
    }


@app.post(
    "/api/generate-image",
    summary="Generate four images and stream each result as a server-sent event",
)
async def generate_image(
    request: Request,
    relay: RelayService = Depends(get_relay_service),
):
    # Parsing happens inside the stream so that bad bodies still end in an event.
    body = await request.body()
    return StreamingResponse(
        relay.stream_events(body),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@app.post(
    "/api/generate-image/batch",
    response_model=BatchResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    },
    summary="Generate four images and return them in one response",
)
async def generate_image_batch(
    request: Request,
    relay: RelayService = Depends(get_relay_service),
):
    body = await request.body()
    try:
        result = await relay.generate_batch(body)
    except GenerationValidationError as exc:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)
    except Exception:
        logger.exception("Batch generation failed")
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_FAILURE)

    if not result.image_urls:
        message = result.errors[0].error if result.errors else GENERIC_FAILURE
        return _error_response(status.HTTP_502_BAD_GATEWAY, message)

    return BatchResponse(imageUrls=result.image_urls, errors=result.errors)
