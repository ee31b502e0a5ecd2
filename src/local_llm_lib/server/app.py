"""FastAPI application exposing the local model through an OpenAI-compatible API."""

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from local_llm_lib.llm_core import get_logger
from local_llm_lib.llm_impl.llama_cpp import (
    ContextSizeRange,
    LlamaCppProvider,
    create_llama_cpp_provider,
)
from .config import ServerSettings
from .models import ChatCompletionRequest
from .openai_handler import handle_chat_completion, handle_streaming_chat_completion

logger = get_logger(__name__)

router = APIRouter()


def _internal_error(exc: Exception) -> dict:
    return {"error": {"message": str(exc) or "Internal server error", "type": "internal_error"}}


@router.get("/health")
async def health(request: Request) -> dict:
    provider: LlamaCppProvider = request.app.state.provider
    return {"status": "ok", "model_loaded": provider.is_initialized}


@router.get("/v1/models")
async def list_models(request: Request) -> dict:
    settings: ServerSettings = request.app.state.settings
    return {
        "object": "list",
        "data": [
            {
                "id": settings.model_name,
                "object": "model",
                "created": int(time.time()),
                "owned_by": "local",
            }
        ],
    }


@router.post("/v1/chat/completions")
async def chat_completions(body: ChatCompletionRequest, request: Request):
    """Chat completion, streamed as Server-Sent Events when ``stream`` is true."""
    state = request.app.state
    if not state.provider.is_initialized:
        return JSONResponse(status_code=503, content={"error": "Model not initialized"})

    if not body.messages:
        return JSONResponse(status_code=400, content={"error": "messages field is required"})

    if body.stream:
        return StreamingResponse(
            _stream_completion(state, body),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    try:
        async with state.lock:
            completion = await handle_chat_completion(state.language_model, body, state.settings.model_name)
    except Exception as exc:
        logger.error(f"Error handling chat completion: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=_internal_error(exc))

    return completion.model_dump(exclude_none=True)


async def _stream_completion(state, body: ChatCompletionRequest) -> AsyncIterator[str]:
    # Headers are already sent once streaming starts, so failures are reported in-band
    async with state.lock:
        try:
            async for line in handle_streaming_chat_completion(state.language_model, body, state.settings.model_name):
                yield line
        except Exception as exc:
            logger.error(f"Error handling streaming chat completion: {exc}", exc_info=True)
            yield f"data: {json.dumps(_internal_error(exc))}\n\n"


def create_app(provider: Optional[LlamaCppProvider] = None, settings: Optional[ServerSettings] = None) -> FastAPI:
    """
    Builds the server application.

    The model is loaded during application startup, before requests are served, and
    released on shutdown. Completions run one at a time because the provider has a
    single chat session.

    Args:
        provider: Provider to serve. Built from ``settings`` when omitted.
        settings: Server settings. Read from the environment when omitted.

    Returns:
        The FastAPI application.
    """
    settings = settings or ServerSettings.from_env()
    if provider is None:
        provider = create_llama_cpp_provider(
            model=settings.model,
            models_directory=settings.models_dir,
            context_size=ContextSizeRange(max=settings.context_size_max),
            gpu_layers=settings.gpu_layers if settings.gpu_layers is not None else "auto",
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Initializing model...")
        await provider.get_session()
        logger.info("Model initialized successfully!")
        yield
        await provider.close()

    app = FastAPI(title="Local LLM Server", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.state.settings = settings
    app.state.provider = provider
    app.state.language_model = provider.chat(settings.model_name)
    app.state.lock = asyncio.Lock()
    app.include_router(router)
    return app
