"""Owns the shared llama.cpp chat session and hands out language models bound to it."""

import asyncio
import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator

from local_llm_lib.llm_core import SessionInitializationError, get_logger
from .language_model import LlamaCppLanguageModel
from .resolver import HF_PREFIX, resolve_model_file
from .session import LlamaChatSession
from .tool_syntax import ToolCallSyntax

logger = get_logger(__name__)

DEFAULT_PROVIDER_ID = "llama-cpp"
HUGGING_FACE_PROVIDER_ID = "🤗 Hugging Face"


class ContextSizeRange(BaseModel):
    """Bounds for the context size; the largest given bound is used."""

    min: Optional[int] = None
    max: Optional[int] = None


class LlamaCppProviderConfig(BaseModel):
    """
    Configuration for a ``LlamaCppProvider``.

    Attributes:
        model: Path to a GGUF file or ``hf:<owner>/<repo>/<file>.gguf``.
        model_id: Identifier reported by language models. Defaults to ``model`` without
            its first path component.
        provider_id: Defaults to ``llama-cpp``, or ``🤗 Hugging Face`` for ``hf:`` models.
        models_directory: Where Hugging Face downloads are stored.
        context_size: ``"auto"`` (the model's trained size), a fixed size, or bounds.
        gpu_layers: Layers to offload to the GPU; ``"auto"`` offloads all of them.
        chat_format: llama.cpp chat format name; the model's own template is used if unset.
        tool_call_syntax: Markup the model writes function calls in. Detected from the
            chat template if unset.
        session: An existing chat session. Skips initialization entirely.
        llama: A loaded ``llama_cpp.Llama``. Skips model resolution and loading.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    model: Optional[str] = None
    model_id: Optional[str] = None
    provider_id: Optional[str] = None
    models_directory: str = "./models"
    context_size: Union[Literal["auto"], int, ContextSizeRange] = "auto"
    gpu_layers: Union[Literal["auto"], int] = "auto"
    chat_format: Optional[str] = None
    tool_call_syntax: Optional[ToolCallSyntax] = None
    session: Optional[Any] = None
    llama: Optional[Any] = None

    @model_validator(mode="after")
    def _check_model_source(self) -> "LlamaCppProviderConfig":
        if not self.model and self.session is None and self.llama is None:
            raise ValueError("One of 'model', 'session' or 'llama' is required.")
        return self


class LlamaCppProvider:
    """
    Provider for local GGUF models run with llama.cpp.

    The provider owns a single chat session. It is created lazily by the first
    ``get_session`` call and shared by every language model obtained from ``chat``;
    callers are expected to run one generation at a time.

    Args:
        config: The provider configuration.
    """

    def __init__(self, config: LlamaCppProviderConfig):
        self.config = config
        self._session: Optional[LlamaChatSession] = config.session
        self._init_task: Optional["asyncio.Task[LlamaChatSession]"] = None
        self._lock = asyncio.Lock()

        self.model_id = config.model_id or self._default_model_id(config.model)
        self.provider_id = config.provider_id or self._default_provider_id(config.model)

    @property
    def is_initialized(self) -> bool:
        return self._session is not None

    def chat(self, model_id: Optional[str] = None) -> LlamaCppLanguageModel:
        """Returns a language model bound to this provider's session."""
        return LlamaCppLanguageModel(model_id=model_id or self.model_id, provider=self)

    async def get_session(self) -> LlamaChatSession:
        """
        Returns the shared chat session, creating it on first use.

        Concurrent callers wait for the same initialization, so the model is loaded
        once. A failed initialization is not retried automatically, but the next call
        starts a new attempt.

        Raises:
            SessionInitializationError: If the runtime, model or session cannot be created.
        """
        if self._session is not None:
            return self._session

        async with self._lock:
            if self._session is not None:
                return self._session
            if self._init_task is None:
                self._init_task = asyncio.ensure_future(self._initialize())
            task = self._init_task

        try:
            session = await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

        self._session = session
        return session

    async def close(self) -> None:
        """Release the loaded model. The next ``get_session`` loads it again.

        A session passed in through the config belongs to the caller: it is kept, since
        the provider could not create it again.
        """
        self._init_task = None
        session = self._session
        if session is None or session is self.config.session:
            return
        self._session = None
        close = getattr(session.llama, "close", None)
        if close is not None:
            await asyncio.to_thread(close)
        logger.info("llama.cpp session closed.")

    async def _initialize(self) -> LlamaChatSession:
        try:
            llama = self.config.llama
            if llama is None:
                llama = await asyncio.to_thread(self._load_llama)
            session = LlamaChatSession(llama, tool_call_syntax=self.config.tool_call_syntax)
        except SessionInitializationError as exc:
            logger.error(f"Failed to initialize llama.cpp session: {exc}")
            raise
        except Exception as exc:
            logger.error(f"Failed to initialize llama.cpp session: {exc}", exc_info=True)
            raise SessionInitializationError(f"Failed to initialize llama.cpp session: {exc}") from exc

        logger.info(f"llama.cpp session ready for '{self.model_id}'.")
        return session

    def _load_llama(self) -> Any:
        """Import the runtime, resolve the model file and load it. Runs in a worker thread."""
        from llama_cpp import Llama

        model_path = resolve_model_file(self.config.model, self.config.models_directory)
        size_gb = os.path.getsize(model_path) / 1024**3
        logger.info(f"Loading model '{model_path.name}' ({size_gb:.2f} GB)...")

        llama = Llama(
            model_path=str(model_path),
            n_gpu_layers=self._gpu_layers(),
            n_ctx=self._context_size(),
            chat_format=self.config.chat_format,
            verbose=False,
        )
        logger.info(f"Model loaded with a context of {llama.n_ctx()} tokens.")
        return llama

    def _context_size(self) -> int:
        size = self.config.context_size
        if size == "auto":
            # 0 lets llama.cpp use the context length the model was trained with
            return 0
        if isinstance(size, int):
            return size
        return size.max or size.min or 0

    def _gpu_layers(self) -> int:
        return -1 if self.config.gpu_layers == "auto" else self.config.gpu_layers

    @staticmethod
    def _default_model_id(model: Optional[str]) -> str:
        if not model:
            return "local"
        name = model[len(HF_PREFIX):] if model.startswith(HF_PREFIX) else model
        parts = Path(name).parts
        return "/".join(parts[1:]) if len(parts) > 1 else name

    @staticmethod
    def _default_provider_id(model: Optional[str]) -> str:
        if model and model.startswith(HF_PREFIX):
            return HUGGING_FACE_PROVIDER_ID
        return DEFAULT_PROVIDER_ID


def create_llama_cpp_provider(config: Optional[LlamaCppProviderConfig] = None, **kwargs: Any) -> LlamaCppProvider:
    """
    Creates a provider from a config object or from config fields.

    Example:
        provider = create_llama_cpp_provider(model="hf:giladgd/gpt-oss-20b-GGUF/gpt-oss-20b.MXFP4.gguf")
        model = provider.chat()
    """
    if config is None:
        config = LlamaCppProviderConfig(**kwargs)
    elif kwargs:
        config = config.model_copy(update=kwargs)
    return LlamaCppProvider(config)
