"""Server settings read from the environment (and a local ``.env`` file)."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_MODEL = "hf:giladgd/gpt-oss-20b-GGUF/gpt-oss-20b.MXFP4.gguf"
DEFAULT_MODEL_NAME = "gpt-oss-20b"


class ServerSettings(BaseModel):
    """
    Settings of the OpenAI-compatible server.

    Attributes:
        host: Interface to bind.
        port: Port to listen on.
        model: Model path or ``hf:`` identifier to load.
        model_name: Model name reported by ``/v1/models`` and in responses.
        models_dir: Where downloaded models are stored.
        context_size_max: Upper bound of the context size.
        gpu_layers: Layers to offload to the GPU; all of them when unset.
        log_level: Logging level name.
    """

    host: str = "0.0.0.0"
    port: int = 3000
    model: str = DEFAULT_MODEL
    model_name: str = DEFAULT_MODEL_NAME
    models_dir: str = "./models"
    context_size_max: int = 8096
    gpu_layers: Optional[int] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerSettings":
        """Builds settings from environment variables, after loading ``.env`` if present."""
        load_dotenv()

        gpu_layers = os.getenv("GPU_LAYERS")
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            model=os.getenv("MODEL", DEFAULT_MODEL),
            model_name=os.getenv("MODEL_NAME", DEFAULT_MODEL_NAME),
            models_dir=os.getenv("MODELS_DIR", "./models"),
            context_size_max=int(os.getenv("CONTEXT_SIZE_MAX", "8096")),
            gpu_layers=int(gpu_layers) if gpu_layers else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
