"""Run the OpenAI-compatible server: ``python -m local_llm_lib.server``."""

import uvicorn

from local_llm_lib.llm_core import get_logger, setup_logging
from .app import create_app
from .config import ServerSettings

logger = get_logger(__name__)


def main() -> None:
    settings = ServerSettings.from_env()
    setup_logging(settings.log_level)

    logger.info(f"Starting OpenAI-compatible server on http://{settings.host}:{settings.port}")
    logger.info("Endpoints: GET /health, GET /v1/models, POST /v1/chat/completions")
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
