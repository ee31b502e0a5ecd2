from typing import Any, Callable, List

import pytest
from dotenv import find_dotenv, load_dotenv

from local_llm_lib.llm_core import FunctionTool, StreamResult
from local_llm_lib.llm_impl.llama_cpp import LlamaChatSession, LlamaCppProvider, create_llama_cpp_provider
from fakes import FakeLlama

# Server settings may be overridden locally; the tests never need a real model
env_file = find_dotenv(usecwd=True)
if env_file:
    load_dotenv(env_file)


@pytest.fixture
def make_provider() -> Callable[..., LlamaCppProvider]:
    """Builds a provider whose session runs on a ``FakeLlama`` with the given responses."""

    def factory(*responses: Any, **config: Any) -> LlamaCppProvider:
        session = LlamaChatSession(FakeLlama(*responses))
        return create_llama_cpp_provider(session=session, model="hf:giladgd/gpt-oss-20b-GGUF/gpt-oss-20b.MXFP4.gguf", **config)

    return factory


@pytest.fixture
def weather_tool() -> FunctionTool:
    return FunctionTool(
        name="get_weather",
        description="Get the current weather for a city.",
        input_schema={
            "type": "object",
            "properties": {"city": {"type": "string", "description": "City name"}},
            "required": ["city"],
        },
    )


async def collect(result: StreamResult) -> List[Any]:
    return [event async for event in result.stream]


@pytest.fixture
def collect_stream() -> Callable[[StreamResult], Any]:
    return collect
