import asyncio
import sys
import time
import types
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from local_llm_lib.llm_core import ModelResolutionError, SessionInitializationError
from local_llm_lib.llm_impl.llama_cpp import (
    HERMES_TOOL_CALLS,
    MISTRAL_TOOL_CALLS,
    ContextSizeRange,
    LlamaChatSession,
    LlamaCppProvider,
    LlamaCppProviderConfig,
    create_llama_cpp_provider,
)
from fakes import FakeLlama

HF_MODEL = "hf:giladgd/gpt-oss-20b-GGUF/gpt-oss-20b.MXFP4.gguf"


def test_provider_identity_defaults() -> None:
    hf_provider = create_llama_cpp_provider(model=HF_MODEL)
    local_provider = create_llama_cpp_provider(model="models/llama-3.2-1b.gguf")

    assert hf_provider.model_id == "gpt-oss-20b-GGUF/gpt-oss-20b.MXFP4.gguf"
    assert hf_provider.provider_id == "🤗 Hugging Face"
    assert local_provider.model_id == "llama-3.2-1b.gguf"
    assert local_provider.provider_id == "llama-cpp"
    assert not hf_provider.is_initialized


def test_explicit_identity_wins() -> None:
    provider = create_llama_cpp_provider(model=HF_MODEL, model_id="gpt-oss", provider_id="local")

    assert provider.model_id == "gpt-oss"
    assert provider.provider_id == "local"
    assert provider.chat().model_id == "gpt-oss"


def test_config_requires_a_model_source() -> None:
    with pytest.raises(ValidationError):
        LlamaCppProviderConfig()


def test_create_provider_from_config_with_overrides() -> None:
    config = LlamaCppProviderConfig(model=HF_MODEL)

    provider = create_llama_cpp_provider(config, models_directory="/tmp/models")

    assert provider.config.models_directory == "/tmp/models"
    assert provider.config.model == HF_MODEL


@pytest.mark.asyncio
async def test_injected_session_is_used_as_is() -> None:
    session = LlamaChatSession(FakeLlama())
    provider = create_llama_cpp_provider(session=session)

    assert provider.is_initialized
    assert await provider.get_session() is session


@pytest.mark.asyncio
async def test_injected_llama_skips_loading() -> None:
    llama = FakeLlama()
    provider = create_llama_cpp_provider(llama=llama)
    provider._load_llama = MagicMock()

    session = await provider.get_session()

    assert session.llama is llama
    provider._load_llama.assert_not_called()
    assert provider.is_initialized


@pytest.mark.asyncio
async def test_concurrent_get_session_loads_once() -> None:
    provider = create_llama_cpp_provider(model=HF_MODEL)

    def slow_load():
        time.sleep(0.05)
        return FakeLlama()

    provider._load_llama = MagicMock(side_effect=slow_load)

    first, second = await asyncio.gather(provider.get_session(), provider.get_session())

    assert first is second
    provider._load_llama.assert_called_once()


@pytest.mark.asyncio
async def test_failed_initialization_is_retried_on_next_call() -> None:
    provider = create_llama_cpp_provider(model=HF_MODEL)
    provider._load_llama = MagicMock(side_effect=[RuntimeError("out of memory"), FakeLlama()])

    with pytest.raises(SessionInitializationError, match="out of memory") as exc_info:
        await provider.get_session()

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert not provider.is_initialized

    session = await provider.get_session()
    assert provider.is_initialized
    assert isinstance(session, LlamaChatSession)
    assert provider._load_llama.call_count == 2


@pytest.mark.asyncio
async def test_model_is_resolved_and_loaded(tmp_path) -> None:
    model_file = tmp_path / "model.gguf"
    model_file.write_bytes(b"\0" * 1024)
    fake_llama_cpp = types.ModuleType("llama_cpp")
    fake_llama_cpp.Llama = MagicMock(return_value=FakeLlama())

    provider = create_llama_cpp_provider(
        model=HF_MODEL, models_directory=str(tmp_path), context_size=ContextSizeRange(max=8096)
    )

    with patch.dict(sys.modules, {"llama_cpp": fake_llama_cpp}), patch(
        "local_llm_lib.llm_impl.llama_cpp.provider.resolve_model_file", return_value=model_file
    ) as resolve:
        session = await provider.get_session()

    resolve.assert_called_once_with(HF_MODEL, str(tmp_path))
    fake_llama_cpp.Llama.assert_called_once_with(
        model_path=str(model_file), n_gpu_layers=-1, n_ctx=8096, chat_format=None, verbose=False
    )
    assert isinstance(session.llama, FakeLlama)


@pytest.mark.asyncio
async def test_context_and_gpu_settings(tmp_path) -> None:
    model_file = tmp_path / "model.gguf"
    model_file.write_bytes(b"\0")
    fake_llama_cpp = types.ModuleType("llama_cpp")
    fake_llama_cpp.Llama = MagicMock(return_value=FakeLlama())

    provider = create_llama_cpp_provider(model=str(model_file), context_size="auto", gpu_layers=0, chat_format="chatml")

    with patch.dict(sys.modules, {"llama_cpp": fake_llama_cpp}):
        await provider.get_session()

    _, kwargs = fake_llama_cpp.Llama.call_args
    assert kwargs["n_ctx"] == 0
    assert kwargs["n_gpu_layers"] == 0
    assert kwargs["chat_format"] == "chatml"


@pytest.mark.asyncio
async def test_resolution_error_is_not_rewrapped(tmp_path) -> None:
    fake_llama_cpp = types.ModuleType("llama_cpp")
    fake_llama_cpp.Llama = MagicMock()
    provider = create_llama_cpp_provider(model="missing.gguf", models_directory=str(tmp_path))

    with patch.dict(sys.modules, {"llama_cpp": fake_llama_cpp}):
        with pytest.raises(ModelResolutionError, match="missing.gguf"):
            await provider.get_session()

    fake_llama_cpp.Llama.assert_not_called()


@pytest.mark.asyncio
async def test_close_releases_model() -> None:
    llama = FakeLlama()
    provider = LlamaCppProvider(LlamaCppProviderConfig(llama=llama))
    await provider.get_session()

    await provider.close()

    assert llama.closed
    assert not provider.is_initialized


@pytest.mark.asyncio
async def test_close_keeps_injected_session() -> None:
    llama = FakeLlama()
    session = LlamaChatSession(llama)
    provider = LlamaCppProvider(LlamaCppProviderConfig(session=session))

    await provider.close()

    assert provider.is_initialized
    assert not llama.closed
    assert await provider.get_session() is session


@pytest.mark.asyncio
async def test_tool_call_syntax_comes_from_config_or_template() -> None:
    configured = create_llama_cpp_provider(llama=FakeLlama(), tool_call_syntax=MISTRAL_TOOL_CALLS)
    detected = create_llama_cpp_provider(llama=FakeLlama(chat_template="{{ '<tool_call>' }}"))

    assert (await configured.get_session()).tool_call_syntax is MISTRAL_TOOL_CALLS
    assert (await detected.get_session()).tool_call_syntax is HERMES_TOOL_CALLS
