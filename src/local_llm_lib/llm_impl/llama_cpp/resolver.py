"""Resolve a model identifier to a local GGUF file."""

from pathlib import Path
from typing import Dict, Tuple

from huggingface_hub import hf_hub_download

from local_llm_lib.llm_core import ModelResolutionError, get_logger

logger = get_logger(__name__)

HF_PREFIX = "hf:"

# Quantizations of gpt-oss-20b known to work with the default chat template.
HUGGING_FACE_RECOMMENDED_MODELS: Dict[str, Tuple[str, ...]] = {
    "giladgd": ("gpt-oss-20b-GGUF/gpt-oss-20b.MXFP4.gguf",),
    "unsloth": (
        "gpt-oss-20b-GGUF/gpt-oss-20b-F16.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q2_K.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q2_K_L.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q3_K_M.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q3_K_S.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q4_0.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q4_1.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q4_K_M.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q4_K_S.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q5_K_M.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q5_K_S.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q6_K.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-Q8_0.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-UD-Q4_K_XL.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-UD-Q6_K_XL.gguf",
        "gpt-oss-20b-GGUF/gpt-oss-20b-UD-Q8_K_XL.gguf",
    ),
}


def parse_hf_identifier(model: str) -> Tuple[str, str]:
    """Split ``hf:<owner>/<repo>/<path/to/file.gguf>`` into repo id and filename.

    Raises:
        ModelResolutionError: If the identifier has fewer than three path components.
    """
    parts = model[len(HF_PREFIX):].strip("/").split("/")
    if len(parts) < 3 or not all(parts):
        raise ModelResolutionError(
            f"Invalid Hugging Face model identifier '{model}'. Expected 'hf:<owner>/<repo>/<file>.gguf'."
        )
    return "/".join(parts[:2]), "/".join(parts[2:])


def resolve_model_file(model: str, models_directory: str | Path) -> Path:
    """
    Resolve a local path or Hugging Face identifier to a model file on disk.

    Hugging Face files are downloaded into ``models_directory`` on first use and reused
    afterwards. Relative paths that do not exist as given are looked up inside
    ``models_directory``.

    Args:
        model: A filesystem path or ``hf:<owner>/<repo>/<file>`` identifier.
        models_directory: Where downloaded models are stored.

    Returns:
        Path to the model file.

    Raises:
        ModelResolutionError: If the model cannot be found or downloaded.
    """
    models_dir = Path(models_directory)

    if model.startswith(HF_PREFIX):
        repo_id, filename = parse_hf_identifier(model)
        logger.info(f"Resolving '{filename}' from Hugging Face repository '{repo_id}'...")
        try:
            return Path(hf_hub_download(repo_id=repo_id, filename=filename, local_dir=models_dir))
        except Exception as exc:
            raise ModelResolutionError(f"Failed to download '{model}': {exc}") from exc

    candidate = Path(model).expanduser()
    if candidate.is_file():
        return candidate

    if not candidate.is_absolute() and (models_dir / candidate).is_file():
        return models_dir / candidate

    raise ModelResolutionError(f"Model file '{model}' not found (also looked in '{models_dir}').")
