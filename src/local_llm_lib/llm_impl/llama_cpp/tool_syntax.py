"""Function calls written by the model into its text output.

llama-cpp-python's template-based chat handlers render the declared tools into the
prompt, but they return whatever the model writes as plain text. Models trained for
tool use write their calls in a fixed markup, which is parsed out of the text stream.
"""

import json
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from local_llm_lib.llm_core import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ToolCallSyntax:
    """
    Markup a model family uses for function calls.

    The text between the tags holds one JSON object ``{"name": ..., "arguments": ...}``
    or a list of them. ``parameters`` is accepted in place of ``arguments``, and
    arguments encoded as a JSON string are decoded.

    Attributes:
        name: Label used in logs.
        open_tag: Starts a call block.
        close_tag: Ends a call block. None when the block runs to the end of the output.
    """

    name: str
    open_tag: str
    close_tag: Optional[str] = None

    def parse(self, block: str) -> List[Tuple[str, Any]]:
        """
        Extracts the calls from the text of one call block.

        Returns:
            ``(function name, params)`` pairs. Blocks that are not valid JSON, and entries
            without a name, are logged and skipped.
        """
        block = block.strip()
        if not block:
            return []
        try:
            decoded = json.loads(block)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring malformed {self.name} call block: {block!r}")
            return []

        calls: List[Tuple[str, Any]] = []
        for entry in decoded if isinstance(decoded, list) else [decoded]:
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                logger.warning(f"Ignoring {self.name} call without a function name: {entry!r}")
                continue
            params = entry.get("arguments", entry.get("parameters", {}))
            if isinstance(params, str):
                params = decode_arguments(entry["name"], params)
            calls.append((entry["name"], params))
        return calls


def decode_arguments(name: str, arguments: str) -> Any:
    """Decodes JSON-encoded call arguments; empty or invalid JSON gives no arguments."""
    if not arguments.strip():
        return {}
    try:
        return json.loads(arguments)
    except json.JSONDecodeError:
        logger.warning(f"Model produced invalid JSON arguments for '{name}': {arguments!r}")
        return {}


# Qwen 2.5 / 3, QwQ, Hermes 2 Pro / 3 and most templates derived from them
HERMES_TOOL_CALLS = ToolCallSyntax(name="hermes", open_tag="<tool_call>", close_tag="</tool_call>")
# Mistral / Mixtral instruct v3 and later
MISTRAL_TOOL_CALLS = ToolCallSyntax(name="mistral", open_tag="[TOOL_CALLS]")

KNOWN_TOOL_CALL_SYNTAXES = (HERMES_TOOL_CALLS, MISTRAL_TOOL_CALLS)


def detect_tool_call_syntax(chat_template: Optional[str]) -> ToolCallSyntax:
    """
    Picks the call markup a chat template teaches the model.

    Args:
        chat_template: The Jinja chat template from the model metadata
            (``tokenizer.chat_template``), if any.

    Returns:
        The first known syntax whose opening tag appears in the template, or the
        Hermes syntax, the most common one among tool-trained GGUF models.
    """
    if isinstance(chat_template, str):
        for syntax in KNOWN_TOOL_CALL_SYNTAXES:
            if syntax.open_tag in chat_template:
                return syntax
    return HERMES_TOOL_CALLS
