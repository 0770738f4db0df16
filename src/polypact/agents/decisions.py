"""Shared helpers for the agents' model calls.

JSON extraction from model output, structured-call wrapper, and call logging.
"""

import json
import logging
import time
from typing import Any, Optional

from ..core.models import ModelGateway, ModelKey
from ..core.utils import FailureKind, Result

logger = logging.getLogger(__name__)


def _log_llm_call(func_name: str, key: ModelKey, prompt_preview: str):
    """Log LLM call start."""
    logger.info(f"🤖 LLM_CALL: {func_name} [model={key.value}]")
    logger.debug(f"   Prompt preview: {prompt_preview[:150]}...")


def _log_llm_result(func_name: str, result: Any, duration: float):
    """Log LLM call result."""
    if isinstance(result, dict):
        result_preview = str(result)[:200]
    elif isinstance(result, list):
        result_preview = f"[{len(result)} items]"
    elif isinstance(result, str):
        result_preview = result[:200]
    elif isinstance(result, Result):
        result_preview = "ok" if result.ok else f"failed ({result.kind.value}): {result.detail[:150]}"
    else:
        result_preview = str(type(result))

    logger.info(f"✅ LLM_DONE: {func_name} [{duration:.2f}s] -> {result_preview}")


# =============================================================================
# JSON PARSING HELPERS
# =============================================================================

def parse_json_safe(text: str) -> Optional[dict]:
    """Safely parse a JSON object from LLM response.

    Tries, in order: the whole text, a ```json fenced block, any fenced
    block, then the span from the first ``{`` to the last ``}``.
    """
    if not text:
        return None

    candidates = [text]

    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        if end > start:
            candidates.append(text[start:end].strip())

    if "```" in text:
        start = text.find("```") + 3
        # Skip language identifier if present
        newline = text.find("\n", start)
        if newline > start:
            start = newline + 1
        end = text.find("```", start)
        if end > start:
            candidates.append(text[start:end].strip())

    brace_start = text.find("{")
    brace_end = text.rfind("}") + 1
    if brace_start >= 0 and brace_end > brace_start:
        candidates.append(text[brace_start:brace_end])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    return None


async def invoke_json(
    gateway: ModelGateway,
    func_name: str,
    key: ModelKey,
    messages: list[dict],
    temperature: float = 0.1,
) -> tuple[Result[dict], Optional[str]]:
    """Call a model in JSON mode and parse its output.

    Returns the parse result plus the raw text (None when the call itself failed),
    so callers can fall back to raw text on PARSE failures.
    """
    start_time = time.time()
    _log_llm_call(func_name, key, messages[-1]["content"])

    response = await gateway.invoke(key, messages, temperature=temperature, json_output=True)
    if not response.ok:
        _log_llm_result(func_name, response, time.time() - start_time)
        return Result.failure(response.kind, response.detail), None

    parsed = parse_json_safe(response.value)
    if parsed is None:
        result = Result.failure(FailureKind.PARSE, "Model output contained no JSON object")
    else:
        result = Result.success(parsed)

    _log_llm_result(func_name, parsed if parsed is not None else result, time.time() - start_time)
    return result, response.value
