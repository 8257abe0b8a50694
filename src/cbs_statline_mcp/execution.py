import json
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

from mcp.server.fastmcp.exceptions import ToolError
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# =============================================================================
# Tool Execution Wrapper
# =============================================================================

def failure_message(tool_name: str) -> str:
    """Message returned to the client when a tool's core logic reported failure."""
    return (
        f"Operation failed for tool '{tool_name}'. CBS API might be unavailable or parameters "
        f"might be invalid. Check server logs for details."
    )


def to_payload(result: Any) -> Any:
    """Convert tool results to JSON-compatible data; unset optional fields are left out."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", exclude_none=True)
    if isinstance(result, list):
        return [to_payload(item) for item in result]
    return result


def format_result(result: Any) -> str:
    """Serialize a tool result as indented JSON, keeping non-ASCII characters readable."""
    return json.dumps(to_payload(result), ensure_ascii=False, indent=2)


async def handle_tool_execution(
    tool_name: str,
    arguments: Mapping[str, Any],
    execution_fn: Callable[[], Awaitable[Optional[Any]]],
) -> str:
    """
    Run a tool's core logic and turn its outcome into an MCP tool result.

    The core logic returns its payload, or None when it failed (the reason has
    already been logged). Failures are raised as ToolError, which FastMCP
    reports to the client as an error result; the message names the tool but
    never carries internal details.

    Args:
        tool_name: Name of the tool (used in logs and error messages)
        arguments: Validated tool arguments, for logging
        execution_fn: Coroutine function performing the tool's work

    Returns:
        The payload serialized as JSON text

    Raises:
        ToolError: When the core logic failed or its result could not be serialized
    """
    logger.info(f"[{tool_name}] Received call with input: {dict(arguments)}")

    try:
        result = await execution_fn()
    except Exception:
        logger.exception(f"[{tool_name}] Unhandled error during execution")
        raise ToolError(f"An unexpected error occurred while executing tool '{tool_name}'.")

    if result is None:
        logger.warning(f"[{tool_name}] Execution function returned None, indicating failure.")
        raise ToolError(failure_message(tool_name))

    try:
        result_text = format_result(result)
    except (TypeError, ValueError) as e:
        logger.error(f"[{tool_name}] Failed to serialize successful result: {e}")
        raise ToolError(f"Internal error: Failed to format result for tool '{tool_name}'.")

    size_info = f" ({len(result)} items)" if isinstance(result, list) else ""
    logger.info(f"[{tool_name}] Returning successful result{size_info}.")
    return result_text
