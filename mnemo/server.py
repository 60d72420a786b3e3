"""
mnemo -- MCP server exposing the working-memory system as tools.

Run with:
    mnemo serve --data-dir ./data

Or configure in your MCP client as:
    {
        "mcpServers": {
            "mnemo": {
                "command": "mnemo",
                "args": ["serve", "--data-dir", "/path/to/data"]
            }
        }
    }

Tools exposed:
    Agent-facing:
        core_memory_update        -- Replace/append a core memory block
        core_memory_read          -- Show all core memory blocks
        working_memory_add        -- Add a fact to working memory
        working_memory_clear      -- Drop all working memory
        working_memory_clear_slot -- Drop one slot category
        working_memory_remove     -- Drop one item by content match
    Host events:
        mnemo_tool_executed   -- Cache + extract facts from a tool result
        mnemo_text_complete   -- Capture [Decision: ...] markers
        mnemo_usage_sample    -- Record context usage, maybe intervene
        mnemo_prune           -- Compress a tool result under pressure
        mnemo_system_context  -- Prompt sections for the next turn
        mnemo_compacting      -- Prepare for host compaction
        mnemo_session_deleted -- Remove every artifact of a session

Every tool takes an optional ``session_id``; when empty, the session of
the current execution context is used (``"stdio"`` in single-client
mode).
"""

import atexit
import json
import logging
import os
import traceback
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from mnemo.core.config import Config
from mnemo.core.sessions import get_current_session_id
from mnemo.system import MemorySystem

log = logging.getLogger("mnemo.server")

# ---------------------------------------------------------------------------
# Constants / validation
# ---------------------------------------------------------------------------

#: Maximum byte length for agent-written text (100 KB).  Tool outputs are
#: exempt: mnemo_prune exists to shrink them.
MAX_INPUT_BYTES = 100_000


def _validate_length(text: str, name: str) -> str:
    """Raise ValueError if *text* exceeds MAX_INPUT_BYTES."""
    if len(text.encode("utf-8", errors="replace")) > MAX_INPUT_BYTES:
        raise ValueError(
            f"'{name}' exceeds maximum length ({MAX_INPUT_BYTES} bytes). "
            f"Truncate or summarise the input."
        )
    return text


def _session(session_id: str) -> str:
    return session_id or get_current_session_id()


# ---------------------------------------------------------------------------
# Error-safe tool decorator
# ---------------------------------------------------------------------------


def _safe_json(fn):
    """Wrap an MCP tool so exceptions return JSON errors instead of crashing."""

    def wrapper(*args: Any, **kwargs: Any) -> str:
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            tool_name = getattr(fn, "__name__", "unknown")
            log.error("Tool %s failed: %s\n%s", tool_name, exc, traceback.format_exc())
            return json.dumps(
                {
                    "error": True,
                    "tool": tool_name,
                    "message": str(exc),
                }
            )

    # FastMCP reads the name, docstring and annotations off the callable.
    wrapper.__name__ = fn.__name__
    wrapper.__qualname__ = fn.__qualname__
    wrapper.__doc__ = fn.__doc__
    wrapper.__annotations__ = fn.__annotations__
    wrapper.__module__ = fn.__module__
    wrapper.__wrapped__ = fn  # type: ignore[attr-defined]
    return wrapper


def _not_found(result: Any) -> Optional[str]:
    """JSON error body for a NotFound result, else None."""
    if not result and hasattr(result, "reason"):
        return json.dumps({"error": True, "message": result.reason})
    return None


# ---------------------------------------------------------------------------
# Server singleton
# ---------------------------------------------------------------------------

mcp = FastMCP(
    "mnemo",
    instructions="Pressure-aware working memory for long-running agents",
)

_system: Optional[MemorySystem] = None


def init_system(
    data_dir: Optional[str] = None,
    config_path: Optional[str] = None,
    **kwargs: Any,
) -> MemorySystem:
    """Initialize the global MemorySystem instance."""
    global _system

    if config_path:
        config = Config.from_yaml(config_path)
    elif data_dir:
        config = Config.from_data_dir(data_dir, **kwargs)
    else:
        default_dir = os.environ.get("MNEMO_DATA_DIR", "./mnemo_data")
        config = Config.from_data_dir(default_dir, **kwargs)

    _system = MemorySystem(config=config)
    return _system


def _get_system() -> MemorySystem:
    """Get the global MemorySystem, initializing with defaults if needed."""
    global _system
    if _system is None:
        _system = init_system()
    return _system


# ---------------------------------------------------------------------------
# Core memory
# ---------------------------------------------------------------------------


@mcp.tool()
@_safe_json
def core_memory_update(
    block: str,
    operation: str,
    content: str,
    session_id: str = "",
) -> str:
    """Update a persistent core memory block that survives compaction.

    Blocks:
        goal     -- the task being worked on, success criteria, constraints
        progress -- done / in progress / next steps / blockers
        context  -- key files, conventions, patterns for this task

    Args:
        block: One of goal, progress, context.
        operation: "replace" overwrites the block, "append" adds a line.
        content: Text to write.  Anything past the block's limit is cut.
        session_id: Session to update (default: current session).
    """
    _validate_length(content, "content")
    result = _get_system().update_block(_session(session_id), block, operation, content)
    err = _not_found(result)
    if err:
        return err
    return json.dumps(result.to_dict(), indent=2)


@mcp.tool()
@_safe_json
def core_memory_read(session_id: str = "") -> str:
    """Show all core memory blocks for the session."""
    memory = _get_system().read_blocks(_session(session_id))
    return json.dumps(memory.to_dict(), indent=2)


# ---------------------------------------------------------------------------
# Working memory
# ---------------------------------------------------------------------------


@mcp.tool()
@_safe_json
def working_memory_add(
    content: str,
    category: str = "other",
    session_id: str = "",
) -> str:
    """Add an important item to working memory.

    Use for file paths, error messages or decisions worth keeping in
    view.  Errors and decisions go to bounded slots; everything else
    goes to a pool whose items fade unless mentioned again.

    Args:
        content: The fact to remember (max 200 chars, longer is cut).
        category: error, decision, file-path or other.
        session_id: Session to update (default: current session).
    """
    _validate_length(content, "content")
    result = _get_system().add(_session(session_id), content, category, source="manual")
    err = _not_found(result)
    if err:
        return err
    return json.dumps(result.to_dict(), indent=2)


@mcp.tool()
@_safe_json
def working_memory_clear(session_id: str = "") -> str:
    """Clear all working memory items for the session."""
    removed = _get_system().clear(_session(session_id))
    return json.dumps({"cleared": removed})


@mcp.tool()
@_safe_json
def working_memory_clear_slot(category: str, session_id: str = "") -> str:
    """Clear one slot category (e.g. all resolved errors).

    Args:
        category: A slot category such as error or decision.
        session_id: Session to update (default: current session).
    """
    result = _get_system().clear_category(_session(session_id), category)
    err = _not_found(result)
    if err:
        return err
    return json.dumps({"category": category, "cleared": result})


@mcp.tool()
@_safe_json
def working_memory_remove(content: str, session_id: str = "") -> str:
    """Remove the first working memory item whose content contains *content*."""
    result = _get_system().remove(_session(session_id), content)
    err = _not_found(result)
    if err:
        return err
    return json.dumps(result.to_dict(), indent=2)


# ---------------------------------------------------------------------------
# Host events
# ---------------------------------------------------------------------------


@mcp.tool()
@_safe_json
def mnemo_tool_executed(
    tool: str,
    output: str,
    call_id: str = "",
    session_id: str = "",
) -> str:
    """Report a finished tool call: cache its output and extract facts.

    Args:
        tool: Tool name (read, bash, grep, ...).
        output: The tool's full output.
        call_id: Host id of the call, used to find the cached output later.
        session_id: Session the call belongs to (default: current session).
    """
    results = _get_system().tool_executed(
        _session(session_id), tool, output, call_id=call_id or None
    )
    return json.dumps({"added": [r.to_dict() for r in results]}, indent=2)


@mcp.tool()
@_safe_json
def mnemo_text_complete(text: str, session_id: str = "") -> str:
    """Report completed assistant text; [Decision: ...] markers are captured."""
    _validate_length(text, "text")
    results = _get_system().text_complete(_session(session_id), text)
    return json.dumps({"added": [r.to_dict() for r in results]}, indent=2)


@mcp.tool()
@_safe_json
def mnemo_usage_sample(
    usage_ratio: float = -1.0,
    total_tokens: int = -1,
    context_limit: int = 0,
    output_limit: int = 0,
    input_limit: int = 0,
    model_id: str = "",
    session_id: str = "",
) -> str:
    """Record how full the context window is.

    Pass either ``usage_ratio`` directly, or ``total_tokens`` with the
    model's limits and the ratio is derived from them.  Returns the new
    pressure sample and, on escalation into high pressure, the
    intervention that was sent.
    """
    system = _get_system()
    sid = _session(session_id)
    if total_tokens >= 0 and context_limit > 0:
        limits = {"context": context_limit, "output": output_limit, "input": input_limit}
        report = system.usage_from_tokens(sid, total_tokens, limits, model_id=model_id or None)
    else:
        report = system.usage_sample(sid, usage_ratio, model_id=model_id or None)
    if report is None:
        return json.dumps({"skipped": True})
    return json.dumps(report.to_dict(), indent=2)


@mcp.tool()
@_safe_json
def mnemo_prune(
    tool: str,
    output: str = "",
    call_id: str = "",
    session_id: str = "",
) -> str:
    """Compress a tool result according to its rule and the current pressure.

    Give the text in ``output``, or a ``call_id`` whose full output was
    cached by mnemo_tool_executed.
    """
    pruned = _get_system().prune_tool_output(
        _session(session_id), tool, output=output or None, call_id=call_id or None
    )
    if pruned is None:
        return json.dumps({"error": True, "message": "no output to prune"})
    return json.dumps({"output": pruned})


@mcp.tool()
@_safe_json
def mnemo_system_context(model_id: str = "", session_id: str = "") -> str:
    """Prompt sections to inject into the next turn's system prompt."""
    sections = _get_system().system_context(_session(session_id), model_id=model_id or None)
    return json.dumps({"sections": sections}, indent=2)


@mcp.tool()
@_safe_json
def mnemo_compacting(session_id: str = "") -> str:
    """Prepare for host compaction; returns context lines to carry over."""
    lines = _get_system().compacting(_session(session_id))
    return json.dumps({"context": lines}, indent=2)


@mcp.tool()
@_safe_json
def mnemo_session_deleted(session_id: str = "") -> str:
    """Delete every stored artifact of a session."""
    sid = _session(session_id)
    _get_system().session_deleted(sid)
    return json.dumps({"deleted": sid})


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def _shutdown() -> None:
    """Close the global MemorySystem on exit."""
    global _system
    if _system is not None:
        log.info("Shutting down mnemo...")
        try:
            _system.close()
        except Exception as exc:
            log.warning("Error during shutdown: %s", exc)
        _system = None


def run_server(
    data_dir: Optional[str] = None,
    config_path: Optional[str] = None,
    transport: str = "stdio",
    host: str = "127.0.0.1",
    port: int = 8765,
) -> None:
    """Initialize and run the MCP server.

    Args:
        data_dir: Path to the mnemo data directory.
        config_path: Path to YAML config file.
        transport: MCP transport: "stdio", "streamable-http", or "sse".
        host: Bind address for HTTP transports.
        port: Port for HTTP transports.
    """
    init_system(data_dir=data_dir, config_path=config_path)
    atexit.register(_shutdown)
    log.info("Starting mnemo MCP server (transport=%s)", transport)
    if transport in ("streamable-http", "sse"):
        mcp.settings.host = host
        mcp.settings.port = port
        log.info("HTTP endpoint: http://%s:%d", host, port)
    try:
        mcp.run(transport=transport)  # type: ignore[arg-type]
    finally:
        _shutdown()
