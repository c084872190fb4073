"""Tool registry for redmem agent tools."""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from ..exceptions import ToolExecutionError, ToolValidationError


@dataclass
class ToolInfo:
    """Information about a registered tool."""

    name: str
    func: Callable
    description: str
    parameters: Dict[str, Any]


# Global tool registry
_tools: Dict[str, ToolInfo] = {}


def tool(func: Callable) -> Callable:
    """Register a function as a tool."""
    sig = inspect.signature(func)
    doc = func.__doc__ or "No description available"

    parameters = {}
    for param_name, param in sig.parameters.items():
        parameters[param_name] = {
            "type": (param.annotation if param.annotation != inspect.Parameter.empty else str),
            "default": (param.default if param.default != inspect.Parameter.empty else None),
            "required": param.default == inspect.Parameter.empty,
        }

    _tools[func.__name__] = ToolInfo(
        name=func.__name__,
        func=func,
        description=doc.strip().split("\n")[0].strip(),
        parameters=parameters,
    )
    return func


def get_tool(name: str) -> ToolInfo:
    """Get a registered tool by name."""
    if name not in _tools:
        error_parts = ["not found"]

        similar = [t for t in _tools if name.lower() in t.lower() or t.lower() in name.lower()]
        if similar:
            error_parts.append(f"Did you mean: {', '.join(similar[:3])}?")
        else:
            available = ", ".join(_tools) if _tools else "none"
            error_parts.append(f"Available: {available}")

        raise ToolValidationError("tool", name, ". ".join(error_parts))
    return _tools[name]


async def call_tool(name: str, **kwargs) -> Any:
    """Call a tool with the given arguments, awaiting it if it is a coroutine."""
    tool_info = get_tool(name)

    for param_name, param_info in tool_info.parameters.items():
        if param_info["required"] and param_name not in kwargs:
            raise ToolValidationError("parameter", param_name, f"missing for tool '{name}'")

    try:
        result = tool_info.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
    except ToolValidationError:
        raise
    except Exception as e:
        raise ToolExecutionError(name, str(e)) from e


def list_tools() -> List[str]:
    """List all registered tool names."""
    return list(_tools.keys())


def describe_tool(name: str) -> str:
    """Render a tool's signature as plain text for prompts and the CLI."""
    tool_info = get_tool(name)
    lines = [f"{tool_info.name}: {tool_info.description}"]

    if tool_info.parameters:
        lines.append("Parameters:")
        for param_name, info in tool_info.parameters.items():
            type_name = getattr(info["type"], "__name__", str(info["type"]))
            if info["required"]:
                lines.append(f"  {param_name}: {type_name} (required)")
            else:
                lines.append(f"  {param_name}: {type_name} (default: {info['default']})")

    return "\n".join(lines)


# Import tool modules at the end to avoid circular imports
from . import memory as memory  # noqa: E402
