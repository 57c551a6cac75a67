"""
snake_case -> camelCase mapping for orchestrator responses
"""

from typing import Any


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_camel_keys(value: Any) -> Any:
    """Recursively rename dict keys; lists are mapped element-wise"""
    if isinstance(value, dict):
        return {
            (snake_to_camel(key) if isinstance(key, str) else key): to_camel_keys(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [to_camel_keys(item) for item in value]
    return value
