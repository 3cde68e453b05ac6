"""
Utility functions for the teckboard SDK.
"""

from typing import Any


def compact_dict(**kwargs: Any) -> dict[str, Any]:
    """
    Build a dictionary excluding None values.

    Useful for request payloads where None means "leave the field out".

    Example:
        payload = compact_dict(name=name, color_scheme=color_scheme)
    """
    return {k: v for k, v in kwargs.items() if v is not None}


def to_jsonable(result: Any) -> Any:
    """
    Convert an action result into something json.dumps accepts.

    Models are dumped in JSON mode with their aliases, lists are converted
    item by item, anything else is returned unchanged.
    """
    if hasattr(result, 'model_dump'):
        return result.model_dump(mode='json', by_alias=True)
    if isinstance(result, list):
        return [to_jsonable(item) for item in result]
    return result
