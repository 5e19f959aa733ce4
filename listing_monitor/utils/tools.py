import json
from typing import Any


def truncate_content(content: str, max_length: int = 500) -> str:
    """Truncate long content for better error readability"""
    if len(content) <= max_length:
        return content
    return content[:max_length] + f"... [truncated, total {len(content)} characters]"


def get_json_if_valid(json_str: str) -> Any:
    """Decoded JSON, or the original text when it is not JSON"""
    try:
        return json.loads(json_str)
    except (TypeError, ValueError):
        return json_str
