"""
JSON Utility Functions
Safe handling of JSON columns that may arrive as strings, lists or None.
"""
import json
from typing import Any, Union, List, Dict


def safe_json_parse(
    data: Any,
    default: Any = None
) -> Union[Dict, List, Any]:
    """
    Safely parse JSON data, handling strings and already-parsed objects.

    Examples:
        >>> safe_json_parse('[{"step": "validate_domain"}]')
        [{'step': 'validate_domain'}]

        >>> safe_json_parse({'already': 'parsed'})
        {'already': 'parsed'}

        >>> safe_json_parse('invalid json', default=[])
        []
    """
    if data is None:
        return default

    if isinstance(data, (dict, list)):
        return data

    if isinstance(data, str):
        if not data.strip():
            return default
        try:
            return json.loads(data)
        except (json.JSONDecodeError, ValueError):
            return default

    return default


def ensure_list(data: Any) -> List:
    """
    Coerce a JSON array column to a list.

    Anything that does not parse to a list (None, objects, garbage) becomes [].
    """
    parsed = safe_json_parse(data, default=[])
    return list(parsed) if isinstance(parsed, list) else []
