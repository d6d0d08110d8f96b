"""
Flatten/rebuild helpers for nested JSON dictionaries.

Stores keep flat `key -> value` dictionaries; locale files written by hand are
often nested (`{"home": {"title": "Hello"}}`). These helpers convert between
the two using dot-separated key paths.
"""

from typing import Any, Dict

from locsync.exceptions import CorruptDictionaryError


def flatten_json(obj: Dict[str, Any], path: str = "", separator: str = ".") -> Dict[str, str]:
    """
    Flatten nested JSON into a flat dictionary of strings.

    Non-string leaves (numbers, booleans, null) are kept as their JSON text so
    nothing is lost, but they are not meant to be translated.

    Example:
        >>> flatten_json({"home": {"title": "Hello"}})
        {'home.title': 'Hello'}
    """
    flat: Dict[str, str] = {}
    for key, value in obj.items():
        new_path = f"{path}{separator}{key}" if path else str(key)
        if isinstance(value, dict):
            flat.update(flatten_json(value, new_path, separator))
        elif isinstance(value, str):
            flat[new_path] = value
        elif isinstance(value, bool):
            flat[new_path] = str(value).lower()
        elif value is None:
            flat[new_path] = "null"
        elif isinstance(value, (int, float)):
            flat[new_path] = str(value)
        else:
            raise CorruptDictionaryError(
                f"Unsupported value at '{new_path}': {type(value).__name__}",
                code="dictionary_corrupt",
                details={"key": new_path},
            )
    return flat


def build_nested(flat: Dict[str, str], separator: str = ".") -> Dict[str, Any]:
    """
    Rebuild nested JSON from a flat dictionary.

    Example:
        >>> build_nested({"home.title": "Hello"})
        {'home': {'title': 'Hello'}}
    """
    result: Dict[str, Any] = {}

    for path, value in flat.items():
        keys = path.split(separator)
        node = result

        for key in keys[:-1]:
            if key not in node or not isinstance(node[key], dict):
                # Conflict: a leaf and a branch share a prefix, the branch wins
                node[key] = {}
            node = node[key]

        node[keys[-1]] = value

    return result
