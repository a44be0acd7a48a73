"""
Field-Path Extractor — turns a materialized response value into the
dotted field paths present in it.

Paths describe shape, not positions:
- Keys whose value is None contribute nothing, not even their descendants.
- Lists are never index-qualified; only the first element is sampled and
  the remaining elements are assumed to share its shape.
"""

from typing import Any, List


def join_path(prefix: str, name: str) -> str:
    """Extend a dotted path by one segment."""
    return f"{prefix}.{name}" if prefix else name


def extract_field_paths(value: Any, prefix: str = "") -> List[str]:
    """
    Collect every field path reachable inside ``value``.

    ``prefix`` is the path of ``value`` itself (usually the operation key);
    it is not included in the result, only the paths beneath it.
    """
    if isinstance(value, list):
        return _sample_first(value, prefix)
    if not isinstance(value, dict):
        return []

    paths: List[str] = []
    for key, child in value.items():
        if child is None:
            continue

        path = join_path(prefix, str(key))
        paths.append(path)

        if isinstance(child, list):
            paths.extend(_sample_first(child, path))
        elif isinstance(child, dict):
            paths.extend(extract_field_paths(child, path))

    return paths


def _sample_first(items: list, prefix: str) -> List[str]:
    """Learn the element shape of a list from its first element."""
    if items and isinstance(items[0], dict):
        return extract_field_paths(items[0], prefix)
    return []
