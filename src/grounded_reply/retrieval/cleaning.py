"""Deep removal of ``None`` leaves before records reach a backing store.

Some document databases reject null / undefined fields outright, so every
record is passed through :func:`clean_nulls` on its way out.
"""

from __future__ import annotations

from typing import Any


def clean_nulls(value: Any) -> Any:
    """Recursively drop ``None`` values from dicts and lists.

    Dict keys whose value is ``None`` are removed; ``None`` items are
    removed from lists and tuples while the remaining items keep their
    order.  Nested containers keep their shape minus the null leaves, so an
    all-null container collapses to an empty one rather than disappearing.

    >>> clean_nulls({"a": 1, "b": None, "c": {"d": None, "e": 2}, "f": [None, 3]})
    {'a': 1, 'c': {'e': 2}, 'f': [3]}
    """
    if isinstance(value, dict):
        return {key: clean_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [clean_nulls(item) for item in value if item is not None]
    return value
