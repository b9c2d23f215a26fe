"""Extraction of values from nested agent outputs using dot paths."""

from collections.abc import Mapping, Sequence
from typing import Any


class FieldExtractor:
    """Handles extraction of values from nested data structures.

    Missing keys resolve to ``None`` rather than raising: an agent output that
    lacks an optional field is a valid outcome.
    """

    @staticmethod
    def extract(data: Any, path: str | None) -> Any:
        """Extract a value using a dot-separated path.

        Args
        ----
            data: The data structure to extract from (dict, pydantic model, object)
            path: Dot-separated path (e.g. ``"lead.contact.email"``); empty means ``data``

        Returns
        -------
            The extracted value or None if any segment is missing

        Examples
        --------
        >>> FieldExtractor.extract({"a": {"b": 1}}, "a.b")
        1
        >>> FieldExtractor.extract({"a": {}}, "a.b") is None
        True
        >>> FieldExtractor.extract({"items": [10, 20]}, "items.1")
        20
        """
        if not path:
            return data

        current: Any = data
        for part in path.split("."):
            current = FieldExtractor._extract_single_level(current, part)
            if current is None:
                break

        return current

    @staticmethod
    def _extract_single_level(data: Any, key: str) -> Any:
        if data is None:
            return None

        if isinstance(data, Mapping):
            return data.get(key)

        if isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
            if key.isdigit() and int(key) < len(data):
                return data[int(key)]
            return None

        return getattr(data, key, None)
