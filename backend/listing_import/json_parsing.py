"""
Tolerant JSON recovery from text that merely contains JSON.
"""

import json
from typing import Any, Optional, Iterator, Tuple

_decoder = json.JSONDecoder()


def decode_at(text: str, index: int) -> Tuple[Any, int]:
    """
    Decode one JSON value starting at index, ignoring whatever follows.

    Raises:
        ValueError: no valid JSON value starts at index
    """
    return _decoder.raw_decode(text, index)


def iter_json_values(text: str, opener: str) -> Iterator[Any]:
    """Yield every decodable value whose first char is opener, in text order."""
    index = text.find(opener)
    while index != -1:
        try:
            value, end = decode_at(text, index)
        except ValueError:
            index = text.find(opener, index + 1)
            continue
        yield value
        index = text.find(opener, end)


def find_first_json(text: str, expect: type = list) -> Optional[Any]:
    """
    First JSON array (expect=list) or object (expect=dict) in free text,
    e.g. a model reply wrapped in prose or markdown fences.
    """
    if not text:
        return None
    opener = '[' if expect is list else '{'
    for value in iter_json_values(text, opener):
        if isinstance(value, expect):
            return value
    return None
