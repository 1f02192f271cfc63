# survey_api/services/rawjson.py
"""
Top-level JSON object decoding that keeps each member's raw text.

Survey answers are stored byte-for-byte as the client sent them (minus
insignificant whitespace), so numbers like 1.50 or 1e5 keep their spelling.
"""
import json
import re
from typing import Any, Dict, Tuple

_WS = re.compile(r"[ \t\n\r]*")
_STRING_OR_WS = re.compile(r'("(?:[^"\\]|\\.)*")|[ \t\n\r]+', re.DOTALL)


def _reject_constant(name: str):
    raise ValueError(f"invalid JSON literal {name}")


_decoder = json.JSONDecoder(parse_constant=_reject_constant)


def _skip_ws(text: str, idx: int) -> int:
    return _WS.match(text, idx).end()


def _scan_value(text: str, idx: int) -> Tuple[Any, int]:
    try:
        return _decoder.scan_once(text, idx)
    except StopIteration:
        raise ValueError(f"expected a JSON value at offset {idx}") from None


def object_fields(text: str) -> Dict[str, Tuple[Any, str]]:
    """
    Decode a JSON object into {name: (value, raw_text)}.
    A bare `null` decodes as an empty object; later duplicate names win.
    Raises ValueError on anything else that is not a single JSON object.
    """
    fields: Dict[str, Tuple[Any, str]] = {}
    idx = _skip_ws(text, 0)

    if text.startswith("null", idx):
        idx += 4
    elif text.startswith("{", idx):
        idx = _skip_ws(text, idx + 1)
        if text.startswith("}", idx):
            idx += 1
        else:
            while True:
                if not text.startswith('"', idx):
                    raise ValueError(f"expected a member name at offset {idx}")
                name, idx = _scan_value(text, idx)
                idx = _skip_ws(text, idx)
                if not text.startswith(":", idx):
                    raise ValueError(f"expected ':' at offset {idx}")
                start = _skip_ws(text, idx + 1)
                value, idx = _scan_value(text, start)
                fields[name] = (value, text[start:idx])
                idx = _skip_ws(text, idx)
                if text.startswith(",", idx):
                    idx = _skip_ws(text, idx + 1)
                elif text.startswith("}", idx):
                    idx += 1
                    break
                else:
                    raise ValueError(f"expected ',' or '}}' at offset {idx}")
    else:
        raise ValueError("expected a JSON object")

    if _skip_ws(text, idx) != len(text):
        raise ValueError(f"unexpected data after the JSON object at offset {idx}")
    return fields


def compact(raw: str) -> str:
    """Drop whitespace outside strings from an already-valid JSON text."""
    return _STRING_OR_WS.sub(lambda m: m.group(1) or "", raw)
