"""
Stable serialization and hashing.

Used wherever identity matters: metric cache keys (signature of the analyzer
inputs) and rebuild de-duplication (hash of the normalized AI insights).

`stable_stringify` produces the same string for structurally equal values
regardless of dict insertion order. `hash_string` is a 32-bit djb2 variant
(multiply by 33, XOR each UTF-16 code unit) rendered as unpadded hex.

The hash is NOT cryptographic. It is fine for change detection and cache
addressing between cooperating components; it offers no resistance to an
adversary crafting collisions, so do not use it where cache poisoning or
tampering matters.
"""

import json
import math
import numbers
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Set

from pydantic import BaseModel


CIRCULAR_SENTINEL = '"[Circular]"'

_DJB2_SEED = 5381
_MASK_32 = 0xFFFFFFFF


def _format_number(value: numbers.Real) -> str:
    """
    Number text as a browser's JSON.stringify writes it.

    Shortest round-trip digits (repr gives the same digits as JS), placed in
    plain notation for decimal exponents from -6 to 20 and in d.ddde+N
    notation outside that range: 1e-7, 0.000015, 1e+21.
    """
    if isinstance(value, numbers.Integral):
        return str(int(value))
    as_float = float(value)
    if not math.isfinite(as_float):
        return "null"
    if as_float == 0:
        return "0"

    sign = "-" if as_float < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(as_float))).as_tuple()
    digits = "".join(map(str, digit_tuple)).rstrip("0")
    exponent += len("".join(map(str, digit_tuple))) - len(digits)
    # value == 0.<digits> * 10**point
    point = len(digits) + exponent

    if len(digits) <= point <= 21:
        text = digits + "0" * (point - len(digits))
    elif 0 < point <= 21:
        text = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        text = f"0.{'0' * -point}{digits}"
    else:
        mantissa = digits[0] if len(digits) == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if point - 1 >= 0 else '-'}{abs(point - 1)}"
    return sign + text


def _encode_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def stable_stringify(value: Any) -> str:
    """
    Serialize a JSON-compatible value canonically.

    Rules:
    - dict keys are sorted lexicographically (non-string keys are str()-ed)
    - lists and tuples keep their order
    - None -> null, booleans -> true/false, strings use JSON encoding
    - integral floats render like ints, other floats in JavaScript number
      notation (1e-7, 0.000015); NaN/Infinity render as null
    - pydantic models are dumped without their None fields
    - enums use their value, dates/datetimes their ISO-8601 form
    - a container that contains itself is replaced by "[Circular]"
    - anything else is rendered as the JSON string of str(value)

    Never raises.
    """
    active: Set[int] = set()

    def encode(item: Any) -> str:
        if item is None:
            return "null"
        if isinstance(item, bool):
            return "true" if item else "false"
        if isinstance(item, Enum):
            return encode(item.value)
        if isinstance(item, numbers.Real):
            return _format_number(item)
        if isinstance(item, str):
            return _encode_string(item)
        if isinstance(item, BaseModel):
            return encode(item.model_dump(exclude_none=True))
        if isinstance(item, (datetime, date)):
            return _encode_string(item.isoformat())

        if isinstance(item, (list, tuple, dict)):
            marker = id(item)
            if marker in active:
                return CIRCULAR_SENTINEL
            active.add(marker)
            try:
                if isinstance(item, dict):
                    pairs = sorted(
                        ((str(k), v) for k, v in item.items()),
                        key=lambda pair: pair[0],
                    )
                    body = ",".join(f"{_encode_string(k)}:{encode(v)}" for k, v in pairs)
                    return "{" + body + "}"
                return "[" + ",".join(encode(x) for x in item) + "]"
            finally:
                active.discard(marker)

        return _encode_string(str(item))

    return encode(value)


def _utf16_code_units(text: str) -> List[int]:
    raw = text.encode("utf-16-le", errors="surrogatepass")
    return [int.from_bytes(raw[i:i + 2], "little") for i in range(0, len(raw), 2)]


def hash_string(text: str) -> str:
    """
    djb2-style 32-bit hash of a string, as lowercase hex.

    Iterates UTF-16 code units so the value matches the web client's hash of
    the same string.
    """
    h = _DJB2_SEED
    for unit in _utf16_code_units(text):
        h = ((h * 33) ^ unit) & _MASK_32
    return format(h, "x")


def compute_signature(value: Any) -> str:
    """Fingerprint of any JSON-compatible value: hash_string(stable_stringify(value))."""
    return hash_string(stable_stringify(value))
