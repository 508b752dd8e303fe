"""
JSON Canonicalization Scheme (JCS) implementation per RFC 8785.

Payload and result digests are computed over this encoding, so two logically
equal bodies hash to the same value regardless of key order. Floats are
written as IEEE doubles the way ECMAScript prints them, while Python integers
are written exactly. An integer and an equal float therefore encode alike only
within +/-2**53: ``1`` and ``1.0`` match, ``2**60`` and ``2.0**60`` do not.
"""

import math
from decimal import Decimal
from typing import Any

# ECMAScript switches to exponent notation outside [1e-6, 1e21)
_MAX_PLAIN_EXPONENT = 21
_MIN_PLAIN_EXPONENT = -6

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


class JCSCanonicalizer:
    """
    JSON Canonicalization Scheme (RFC 8785) implementation.

    Produces deterministic JSON output by:
    1. Sorting object keys by their UTF-16 code units
    2. Using no whitespace between tokens
    3. Formatting numbers the way ECMAScript ``Number.prototype.toString`` does
    4. Using minimal string escaping
    """

    def canonicalize(self, value: Any) -> str:
        """
        Canonicalize a Python value to a JCS-compliant JSON string.

        Args:
            value: A JSON-compatible value (dict with str keys, list, tuple,
                str, int, float, bool or None)

        Returns:
            Canonical JSON string per RFC 8785

        Raises:
            TypeError: If the value contains a non-JSON type or a non-string key
            ValueError: If the value contains NaN or an infinity
            RecursionError: If the value is nested deeper than the interpreter
                recursion limit
        """
        parts: list[str] = []
        self._write(value, parts)
        return "".join(parts)

    def _write(self, value: Any, out: list[str]) -> None:
        if value is None:
            out.append("null")
        elif value is True:
            out.append("true")
        elif value is False:
            out.append("false")
        elif isinstance(value, str):
            out.append(self._quote(value))
        elif isinstance(value, int):
            out.append(str(int(value)))
        elif isinstance(value, float):
            out.append(self._format_number(value))
        elif isinstance(value, dict):
            self._write_object(value, out)
        elif isinstance(value, (list, tuple)):
            out.append("[")
            for index, item in enumerate(value):
                if index:
                    out.append(",")
                self._write(item, out)
            out.append("]")
        else:
            raise TypeError(f"Cannot canonicalize type: {type(value).__name__}")

    def _write_object(self, obj: dict[Any, Any], out: list[str]) -> None:
        for key in obj:
            if not isinstance(key, str):
                raise TypeError(
                    f"Object keys must be strings, got {type(key).__name__}"
                )

        # UTF-16 code unit order differs from code point order for astral characters
        ordered = sorted(obj, key=lambda k: k.encode("utf-16-be"))

        out.append("{")
        for index, key in enumerate(ordered):
            if index:
                out.append(",")
            out.append(self._quote(key))
            out.append(":")
            self._write(obj[key], out)
        out.append("}")

    def _quote(self, s: str) -> str:
        chars = ['"']
        for char in s:
            escaped = _ESCAPES.get(char)
            if escaped is not None:
                chars.append(escaped)
            elif ord(char) < 0x20:
                chars.append(f"\\u{ord(char):04x}")
            else:
                chars.append(char)
        chars.append('"')
        return "".join(chars)

    def _format_number(self, n: float) -> str:
        """
        Format a float using the ECMAScript shortest round-trip rules.

        ``repr`` already yields the shortest digit string that round-trips;
        only the placement of the decimal point and exponent differs.
        """
        if math.isnan(n) or math.isinf(n):
            raise ValueError(f"Cannot canonicalize {n}: not valid JSON")

        if n == 0.0:
            return "0"

        sign = "-" if n < 0 else ""
        _, digit_tuple, exponent = Decimal(repr(abs(n))).as_tuple()
        raw = "".join(str(d) for d in digit_tuple)
        digits = raw.rstrip("0") or "0"

        k = len(digits)
        # position of the decimal point relative to the first digit
        point = int(exponent) + len(raw)

        if k <= point <= _MAX_PLAIN_EXPONENT:
            return sign + digits + "0" * (point - k)
        if 0 < point <= _MAX_PLAIN_EXPONENT:
            return sign + digits[:point] + "." + digits[point:]
        if _MIN_PLAIN_EXPONENT < point <= 0:
            return sign + "0." + "0" * (-point) + digits

        exp = point - 1
        exp_str = f"e+{exp}" if exp > 0 else f"e-{-exp}"
        if k == 1:
            return sign + digits + exp_str
        return sign + digits[0] + "." + digits[1:] + exp_str


_canonicalizer = JCSCanonicalizer()


def canonicalize(value: Any) -> str:
    """
    Canonicalize a Python value to a JCS-compliant JSON string.

    Convenience wrapper around a module-level ``JCSCanonicalizer``.
    """
    return _canonicalizer.canonicalize(value)
