"""
GPMF record stream.

A GPMF payload is a sequence of KLV items, each made of

- a 4-byte FourCC key, e.g. ``DEVC``, ``STRM``, ``GPS5``;
- a 1-byte type character (``\\x00`` for a nested container);
- a 1-byte structure size and a 2-byte big-endian repeat count;
- ``structure size * repeat`` bytes of data, padded to a 4-byte boundary.

Containers (``DEVC > STRM``) hold further KLV items.  Inside a ``STRM`` the
``SCAL`` item gives the divisors that turn raw integers into physical units
and ``TYPE`` describes the layout of complex (``?``) structures such as
``GPS9``.

:class:`GPMFStream` validates a whole payload up front and then yields the
leaf records depth-first, in stream order.
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass
from typing import Iterator, Union

import numpy as np

from gps_telemetry.errors import (
    RecordDecodeError,
    StreamCorruptionError,
    UnknownRecordTypeError,
)

# ---------------------------------------------------------------------------
# GPMF binary type → Python struct format character
# ---------------------------------------------------------------------------
_TYPE_FMT: dict[str, str] = {
    "b": "b",
    "B": "B",
    "c": "c",
    "d": "d",
    "f": "f",
    "F": "4s",
    "G": "16s",
    "j": "q",
    "J": "Q",
    "l": "i",
    "L": "I",
    "q": "i",
    "Q": "q",
    "s": "h",
    "S": "H",
    "U": "16s",
}

# Fixed point types: Q15.16 and Q31.32
_FIXED_POINT: dict[str, float] = {
    "q": float(1 << 16),
    "Q": float(1 << 32),
}

_NUMERIC_TYPES = set("bBdfjJlLqQsS")

NEST = "\x00"
COMPLEX = "?"

_TYPE_DESC_RE = re.compile(r"(.)(?:\[(\d+)\])?")


def _is_fourcc(key: bytes) -> bool:
    return all((c < 0x80 and chr(c).isalnum()) or c == 0x20 for c in key)


def expand_type_desc(desc: str) -> str:
    """Expand a ``TYPE`` descriptor such as ``"f[3]L"`` into ``"fffL"``."""
    out = []
    for m in _TYPE_DESC_RE.finditer(desc):
        type_char, count = m.groups()
        out.append(type_char * (int(count) if count else 1))
    return "".join(out)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GPMFRecord:
    """One leaf KLV item plus the ``SCAL``/``TYPE`` context of its container."""

    key: str
    type_char: str
    struct_size: int
    repeat: int
    data: bytes
    scal: tuple[float, ...] | None = None
    type_desc: str | None = None

    @property
    def element_types(self) -> str:
        """One type character per element of a sample."""
        if self.type_char == COMPLEX:
            return expand_type_desc(self.type_desc) if self.type_desc else ""
        if self.type_char in ("U", "G", "F"):
            return self.type_char
        elem_size = struct.calcsize(">" + _TYPE_FMT[self.type_char])
        return self.type_char * (self.struct_size // elem_size)

    @property
    def elements(self) -> int:
        return len(self.element_types)

    def text(self) -> str:
        """Decode the data as Latin-1 text, trailing NULs removed."""
        return (
            self.data[: self.struct_size * self.repeat]
            .decode("latin1", errors="replace")
            .rstrip("\x00")
        )

    def values(self) -> np.ndarray:
        """Unpack raw values into an ndarray of shape ``(repeat, elements)``."""
        types = self.element_types
        if not types:
            raise RecordDecodeError(f"{self.key}: no type description")
        if any(t not in _NUMERIC_TYPES for t in types):
            raise RecordDecodeError(f"{self.key}: non-numeric type {types!r}")

        fmt = ">" + "".join(_TYPE_FMT[t] for t in types)
        if struct.calcsize(fmt) != self.struct_size:
            raise RecordDecodeError(
                f"{self.key}: type {types!r} does not fill {self.struct_size} bytes"
            )
        nbytes = self.struct_size * self.repeat
        if nbytes > len(self.data) or nbytes == 0:
            raise RecordDecodeError(f"{self.key}: truncated data")

        arr = np.array(
            list(struct.iter_unpack(fmt, self.data[:nbytes])), dtype=np.float64
        ).reshape(self.repeat, len(types))

        for col, t in enumerate(types):
            if t in _FIXED_POINT:
                arr[:, col] /= _FIXED_POINT[t]
        return arr

    def scaled(self) -> np.ndarray:
        """Values divided by ``SCAL``, broadcasting along the element axis."""
        values = self.values()
        if self.scal is None:
            return values
        scal = np.array(self.scal, dtype=np.float64)
        if np.any(scal == 0):
            raise RecordDecodeError(f"{self.key}: zero SCAL divisor")
        if scal.shape[0] == 1:
            return values / scal[0]
        if scal.shape[0] != values.shape[1]:
            raise RecordDecodeError(
                f"{self.key}: {scal.shape[0]} SCAL values for {values.shape[1]} elements"
            )
        return values / scal[np.newaxis, :]


# ---------------------------------------------------------------------------
# Low-level GPMF KLV parsing
# ---------------------------------------------------------------------------

_KLVItem = tuple[str, str, int, int, Union[bytes, list]]


def _parse_klv(data: bytes) -> list[_KLVItem]:
    """Recursively parse and validate GPMF KLV items.

    Returns a list of ``(fourcc, type_char, struct_size, repeat, payload)``
    where *payload* is ``bytes`` for leaf items or a nested ``list`` for
    containers.
    """
    pos = 0
    results: list[_KLVItem] = []
    length = len(data)
    while pos < length:
        if pos + 8 > length:
            if any(data[pos:]):
                raise StreamCorruptionError(f"truncated KLV header at offset {pos}")
            break
        raw_key = data[pos : pos + 4]
        if raw_key == b"\x00\x00\x00\x00":
            break
        if not _is_fourcc(raw_key):
            raise StreamCorruptionError(f"invalid key {raw_key!r} at offset {pos}")
        key = raw_key.decode("ascii")
        type_char = chr(data[pos + 4])
        struct_size = data[pos + 5]
        repeat = struct.unpack(">H", data[pos + 6 : pos + 8])[0]

        if type_char != NEST and type_char != COMPLEX and type_char not in _TYPE_FMT:
            raise UnknownRecordTypeError(
                f"unknown type {type_char!r} for {key} at offset {pos}"
            )

        data_len = struct_size * repeat
        if pos + 8 + data_len > length:
            raise StreamCorruptionError(
                f"{key} at offset {pos} overruns its container ({data_len} bytes)"
            )
        payload = data[pos + 8 : pos + 8 + data_len]
        if type_char == NEST:
            results.append((key, type_char, struct_size, repeat, _parse_klv(payload)))
        else:
            results.append((key, type_char, struct_size, repeat, payload))

        total = 8 + data_len
        padding = (4 - (total % 4)) % 4
        pos += total + padding
    return results


class GPMFStream:
    """A validated GPMF payload.

    Raises :class:`UnknownRecordTypeError` or :class:`StreamCorruptionError`
    on construction if the buffer is not a well-formed GPMF stream.
    """

    def __init__(self, buffer: bytes):
        self._tree = _parse_klv(bytes(buffer))

    def __iter__(self) -> Iterator[GPMFRecord]:
        return self._walk(self._tree)

    def _walk(self, items: list[_KLVItem]) -> Iterator[GPMFRecord]:
        # SCAL and TYPE apply to the items that follow them in the same container
        scal: tuple[float, ...] | None = None
        type_desc: str | None = None
        for key, type_char, struct_size, repeat, payload in items:
            if isinstance(payload, list):
                yield from self._walk(payload)
                continue

            record = GPMFRecord(
                key=key,
                type_char=type_char,
                struct_size=struct_size,
                repeat=repeat,
                data=payload,
                scal=scal,
                type_desc=type_desc,
            )
            if key == "SCAL" and repeat and struct_size:
                try:
                    scal = tuple(float(v) for v in record.values().flat)
                except RecordDecodeError:
                    scal = None
            elif key == "TYPE" and type_char == "c":
                type_desc = record.text()
            yield record
