"""Byte strings that travel as standard base64 text."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass


@dataclass(frozen=True)
class Base64String:
    """Raw bytes that serialise to and from standard, padded base64."""

    data: bytes

    @classmethod
    def from_string(cls, value: str) -> Base64String:
        """Decode a standard base64 string.

        Raises ValueError if ``value`` is not valid base64.
        """
        try:
            decoded = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise ValueError(
                f"failed to decode string {value} from base64: {exc}"
            ) from exc
        return cls(decoded)

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)

    def __str__(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def __repr__(self) -> str:
        return str(self)