"""Unsigned 128-bit integers split into two 64-bit halves."""

from __future__ import annotations

from dataclasses import dataclass

_U64_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class Uint128:
    """A 128-bit unsigned integer as its low and high 64-bit words."""

    lo: int
    hi: int

    def __post_init__(self) -> None:
        for name in ("lo", "hi"):
            word = getattr(self, name)
            if not 0 <= word <= _U64_MAX:
                raise ValueError(f"{name} must fit in 64 unsigned bits, got {word}")

    @classmethod
    def from_int(cls, value: int) -> Uint128:
        if not 0 <= value < (1 << 128):
            raise ValueError(f"value does not fit in 128 unsigned bits: {value}")
        return cls(lo=value & _U64_MAX, hi=value >> 64)

    def __int__(self) -> int:
        return (self.hi << 64) | self.lo