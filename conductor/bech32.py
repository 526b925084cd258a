"""Bech32 address encoding (the original checksum variant, not bech32m)."""

from __future__ import annotations

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
SEPARATOR = "1"
_CHECKSUM_LENGTH = 6
_BECH32_CONSTANT = 1
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_CHAR_VALUES = {char: value for value, char in enumerate(CHARSET)}


def _polymod(values: list[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = ((checksum & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_GENERATOR):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _hrp_expand(hrp: str) -> list[int]:
    codes = [ord(char) for char in hrp]
    return [code >> 5 for code in codes] + [0] + [code & 31 for code in codes]


def _check_hrp(hrp: str) -> str:
    if not 1 <= len(hrp) <= 83:
        raise ValueError(f"invalid human-readable part length: {len(hrp)}")
    if any(not 33 <= ord(char) <= 126 for char in hrp):
        raise ValueError(f"invalid character in human-readable part: {hrp!r}")
    if hrp.lower() != hrp and hrp.upper() != hrp:
        raise ValueError(f"mixed case in human-readable part: {hrp!r}")
    return hrp.lower()


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    accumulator = 0
    bits = 0
    max_value = (1 << to_bits) - 1
    out: list[int] = []
    for value in data:
        if value >> from_bits:
            raise ValueError(f"value {value} does not fit in {from_bits} bits")
        accumulator = (accumulator << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((accumulator >> bits) & max_value)
    if pad:
        if bits:
            out.append((accumulator << (to_bits - bits)) & max_value)
    elif bits >= from_bits or (accumulator << (to_bits - bits)) & max_value:
        raise ValueError("invalid padding in bech32 data")
    return out


def _checksum(hrp: str, data: list[int]) -> list[int]:
    polymod = _polymod(_hrp_expand(hrp) + data + [0] * _CHECKSUM_LENGTH) ^ _BECH32_CONSTANT
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(_CHECKSUM_LENGTH)]


def encode(hrp: str, data: bytes) -> str:
    """Encode ``data`` under the human-readable part ``hrp``; output is lower case."""
    hrp = _check_hrp(hrp)
    words = _convert_bits(bytes(data), 8, 5, pad=True)
    combined = words + _checksum(hrp, words)
    return hrp + SEPARATOR + "".join(CHARSET[word] for word in combined)


def decode(address: str) -> tuple[str, bytes]:
    """Split a bech32 address into its human-readable part and payload bytes.

    Raises ValueError for malformed input or a bad checksum.
    """
    if address.lower() != address and address.upper() != address:
        raise ValueError(f"mixed case in bech32 string: {address!r}")
    address = address.lower()
    position = address.rfind(SEPARATOR)
    if position < 1:
        raise ValueError(f"missing human-readable part or separator: {address!r}")
    if position + 1 + _CHECKSUM_LENGTH > len(address):
        raise ValueError(f"bech32 string too short: {address!r}")
    hrp = _check_hrp(address[:position])
    try:
        words = [_CHAR_VALUES[char] for char in address[position + 1:]]
    except KeyError as exc:
        raise ValueError(f"invalid character in bech32 data: {exc.args[0]!r}") from None
    if _polymod(_hrp_expand(hrp) + words) != _BECH32_CONSTANT:
        raise ValueError(f"invalid bech32 checksum: {address!r}")
    payload = _convert_bits(words[:-_CHECKSUM_LENGTH], 5, 8, pad=False)
    return hrp, bytes(payload)