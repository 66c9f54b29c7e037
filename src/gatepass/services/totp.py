"""Time-based one-time password verification (RFC 4226 / RFC 6238 style)."""

from __future__ import annotations

import hashlib
import hmac
import struct
from typing import Final

from gatepass.core.settings import Settings, settings

BASE32_ALPHABET: Final[str] = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_BASE32_VALUES: Final[dict[str, int]] = {char: idx for idx, char in enumerate(BASE32_ALPHABET)}
_MAX_COUNTER: Final[int] = 2**64 - 1


class InvalidSeedError(ValueError):
    """Raised when a TOTP seed is not valid base32."""


def base32_decode(seed: str) -> bytes:
    """Decode an RFC 4648 base32 seed.

    Padding is stripped and case is ignored; trailing bits that do not fill
    a whole byte are discarded.

    Raises:
        InvalidSeedError: On an empty seed or any character outside ``A-Z2-7``.
    """
    clean = seed.replace("=", "").upper()
    if not clean:
        raise InvalidSeedError("Empty TOTP seed")

    buffer = 0
    bits = 0
    out = bytearray()
    for char in clean:
        value = _BASE32_VALUES.get(char)
        if value is None:
            raise InvalidSeedError(f"Invalid base32 character {char!r}")
        buffer = (buffer << 5) | value
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((buffer >> bits) & 0xFF)
    return bytes(out)


def generate_token(seed: str, counter: int, *, digits: int = 6) -> str:
    """Return the one-time code for ``counter`` under ``seed``.

    HMAC-SHA256 over the big-endian 64-bit counter, then RFC 4226 dynamic
    truncation.
    """
    if not 0 <= counter <= _MAX_COUNTER:
        raise ValueError(f"Counter out of range: {counter}")
    key = base32_decode(seed)
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha256).digest()
    offset = digest[-1] & 0x0F
    truncated = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(truncated % (10**digits)).zfill(digits)


class TOTPVerifier:
    """Checks presented tokens against a shared seed with bounded clock skew."""

    def __init__(self, config: Settings | None = None) -> None:
        cfg = config or settings
        self.period = cfg.totp_period_seconds
        self.digits = cfg.totp_digits
        self.skew = cfg.totp_skew_steps

    def counter_at(self, at: float) -> int:
        """Return the time-step counter containing ``at``."""
        return int(at // self.period)

    def generate(self, seed: str, counter: int) -> str:
        return generate_token(seed, counter, digits=self.digits)

    def candidate_counters(self, at: float) -> list[int]:
        """Return counters accepted at ``at``: current first, then past, then future."""
        current = self.counter_at(at)
        counters = [current]
        for step in range(1, self.skew + 1):
            counters.append(current - step)
            counters.append(current + step)
        return [c for c in counters if 0 <= c <= _MAX_COUNTER]

    def validate(self, token: str, seed: str, at: float) -> bool:
        """Return True if ``token`` matches any counter within the skew window.

        A malformed seed never matches.
        """
        if len(token) != self.digits or not (token.isascii() and token.isdigit()):
            return False
        try:
            key_check = base32_decode(seed)
        except InvalidSeedError:
            return False
        if not key_check:
            return False

        matched = False
        for counter in self.candidate_counters(at):
            expected = self.generate(seed, counter)
            # Constant time across the whole window.
            matched |= hmac.compare_digest(expected, token)
        return matched
