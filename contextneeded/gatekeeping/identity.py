"""Client identity derived from passively available environment signals.

The identifier is a rate-limit heuristic, not an identity system: devices
with identical user agent, language and timezone share one id.
"""

from __future__ import annotations

from dataclasses import dataclass

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass(frozen=True)
class ClientEnvironment:
    user_agent: str | None = None
    language: str = ""
    timezone: str = ""

    @classmethod
    def from_headers(cls, headers) -> ClientEnvironment:
        """Read the environment from request headers (any case-insensitive mapping)."""
        accept_language = headers.get("accept-language") or ""
        language = accept_language.split(",")[0].split(";")[0].strip()
        return cls(
            user_agent=headers.get("user-agent") or None,
            language=language,
            timezone=(headers.get("x-client-timezone") or "").strip(),
        )


def derive_client_id(env: ClientEnvironment) -> str:
    fingerprint = "_".join([env.user_agent or "unknown", env.language, env.timezone])
    return "client_" + _to_base36(abs(_rolling_hash(fingerprint)))


def _rolling_hash(text: str) -> int:
    # Hashes UTF-16 code units, wrapping to a signed 32-bit int after each step.
    data = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
        if value >= 0x80000000:
            value -= 0x100000000
    return value


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))
