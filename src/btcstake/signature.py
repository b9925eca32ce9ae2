from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .hexutil import parse_hex


SCHNORR_SIG_LEN = 64
MISSING_SLOT = b""  # placeholder for an absent covenant/finality-provider signature


@dataclass(frozen=True)
class SchnorrSignature:
    """Raw BIP-340 Schnorr signature (64 bytes, no sighash byte)."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)):
            raise TypeError("signature must be bytes")
        if len(self.raw) != SCHNORR_SIG_LEN:
            raise ValueError(f"signature must be {SCHNORR_SIG_LEN} bytes (got {len(self.raw)})")
        object.__setattr__(self, "raw", bytes(self.raw))

    @classmethod
    def from_hex(cls, s: str, name: str = "signature") -> "SchnorrSignature":
        return cls(parse_hex(name, s, SCHNORR_SIG_LEN))

    def serialize(self) -> bytes:
        return self.raw


def slot_bytes(sig: Optional[SchnorrSignature]) -> bytes:
    """Encode a signature slot for the witness: raw bytes, or b'' when missing."""
    if sig is None:
        return MISSING_SLOT
    return sig.serialize()
