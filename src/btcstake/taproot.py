from __future__ import annotations

import binascii
import hashlib
from dataclasses import dataclass
from typing import Sequence, Tuple

from .hexutil import parse_hex

SECP256K1_ORDER = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)

LEAF_VERSION = 0xC0  # BIP-342 tapscript leaf version
MAX_MERKLE_DEPTH = 128  # BIP-341 TAPROOT_CONTROL_MAX_NODE_COUNT


class ControlBlockError(ValueError):
    """Control block bytes are malformed or cannot be encoded."""


def compactsize(n: int) -> bytes:
    if n < 0xfd:
        return bytes([n])
    elif n <= 0xffff:
        return b"\xfd" + n.to_bytes(2, "little")
    elif n <= 0xffffffff:
        return b"\xfe" + n.to_bytes(4, "little")
    else:
        return b"\xff" + n.to_bytes(8, "little")


def tagged_sha256(tag: str, msg: bytes) -> bytes:
    t = hashlib.sha256(tag.encode()).digest()
    return hashlib.sha256(t + t + msg).digest()


def tapleaf_hash(script: bytes, leaf_version: int = LEAF_VERSION) -> bytes:
    """BIP-341 tagged TapLeaf hash."""
    data = bytes([leaf_version]) + compactsize(len(script)) + script
    return tagged_sha256("TapLeaf", data)


@dataclass(frozen=True)
class ControlBlock:
    """Taproot control block (Merkle inclusion proof for one leaf).

    Attributes:
        leaf_version: Tapscript leaf version (low bit cleared).
        parity: Parity bit of the Taproot output key (0=even, 1=odd).
        internal_key: 32-byte x-only internal key.
        merkle_nodes: Tuple of 32-byte Merkle proof nodes (may be empty).
    """

    leaf_version: int
    parity: int
    internal_key: bytes
    merkle_nodes: Tuple[bytes, ...] = ()

    def to_bytes(self) -> bytes:
        """Serialize to the BIP-341 layout: header, internal key, nodes."""
        if not 0 <= self.leaf_version <= 0xFE or self.leaf_version & 0x01:
            raise ControlBlockError('leaf version must be an even value in 0..254')
        if self.parity not in (0, 1):
            raise ControlBlockError('parity must be 0 or 1')
        if len(self.internal_key) != 32:
            raise ControlBlockError('internal pubkey in control block must be 32 bytes')
        if len(self.merkle_nodes) > MAX_MERKLE_DEPTH:
            raise ControlBlockError(f'control block exceeds {MAX_MERKLE_DEPTH} merkle nodes')
        out = bytearray([self.leaf_version | self.parity])
        out += self.internal_key
        for node in self.merkle_nodes:
            if len(node) != 32:
                raise ControlBlockError('merkle node in control block must be 32 bytes')
            out += node
        return bytes(out)


def parse_control_block(b: bytes) -> ControlBlock:
    """Parse serialized control block bytes and surface structure constraints."""
    if len(b) < 33:
        raise ControlBlockError('control block too short')
    if (len(b) - 33) % 32 != 0:
        raise ControlBlockError('control block length must be 33 + 32*n bytes')
    nodes = tuple(b[i:i + 32] for i in range(33, len(b), 32))
    if len(nodes) > MAX_MERKLE_DEPTH:
        raise ControlBlockError(f'control block exceeds {MAX_MERKLE_DEPTH} merkle nodes')

    hdr = b[0]
    return ControlBlock(
        leaf_version=hdr & 0xFE,  # low bit cleared, per BIP-341 control block layout
        parity=hdr & 0x01,
        internal_key=bytes(b[1:33]),
        merkle_nodes=nodes,
    )


def parse_control_block_hex(cb_hex: str) -> ControlBlock:
    try:
        b = binascii.unhexlify(cb_hex)
    except (binascii.Error, TypeError) as exc:
        raise ControlBlockError("control block must be hex") from exc
    return parse_control_block(b)


@dataclass(frozen=True)
class SpendInfo:
    """Revealed leaf script plus the control block committing to it.

    Both halves describe the same spending path (timelock, unbonding or
    slashing); the pairing is produced upstream and taken as given.
    """

    script: bytes
    control_block: ControlBlock

    @classmethod
    def from_hex(cls, script_hex: str, control_block_hex: str) -> "SpendInfo":
        script = parse_hex("script", script_hex)
        return cls(script=script, control_block=parse_control_block_hex(control_block_hex))

    def leaf_hash(self) -> bytes:
        return tapleaf_hash(self.script, self.control_block.leaf_version)


def _imp_coincurve():
    import importlib
    return importlib.import_module('coincurve')


def _merkle_ascend(leaf_hash: bytes, nodes: Sequence[bytes]) -> bytes:
    h = leaf_hash
    for n in nodes:
        a, b = (h, n)
        if a > b:
            a, b = b, a
        h = tagged_sha256('TapBranch', a + b)
    return h


def compute_output_key(internal_xonly: bytes, leaf_hash: bytes, nodes: Sequence[bytes]) -> Tuple[bytes, int]:
    """Compute the Taproot output x-only pubkey from internal key and path.

    Returns:
        (x_only, parity) where x_only is the 32-byte Taproot output key and
        parity is the secp256k1 y-parity bit (0=even, 1=odd).
    """
    if len(internal_xonly) != 32:
        raise ValueError('internal key must be 32 bytes')
    if len(leaf_hash) != 32:
        raise ValueError('leaf hash must be 32 bytes')
    for node in nodes:
        if len(node) != 32:
            raise ValueError('each merkle node must be 32 bytes')
    PublicKey = _imp_coincurve().PublicKey

    merkle = _merkle_ascend(leaf_hash, nodes)
    tweak = tagged_sha256('TapTweak', internal_xonly + merkle)
    if int.from_bytes(tweak, 'big') >= SECP256K1_ORDER:
        raise ValueError('tap tweak exceeds curve order')

    # lift_x: the even-y point with this x coordinate
    try:
        base_pk = PublicKey(b'\x02' + internal_xonly)
    except ValueError as exc:
        raise ValueError(f'invalid internal key: {exc}')
    try:
        tweaked = base_pk.add(tweak)
    except ValueError as exc:
        raise ValueError(f'failed to apply tap tweak: {exc}')

    compressed = tweaked.format(compressed=True)
    parity = compressed[0] & 1
    return compressed[1:33], parity


def scriptpubkey_from_xonly(xonly_q: bytes) -> bytes:
    if len(xonly_q) != 32:
        raise ValueError('x-only pubkey must be 32 bytes')
    return b"\x51\x20" + xonly_q


def spend_info_output_spk(spend_info: SpendInfo) -> Tuple[bytes, int]:
    """Return (P2TR scriptPubKey, parity) the spend info commits to."""
    cb = spend_info.control_block
    qx, parity = compute_output_key(cb.internal_key, spend_info.leaf_hash(), list(cb.merkle_nodes))
    return scriptpubkey_from_xonly(qx), parity
