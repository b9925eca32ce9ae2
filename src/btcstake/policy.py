"""
Signer groups and their key order.

A staking leaf script pushes the keys of a signer group (covenant committee,
finality providers) as

    <pk_0> OP_CHECKSIG <pk_1> OP_CHECKSIGADD ... <k> OP_NUMEQUAL[VERIFY]

with pk_0 < pk_1 < ... in lexicographic order of their x-only encoding. The
interpreter checks pk_0 against the top-most witness item, so the matching
signature slots are pushed in reverse key order. SignerSet owns both orders so
script compilation and witness building share one source of truth.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from .signature import SchnorrSignature

XONLY_KEY_LEN = 32


@dataclass(frozen=True)
class SignerSet:
    """x-only public keys of one signer group, in any order.

    Attributes:
        pks: 32-byte x-only public keys.
        name: label used in error messages ("covenant", "finality provider").
    """
    pks: Sequence[bytes]
    name: str = "signer"

    def validate(self) -> None:
        if len(self.pks) == 0:
            raise ValueError(f"{self.name} key set must not be empty")
        for pk in self.pks:
            if len(pk) != XONLY_KEY_LEN:
                raise ValueError(f"{self.name} public keys must be 32-byte x-only keys")
        if len(set(bytes(pk) for pk in self.pks)) != len(self.pks):
            raise ValueError(f"duplicate {self.name} public key")

    def sorted_keys(self) -> List[bytes]:
        """Keys in the order the script pushes them."""
        self.validate()
        return sorted(bytes(pk) for pk in self.pks)

    def witness_slots(self, sigs_by_pk: Mapping[bytes, SchnorrSignature]) -> List[Optional[SchnorrSignature]]:
        """Arrange signatures into witness slot order.

        Keys with no signature yield None (an empty push in the witness).
        """
        keys = self.sorted_keys()
        known = set(keys)
        for pk in sigs_by_pk:
            if bytes(pk) not in known:
                raise ValueError(f"signature for unknown {self.name} key {bytes(pk).hex()}")
        by_key = {bytes(pk): sig for pk, sig in sigs_by_pk.items()}
        return [by_key.get(pk) for pk in reversed(keys)]
