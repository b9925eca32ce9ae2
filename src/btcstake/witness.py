"""
Script-path witness builders for staking outputs.

Witness layout (bottom of stack first)

- Timelock:  [sig_del, script, control]
- Unbonding: [cov_sig_1 .. cov_sig_n, sig_del, script, control]
- Slashing:  [cov_sig_1 .. cov_sig_n, fp_sig_1 .. fp_sig_m, sig_del, script, control]

Covenant and finality-provider slots may be missing; a missing slot is an
empty push so the remaining signatures stay aligned with the public keys of
the revealed script. Slot order must follow SignerSet.witness_slots (see
policy.py), the same ordering the script compiler uses for its key pushes.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from .signature import SchnorrSignature, slot_bytes
from .taproot import SpendInfo


Witness = List[bytes]


class MissingInputError(ValueError):
    """A required signature (or signature list) was not supplied."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


def _require_spend_info(spend_info: Optional[SpendInfo]) -> SpendInfo:
    if spend_info is None:
        raise TypeError("cannot build witness without spend info")
    return spend_info


def _require_delegator(sig: Optional[SchnorrSignature]) -> bytes:
    if sig is None:
        raise MissingInputError("delegator_sig", "delegator signature is required")
    return sig.serialize()


def _optional_slots(field: str, label: str, sigs: Sequence[Optional[SchnorrSignature]]) -> List[bytes]:
    if len(sigs) == 0:
        raise MissingInputError(field, f"{label} signatures must not be empty")
    return [slot_bytes(s) for s in sigs]


def assemble_witness(spend_info: SpendInfo, slots: Sequence[bytes]) -> Witness:
    """Assemble the final witness: signature slots, revealed script, control block.

    Raises:
        TypeError: spend_info is None.
        ControlBlockError: the control block cannot be serialized.
    """
    si = _require_spend_info(spend_info)
    control = si.control_block.to_bytes()

    n = len(slots)
    stack: Witness = [b""] * (n + 2)
    for i, slot in enumerate(slots):
        stack[i] = bytes(slot)
    stack[n] = si.script
    stack[n + 1] = control
    return stack


def build_timelock_witness(spend_info: SpendInfo, delegator_sig: Optional[SchnorrSignature]) -> Witness:
    _require_spend_info(spend_info)
    return assemble_witness(spend_info, [_require_delegator(delegator_sig)])


def build_unbonding_witness(
    spend_info: SpendInfo,
    covenant_sigs: Sequence[Optional[SchnorrSignature]],
    delegator_sig: Optional[SchnorrSignature],
) -> Witness:
    """Witness for the unbonding path.

    Only a quorum of covenant_sigs needs to be present; reaching the quorum
    is the caller's responsibility. covenant_sigs must hold one entry per
    committee member, in witness order.
    """
    _require_spend_info(spend_info)
    slots = _optional_slots("covenant_sigs", "covenant", covenant_sigs)
    slots.append(_require_delegator(delegator_sig))
    return assemble_witness(spend_info, slots)


def build_slashing_witness(
    spend_info: SpendInfo,
    covenant_sigs: Sequence[Optional[SchnorrSignature]],
    fp_sigs: Sequence[Optional[SchnorrSignature]],
    delegator_sig: Optional[SchnorrSignature],
) -> Witness:
    """Witness for the slashing path.

    A quorum of covenant_sigs and at least one of fp_sigs must be present
    for the script to succeed; neither is counted here. Missing entries are
    encoded as empty pushes, never dropped.
    """
    _require_spend_info(spend_info)
    slots = _optional_slots("covenant_sigs", "covenant", covenant_sigs)
    slots += _optional_slots("fp_sigs", "finality provider", fp_sigs)
    slots.append(_require_delegator(delegator_sig))
    return assemble_witness(spend_info, slots)
