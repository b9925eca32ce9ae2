"""
Spend info verification.

Recompute the Taproot output a spend info (script + control block) commits to
and compare it with the scriptPubKey of the output being spent.
"""
from __future__ import annotations

from typing import Optional, TypedDict

from .taproot import SpendInfo, spend_info_output_spk


class VerifyResult(TypedDict):
    ok: Optional[bool]
    expected_spk: Optional[str]
    actual_spk: str
    reason: Optional[str]


def verify_spend_info(spend_info: SpendInfo, witness_spk_hex: str) -> VerifyResult:
    actual_spk = witness_spk_hex.strip().lower()
    try:
        spk, parity = spend_info_output_spk(spend_info)
    except ValueError as e:
        return {
            'ok': None,
            'expected_spk': None,
            'actual_spk': actual_spk,
            'reason': str(e),
        }
    expected_spk = spk.hex()

    if parity != spend_info.control_block.parity:
        return {
            'ok': False,
            'expected_spk': expected_spk,
            'actual_spk': actual_spk,
            'reason': 'control block parity mismatch',
        }

    ok = (expected_spk == actual_spk)
    return {
        'ok': ok,
        'expected_spk': expected_spk,
        'actual_spk': actual_spk,
        'reason': None if ok else 'scriptPubKey mismatch',
    }
