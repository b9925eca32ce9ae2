"""
PSBT IO helpers (thin wrappers around python-bitcointx via dynamic import).

Load PSBTs from files (auto-detect hex vs base64), write them back, read the
witness_utxo scriptPubKey of an input, install a finished script-path witness
on an input and convert to raw transaction hex.
"""
from __future__ import annotations

import base64
import binascii
from typing import Any, Sequence

from .hexutil import is_hex_str


def _imp_psbt():
    import importlib
    return importlib.import_module('bitcointx.core.psbt').PartiallySignedTransaction


def _imp_core_script_witness():
    import importlib
    return importlib.import_module('bitcointx.core.script').CScriptWitness


def _imp_core_script():
    import importlib
    return importlib.import_module('bitcointx.core.script').CScript


def _imp_b2x():
    import importlib
    return importlib.import_module('bitcointx.core').b2x


def load_psbt_from_file(path: str) -> Any:
    """Load a PSBT from file contents which may be hex or base64.

    Raises:
        ImportError if python-bitcointx is not installed.
    """
    PSBT = _imp_psbt()
    with open(path, 'rt') as f:
        s = f.read().strip()
    if is_hex_str(s):
        raw = binascii.unhexlify(s)
        s = base64.b64encode(raw).decode()
    return PSBT.from_base64(s)


def write_psbt(psbt: Any, path: str) -> None:
    """Write PSBT to file as base64."""
    with open(path, 'wt') as f:
        f.write(psbt.to_base64())


def to_raw_tx_hex(psbt: Any) -> str:
    b2x = _imp_b2x()
    tx = psbt.extract_transaction()
    return b2x(tx.serialize())


def get_input_witness_spk_hex(psbt: Any, index: int = 0) -> str:
    """Return the witness_utxo scriptPubKey hex for the given input index."""
    iu = psbt.inputs[index].utxo
    if iu is not None and hasattr(iu, "vout"):
        # non-witness utxo: full previous transaction
        iu = iu.vout[psbt.unsigned_tx.vin[index].prevout.n]
    if iu is None:
        raise ValueError(f'PSBT input {index} missing witness_utxo')
    return iu.scriptPubKey.hex()


def finalize_input(psbt: Any, index: int, witness: Sequence[bytes]) -> None:
    """Set final_script_witness on an input and drop data finalized inputs must not carry."""
    if index < 0 or index >= len(psbt.inputs):
        raise IndexError(f"Input index {index} out of range")
    CScript = _imp_core_script()
    pi = psbt.inputs[index]
    pi.final_script_witness = _imp_core_script_witness()(list(witness))
    pi.partial_sigs = {}
    pi.sighash_type = None
    pi.redeem_script = CScript()
    pi.witness_script = CScript()
    pi.derivation_map = {}
