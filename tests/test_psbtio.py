import importlib
import os
import tempfile

import pytest

from btcstake.psbtio import finalize_input, get_input_witness_spk_hex, load_psbt_from_file, to_raw_tx_hex, write_psbt


def _psbt_available() -> bool:
    try:
        m = importlib.import_module('bitcointx.core.psbt')
        return hasattr(m, 'PartiallySignedTransaction')
    except ImportError:
        return False


def _unsigned_psbt(spk: bytes, value: int = 1234):
    psbt_mod = importlib.import_module('bitcointx.core.psbt')
    core = importlib.import_module('bitcointx.core')
    CScript = importlib.import_module('bitcointx.core.script').CScript
    tx = core.CMutableTransaction(
        [core.CMutableTxIn(core.COutPoint(core.lx('00' * 32), 0))],
        [core.CMutableTxOut(value, CScript(spk))],
    )
    return psbt_mod.PartiallySignedTransaction(unsigned_tx=tx)


class _DummyInput:
    def __init__(self):
        self.final_script_witness = None
        self.partial_sigs = {b'k': b's'}


class _DummyPsbt:
    def __init__(self, n: int):
        self.inputs = [_DummyInput() for _ in range(n)]


@pytest.mark.skipif(not _psbt_available(), reason='python-bitcointx PSBT API not available')
def test_psbt_load_and_write_roundtrip():
    PSBT = importlib.import_module('bitcointx.core.psbt').PartiallySignedTransaction
    psbt = _unsigned_psbt(bytes.fromhex('5120') + b'\x33' * 32)
    with tempfile.TemporaryDirectory() as td:
        p = os.path.join(td, 'a.psbt')
        write_psbt(psbt, p)
        psbt2 = load_psbt_from_file(p)
        assert isinstance(psbt2, PSBT)
        assert psbt2.to_base64() == psbt.to_base64()


@pytest.mark.skipif(not _psbt_available(), reason='python-bitcointx PSBT API not available')
def test_get_input_witness_spk_requires_utxo():
    psbt = _unsigned_psbt(bytes.fromhex('5120') + b'\x33' * 32)
    with pytest.raises(ValueError, match='missing witness_utxo'):
        get_input_witness_spk_hex(psbt, 0)


@pytest.mark.skipif(not _psbt_available(), reason='python-bitcointx PSBT API not available')
def test_finalize_input_sets_witness_stack():
    psbt = _DummyPsbt(2)
    witness = [b'', b'\xaa' * 64, b'\x51', b'\xc0' + b'\x33' * 32]
    finalize_input(psbt, 1, witness)
    pi = psbt.inputs[1]
    assert list(pi.final_script_witness.stack) == witness
    assert pi.partial_sigs == {}
    assert psbt.inputs[0].final_script_witness is None


def test_finalize_input_rejects_bad_index():
    with pytest.raises(IndexError, match='out of range'):
        finalize_input(_DummyPsbt(1), 1, [b'\x51'])
    with pytest.raises(IndexError):
        finalize_input(_DummyPsbt(1), -1, [b'\x51'])


def _psbt_with_witness_utxo(spk: bytes):
    core = importlib.import_module('bitcointx.core')
    CScript = importlib.import_module('bitcointx.core.script').CScript
    psbt = _unsigned_psbt(bytes.fromhex('0014') + b'\x22' * 20, 9000)
    psbt.set_utxo(core.CTxOut(10000, CScript(spk)), 0)
    return psbt


@pytest.mark.skipif(not _psbt_available(), reason='python-bitcointx PSBT API not available')
def test_get_input_witness_spk_from_witness_utxo():
    spk = bytes.fromhex('5120') + b'\x33' * 32
    psbt = _psbt_with_witness_utxo(spk)
    assert get_input_witness_spk_hex(psbt, 0) == spk.hex()


class _DummyOutPoint:
    n = 1


class _DummyTxIn:
    prevout = _DummyOutPoint()


class _DummyScript:
    def __init__(self, hex_str: str) -> None:
        self._hex = hex_str

    def hex(self) -> str:
        return self._hex


class _DummyTxOut:
    def __init__(self, spk_hex: str) -> None:
        self.scriptPubKey = _DummyScript(spk_hex)


def test_get_input_witness_spk_from_full_previous_tx():
    prev_tx = type('PrevTx', (), {'vout': [_DummyTxOut('0014' + '00' * 20), _DummyTxOut('5120' + '44' * 32)]})()
    psbt = _DummyPsbt(1)
    psbt.inputs[0].utxo = prev_tx
    psbt.unsigned_tx = type('Tx', (), {'vin': [_DummyTxIn()]})()
    assert get_input_witness_spk_hex(psbt, 0) == '5120' + '44' * 32


@pytest.mark.skipif(not _psbt_available(), reason='python-bitcointx PSBT API not available')
def test_finalize_input_on_real_psbt_survives_roundtrip_and_extracts():
    psbt = _psbt_with_witness_utxo(bytes.fromhex('5120') + b'\x33' * 32)
    witness = [b'', b'\xaa' * 64, b'\xdd' * 64, b'\x51', b'\xc0' + b'\x33' * 32]
    finalize_input(psbt, 0, witness)
    pi = psbt.inputs[0]
    assert pi.partial_sigs == {}
    assert pi.derivation_map == {}
    assert len(pi.redeem_script) == 0 and len(pi.witness_script) == 0

    with tempfile.TemporaryDirectory() as td:
        p = os.path.join(td, 'final.psbt')
        write_psbt(psbt, p)
        loaded = load_psbt_from_file(p)
    assert [bytes(item) for item in loaded.inputs[0].final_script_witness.stack] == witness

    raw = to_raw_tx_hex(psbt)
    assert ('aa' * 64) in raw and ('dd' * 64) in raw
