#!/usr/bin/env python3
"""
btcstake CLI — staking output script-path witness builder + PSBT finalizer

Quick start
1) Get the revealed leaf script and control block for the path you are
   spending from your staking descriptor tooling.
2) Collect signatures (64-byte Schnorr, hex). Missing covenant / finality
   provider signatures are passed as "-" to keep their slot.
3) Print the witness:
   btcstake witness --path unbonding --script <S> --control <C> \\
       --covenant-sig <SIG_A> --covenant-sig - --covenant-sig <SIG_C> --delegator-sig <SIG_D>
4) Or finalize a PSBT input directly:
   btcstake finalize --path timelock --psbt-in in.psbt --psbt-out out.psbt \\
       --script <S> --control <C> --delegator-sig <SIG_D> --check-spk

Notes
- Positional slots must already be in witness order. Pass --covenant-pk /
  --fp-pk (and PK:SIG signatures) to have the order derived from the keys.
"""
import argparse
import sys
from typing import Dict, List, Optional

from .hexutil import file_or_hex, parse_hex, parse_optional_hex, split_keyed_hex
from .policy import SignerSet
from .psbtio import finalize_input, get_input_witness_spk_hex, load_psbt_from_file, to_raw_tx_hex, write_psbt
from .signature import SCHNORR_SIG_LEN, SchnorrSignature
from .taproot import SpendInfo, parse_control_block
from .verify import verify_spend_info
from .witness import (
    Witness,
    build_slashing_witness,
    build_timelock_witness,
    build_unbonding_witness,
)

PATHS = ('timelock', 'unbonding', 'slashing')


def load_spend_info(args: argparse.Namespace) -> SpendInfo:
    script = file_or_hex('script', args.script, getattr(args, 'script_file', None))
    control = file_or_hex('control', args.control, getattr(args, 'control_file', None))
    return SpendInfo(script=script, control_block=parse_control_block(control))


def collect_slots(name: str, pk_args: Optional[List[str]], sig_args: Optional[List[str]]) -> List[Optional[SchnorrSignature]]:
    """Turn repeated --*-sig arguments into signature slots.

    Without public keys each argument is a signature hex or "-" and is taken
    in the given order. With public keys each argument is PK:SIG and the
    order comes from SignerSet.
    """
    sig_args = sig_args or []
    if pk_args:
        signers = SignerSet([parse_hex(f'{name} public key', pk, 32) for pk in pk_args], name)
        sigs: Dict[bytes, SchnorrSignature] = {}
        for arg in sig_args:
            pk, sig_hex = split_keyed_hex(f'{name} signature', arg)
            if pk in sigs:
                raise ValueError(f'duplicate {name} signature for key {pk.hex()}')
            sigs[pk] = SchnorrSignature.from_hex(sig_hex, f'{name} signature')
        return signers.witness_slots(sigs)

    slots: List[Optional[SchnorrSignature]] = []
    for arg in sig_args:
        raw = parse_optional_hex(f'{name} signature', arg, SCHNORR_SIG_LEN)
        slots.append(None if raw is None else SchnorrSignature(raw))
    return slots


def build_path_witness(args: argparse.Namespace, spend_info: SpendInfo) -> Witness:
    delegator_sig = None
    if args.delegator_sig:
        delegator_sig = SchnorrSignature.from_hex(args.delegator_sig, 'delegator signature')

    if args.path == 'timelock':
        if args.covenant_sig or args.fp_sig:
            raise ValueError('timelock path takes only --delegator-sig')
        return build_timelock_witness(spend_info, delegator_sig)

    covenant_sigs = collect_slots('covenant', args.covenant_pk, args.covenant_sig)
    if args.path == 'unbonding':
        if args.fp_sig:
            raise ValueError('unbonding path takes no --fp-sig')
        return build_unbonding_witness(spend_info, covenant_sigs, delegator_sig)

    fp_sigs = collect_slots('finality provider', args.fp_pk, args.fp_sig)
    return build_slashing_witness(spend_info, covenant_sigs, fp_sigs, delegator_sig)


def cmd_witness(args: argparse.Namespace) -> None:
    witness = build_path_witness(args, load_spend_info(args))
    if args.json:
        import json
        print(json.dumps({
            'path': args.path,
            'witness': [item.hex() for item in witness],
            'num_items': len(witness),
        }))
    else:
        for i, item in enumerate(witness):
            print(f"{i}: {item.hex() or '(empty)'}")


def cmd_finalize(args: argparse.Namespace) -> None:
    spend_info = load_spend_info(args)
    witness = build_path_witness(args, spend_info)
    try:
        psbt = load_psbt_from_file(args.psbt_in)
    except ImportError:
        print("ERROR: finalize requires python-bitcointx. Install with: pip install python-bitcointx", file=sys.stderr)
        raise

    if args.check_spk:
        spk_hex = get_input_witness_spk_hex(psbt, args.input_index)
        try:
            res = verify_spend_info(spend_info, spk_hex)
        except ImportError:
            print("ERROR: --check-spk requires coincurve. Install with: pip install coincurve", file=sys.stderr)
            raise
        if not res['ok']:
            raise ValueError(f"spend info does not match input {args.input_index}: {res['reason']}")

    finalize_input(psbt, args.input_index, witness)
    write_psbt(psbt, args.psbt_out)

    if args.tx_out:
        try:
            raw = to_raw_tx_hex(psbt)
            with open(args.tx_out, 'wt') as f:
                f.write(raw)
        except Exception as e:
            print(f"Note: could not produce raw tx: {e}", file=sys.stderr)
            print("Finalized PSBT written; extract and broadcast via bitcoin-cli.", file=sys.stderr)


def cmd_verify_path(args: argparse.Namespace) -> None:
    spend_info = load_spend_info(args)
    spk_hex: Optional[str] = args.witness_spk
    if spk_hex is None and args.psbt_in is not None:
        try:
            psbt = load_psbt_from_file(args.psbt_in)
        except ImportError:
            print('Install python-bitcointx to read PSBTs for verification', file=sys.stderr)
            raise
        spk_hex = get_input_witness_spk_hex(psbt, args.input_index)
    if spk_hex is None:
        raise ValueError('Provide --witness-spk or --psbt-in')
    try:
        res = verify_spend_info(spend_info, spk_hex)
    except ImportError:
        print('Install coincurve to recompute the Taproot output key', file=sys.stderr)
        raise
    if args.json:
        import json
        print(json.dumps(res))
    else:
        print('[OK] spend info commits to output' if res['ok'] else '[FAIL] spend info mismatch')
        print('expected_spk =', res['expected_spk'])
        print('actual_spk   =', res['actual_spk'])
        if res['reason']:
            print('reason       =', res['reason'])


def _add_spend_info_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument('--script', help='revealed leaf script hex for this path')
    ap.add_argument('--script-file', help='read leaf script hex from file')
    ap.add_argument('--control', help='Taproot control block hex')
    ap.add_argument('--control-file', help='read control block hex from file')


def _add_signature_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument('--path', choices=PATHS, required=True, help='script path being spent')
    ap.add_argument('--delegator-sig', help='delegator Schnorr signature hex (64 bytes)')
    ap.add_argument('--covenant-sig', action='append', help='covenant signature hex, "-" if missing, or PK:SIG (repeatable)')
    ap.add_argument('--fp-sig', action='append', help='finality provider signature hex, "-" if missing, or PK:SIG (repeatable)')
    ap.add_argument('--covenant-pk', action='append', help='covenant committee x-only pubkey (repeatable); enables PK:SIG ordering')
    ap.add_argument('--fp-pk', action='append', help='finality provider x-only pubkey (repeatable); enables PK:SIG ordering')


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="btcstake CLI (build staking script-path witnesses, finalize PSBTs)",
                                 formatter_class=argparse.RawDescriptionHelpFormatter)
    sub = ap.add_subparsers(dest='cmd', required=True)

    ap_w = sub.add_parser('witness', help='print the witness stack for a staking script path')
    _add_spend_info_args(ap_w)
    _add_signature_args(ap_w)
    ap_w.add_argument('--json', action='store_true', help='print JSON output')
    ap_w.set_defaults(func=cmd_witness)

    ap_f = sub.add_parser('finalize', help='finalize a PSBT input with a staking script-path witness')
    _add_spend_info_args(ap_f)
    _add_signature_args(ap_f)
    ap_f.add_argument('--psbt-in', required=True, help='input PSBT file (base64 or hex)')
    ap_f.add_argument('--psbt-out', required=True, help='output PSBT file (base64)')
    ap_f.add_argument('--tx-out', help='optional raw tx hex file to write')
    ap_f.add_argument('--input-index', type=int, default=0, help='which input to finalize')
    ap_f.add_argument('--check-spk', action='store_true', help='verify script + control block against the input utxo first')
    ap_f.set_defaults(func=cmd_finalize)

    ap_v = sub.add_parser('verify-path', help='verify script/control block against an output scriptPubKey')
    _add_spend_info_args(ap_v)
    ap_v.add_argument('--witness-spk', help='witness scriptPubKey hex (v1 segwit taproot)')
    ap_v.add_argument('--psbt-in', help='optional PSBT (base64 or hex) to read the input utxo scriptPubKey from')
    ap_v.add_argument('--input-index', type=int, default=0, help='PSBT input to read the scriptPubKey from')
    ap_v.add_argument('--json', action='store_true', help='print JSON output')
    ap_v.set_defaults(func=cmd_verify_path)

    args = ap.parse_args(argv)
    args.func(args)


if __name__ == '__main__':
    main()
