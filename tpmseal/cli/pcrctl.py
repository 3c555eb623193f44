#!/usr/bin/env python3
"""
pcrctl - TPM PCR policy CLI

Commands:
    banks           List implemented PCR banks
    read            Read PCR values (a selection, or every bank)
    seal-pcrs       Resolve the sealing section of a policy file
    certify         Check a recorded PCR set against a policy file

Usage:
    pcrctl banks
    pcrctl read --pcrs sha256:0,7
    pcrctl --json read
    pcrctl seal-pcrs policy.yaml --output sealed-pcrs.json
    pcrctl certify policy.yaml --certified sealed-pcrs.json

Exit status:
    0   success
    1   error (TPM, configuration or I/O)
    2   certification mismatch

Environment:
    TPMSEAL_VERBOSE       Enable debug logging
    TPMSEAL_LOG_FILE      Also log to this file
    TPMSEAL_LOG_JSON      Log as JSON lines
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from ..config.policy_config import load_policy, load_register_set, save_register_set
from ..hardware import (
    CertificationMismatchError,
    RegisterSet,
    TPMError,
    list_implemented_banks,
    open_device,
    parse_selection,
    read_all_banks,
    read_selection,
    resolve_for_certification,
    resolve_for_sealing,
)
from ..logging_config import configure_from_environment

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MISMATCH = 2


def _print_pcrs(pcrs: RegisterSet, as_json: bool):
    if as_json:
        print(json.dumps(pcrs.to_dict(), indent=2))
        return
    print(f"{pcrs.hash_algorithm.tool_name}:")
    for index in pcrs.indices():
        print(f"  {index:>2} : 0x{pcrs.values[index].hex().upper()}")


def cmd_banks(args, device) -> int:
    """List implemented PCR banks."""
    banks = list_implemented_banks(device)
    if args.json:
        print(json.dumps([
            {'hash': sel.hash_algorithm.tool_name, 'pcrs': list(sel.pcrs)} for sel in banks
        ], indent=2))
    else:
        for sel in banks:
            print(f"{sel.hash_algorithm.tool_name}: {len(sel.pcrs)} PCRs")
    return EXIT_OK


def cmd_read(args, device) -> int:
    """Read PCR values."""
    if args.pcrs:
        all_pcrs = [read_selection(device, parse_selection(args.pcrs))]
    else:
        all_pcrs = read_all_banks(device)

    if args.json:
        print(json.dumps([pcrs.to_dict() for pcrs in all_pcrs], indent=2))
    else:
        for pcrs in all_pcrs:
            _print_pcrs(pcrs, False)
    return EXIT_OK


def cmd_seal_pcrs(args, device) -> int:
    """Resolve the PCR values a secret would be sealed to."""
    policy = load_policy(args.policy)
    if policy.sealing is None:
        print(f"Error: {args.policy} has no 'sealing' section", file=sys.stderr)
        return EXIT_ERROR

    pcrs = resolve_for_sealing(device, policy.sealing)
    if args.output:
        save_register_set(args.output, pcrs)
        print(f"Saved {len(pcrs)} PCR value(s) to {args.output}")
    else:
        _print_pcrs(pcrs, args.json)
    return EXIT_OK


def cmd_certify(args, device) -> int:
    """Certify a recorded PCR set against a policy."""
    policy = load_policy(args.policy)
    if policy.certification is None:
        print(f"Error: {args.policy} has no 'certification' section", file=sys.stderr)
        return EXIT_ERROR

    certified = load_register_set(args.certified)
    try:
        resolve_for_certification(device, policy.certification, certified)
    except CertificationMismatchError as e:
        print(f"Certification FAILED: {e}")
        return EXIT_MISMATCH

    print(f"Certification OK ({len(certified)} PCRs)")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pcrctl',
        description='TPM PCR policy CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--backend', '-b', choices=['auto', 'tpm2-pytss', 'tpm2-tools', 'simulator'],
                        default='auto', help='TPM backend (default: auto)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--json', action='store_true', help='JSON output')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    banks_parser = subparsers.add_parser('banks', help='List implemented PCR banks')
    banks_parser.set_defaults(func=cmd_banks)

    read_parser = subparsers.add_parser('read', help='Read PCR values')
    read_parser.add_argument('--pcrs', '-p', help='Selection, e.g. sha256:0,7 (default: all banks)')
    read_parser.set_defaults(func=cmd_read)

    seal_parser = subparsers.add_parser('seal-pcrs', help='Resolve sealing PCR values from a policy')
    seal_parser.add_argument('policy', help='Policy file (YAML)')
    seal_parser.add_argument('--output', '-o', help='Save the PCR set to this file')
    seal_parser.set_defaults(func=cmd_seal_pcrs)

    certify_parser = subparsers.add_parser('certify', help='Certify recorded PCR values against a policy')
    certify_parser.add_argument('policy', help='Policy file (YAML)')
    certify_parser.add_argument('--certified', '-c', required=True,
                                help='PCR set recorded at sealing time')
    certify_parser.set_defaults(func=cmd_certify)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    configure_from_environment(verbose=args.verbose)

    try:
        device = open_device(args.backend)
        return args.func(args, device)
    except (TPMError, ValueError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
