"""
CLI Module for TPM Seal Policy

Usage:
    python -m tpmseal.cli.pcrctl read --pcrs sha256:0,7
"""

from .pcrctl import main as pcrctl_main

__all__ = [
    'pcrctl_main',
]
