"""
YAML Configuration for Seal and Certification Policies

Configuration Structure:
    sealing:
      pcrs: "sha256:0,7"            # seal to current PCR values
      # or
      target:                       # seal predictively to given values
        hash: sha256
        pcrs:
          0: "3d458cfe..."
          7: "65caf8dd..."

    certification:
      pcrs: "sha256:7"              # compare against current PCR values
      # or
      expected:                     # compare against stored values
        hash: sha256
        pcrs:
          7: "65caf8dd..."

A selection may also be written as a mapping:
      pcrs: {hash: sha256, pcrs: [0, 7]}

Usage:
    from tpmseal.config.policy_config import load_policy

    policy = load_policy("/etc/tpmseal/policy.yaml")
    pcrs = resolve_for_sealing(device, policy.sealing)
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..hardware.algorithms import HashAlgorithm
from ..hardware.errors import PolicyConfigurationError
from ..hardware.policy import (
    CertifyCurrent,
    CertifyExpected,
    CertifyOpts,
    SealCurrent,
    SealOpts,
    SealTarget,
)
from ..hardware.registers import RegisterSelection, RegisterSet, parse_selection

logger = logging.getLogger(__name__)

SECURE_FILE_MODE = 0o600


@dataclass
class PolicyConfig:
    """Sealing and certification options loaded from a policy file"""
    sealing: Optional[SealOpts] = None
    certification: Optional[CertifyOpts] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PolicyConfig':
        """
        Create from dictionary.

        Raises:
            PolicyConfigurationError: If a section is malformed
        """
        if not isinstance(data, dict):
            raise PolicyConfigurationError("Policy must be a mapping")

        unknown = set(data) - {'sealing', 'certification'}
        if unknown:
            raise PolicyConfigurationError(f"Unknown policy section(s): {sorted(unknown)}")

        sealing = None
        if data.get('sealing') is not None:
            sealing = _parse_section(
                'sealing', data['sealing'], 'target',
                live=SealCurrent, fixed=SealTarget,
            )

        certification = None
        if data.get('certification') is not None:
            certification = _parse_section(
                'certification', data['certification'], 'expected',
                live=CertifyCurrent, fixed=CertifyExpected,
            )

        return cls(sealing=sealing, certification=certification)


def _parse_section(name: str, section: Any, fixed_key: str, live, fixed):
    if not isinstance(section, dict):
        raise PolicyConfigurationError(f"'{name}' must be a mapping")

    keys = {'pcrs', fixed_key} & set(section)
    if len(keys) != 1:
        raise PolicyConfigurationError(
            f"'{name}' needs exactly one of 'pcrs' or '{fixed_key}'"
        )

    try:
        if 'pcrs' in section:
            return live(_parse_selection_value(section['pcrs']))
        return fixed(RegisterSet.from_dict(section[fixed_key]))
    except ValueError as e:
        raise PolicyConfigurationError(f"Invalid '{name}' section: {e}") from e


def _parse_selection_value(value: Any) -> RegisterSelection:
    if isinstance(value, str):
        return parse_selection(value)
    if isinstance(value, dict) and 'hash' in value:
        hash_algorithm = HashAlgorithm.from_name(str(value['hash']))
        pcrs = value.get('pcrs') or []
        if not isinstance(pcrs, (list, tuple)) or not all(
                isinstance(p, int) and not isinstance(p, bool) for p in pcrs):
            raise ValueError(f"'pcrs' must be a list of PCR indices, got {pcrs!r}")
        return RegisterSelection(hash_algorithm, pcrs)
    raise ValueError(f"Cannot read PCR selection from {value!r}")


def load_policy(path: Union[str, Path]) -> PolicyConfig:
    """
    Load a policy file.

    Raises:
        PolicyConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    data = _load_yaml(path)
    policy = PolicyConfig.from_dict(data or {})
    logger.info(f"Loaded policy from {path}")
    return policy


def load_register_set(path: Union[str, Path]) -> RegisterSet:
    """
    Load a persisted PCR set (JSON or YAML).

    Raises:
        PolicyConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    data = _load_yaml(path)
    try:
        return RegisterSet.from_dict(data or {})
    except ValueError as e:
        raise PolicyConfigurationError(f"Invalid PCR set in {path}: {e}") from e


def save_register_set(path: Union[str, Path], pcrs: RegisterSet) -> None:
    """Persist a PCR set as JSON, readable only by the owner"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECURE_FILE_MODE)
    with os.fdopen(fd, 'w') as f:
        json.dump(pcrs.to_dict(), f, indent=2)
        f.write('\n')

    logger.debug(f"Saved {len(pcrs)} PCR value(s) to {path}")


def _load_yaml(path: Path) -> Any:
    if not path.exists():
        raise PolicyConfigurationError(f"File not found: {path}")

    try:
        with open(path, 'r') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PolicyConfigurationError(f"Failed to parse {path}: {e}") from e
