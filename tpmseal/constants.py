"""
Centralized Constants Module for TPM Seal Policy.

This module consolidates the register-file limits, TPM capability values and
subprocess timeouts used throughout the package so they can be audited in one
place.

SECURITY: The PCR count and per-read limit are properties of the TPM 2.0
specification. Changing them does not change what the hardware accepts.

Usage:
    from tpmseal.constants import PCRLimits, Timeouts, NUM_PCRS

    for start in range(0, len(pcrs), PCRLimits.MAX_PCRS_PER_READ):
        ...
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

ENV_PREFIX = "TPMSEAL_"


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')


def _env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    validator: Optional[Callable[[T], bool]] = None,
    min_value: Optional[T] = None,
    max_value: Optional[T] = None,
) -> T:
    """Get a configuration value with environment variable override.

    Args:
        env_var: Environment variable name (will be prefixed with TPMSEAL_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        validator: Optional validation function
        min_value: Optional minimum allowed value
        max_value: Optional maximum allowed value

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None:
        return default

    try:
        converted = converter(env_value)

        if min_value is not None and converted < min_value:
            logger.warning(
                f"{full_env_var}={env_value} below minimum {min_value}, using default"
            )
            return default
        if max_value is not None and converted > max_value:
            logger.warning(
                f"{full_env_var}={env_value} above maximum {max_value}, using default"
            )
            return default

        if validator is not None and not validator(converted):
            logger.warning(
                f"{full_env_var}={env_value} failed validation, using default"
            )
            return default

        logger.info(f"Using {full_env_var}={converted} (override)")
        return converted

    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for {full_env_var}: {e}, using default")
        return default


# =============================================================================
# PCR LIMITS
# =============================================================================

@dataclass(frozen=True)
class PCRLimits:
    """
    Register-file limits of a TPM 2.0 device.

    NUM_PCRS is the TPM 2.0 minimum of 24 implemented PCRs per bank,
    which is the only register count supported here.
    """
    NUM_PCRS: int = 24

    # TPM2_PCR_Read returns at most 8 digests per call
    MAX_PCRS_PER_READ: int = 8


# =============================================================================
# CAPABILITY QUERY CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class CapabilityQuery:
    """Arguments of the TPM2_GetCapability call used for bank discovery."""
    # Ask for every property the TPM has in a single response
    MAX_PROPERTY: int = 0xFFFFFFFF
    START_PROPERTY: int = 0


# =============================================================================
# TIMEOUT CONSTANTS
# =============================================================================

@dataclass(frozen=True)
class Timeouts:
    """
    Subprocess timeout values in seconds for command-line TPM backends.

    Override with: TPMSEAL_TPM_COMMAND_TIMEOUT=20
    """
    TPM_PROBE: float = 5.0
    TPM_COMMAND: float = _env_override(
        "TPM_COMMAND_TIMEOUT", 10.0, float, min_value=1.0, max_value=120.0
    )


# =============================================================================
# CONVENIENCE EXPORTS
# =============================================================================

NUM_PCRS = PCRLimits.NUM_PCRS
MAX_PCRS_PER_READ = PCRLimits.MAX_PCRS_PER_READ
MAX_PROPERTY = CapabilityQuery.MAX_PROPERTY


__all__ = [
    'PCRLimits',
    'CapabilityQuery',
    'Timeouts',
    'NUM_PCRS',
    'MAX_PCRS_PER_READ',
    'MAX_PROPERTY',
]
