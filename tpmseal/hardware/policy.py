"""
Sealing and certification policies.

Sealing options decide which PCR values a secret is bound to:
- SealCurrent: read the selected PCRs from the TPM now
- SealTarget: bind predictively to given PCR values

Certification options decide what a recorded PCR set is checked against:
- CertifyCurrent: the selected PCRs as they read now
- CertifyExpected: a stored PCR set

A policy with no PCRs is rejected with PolicyConfigurationError before any
TPM access. Sealing to zero PCRs would make a secret unconditionally
recoverable.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..logging_config import short_digest
from .device import TPMDevice
from .errors import CertificationMismatchError, PolicyConfigurationError
from .pcr import read_selection
from .registers import RegisterSelection, RegisterSet
from .subset import check_subset

logger = logging.getLogger(__name__)


# =========================================================================
# Sealing
# =========================================================================

class SealOpts(ABC):
    """Specifies the PCR values that should be used for sealing"""

    @abstractmethod
    def pcrs_for_sealing(self, device: TPMDevice) -> RegisterSet:
        """Return the PCR set a secret will be bound to"""


@dataclass(frozen=True)
class SealCurrent(SealOpts):
    """Seal to the current values of the selected PCRs"""
    selection: RegisterSelection

    def pcrs_for_sealing(self, device: TPMDevice) -> RegisterSet:
        if not self.selection.pcrs:
            raise PolicyConfigurationError("SealCurrent contains 0 PCRs")
        return read_selection(device, self.selection)


@dataclass(frozen=True)
class SealTarget(SealOpts):
    """Predictively seal to the given PCR values"""
    pcrs: RegisterSet

    def pcrs_for_sealing(self, device: TPMDevice) -> RegisterSet:
        if not self.pcrs.values:
            raise PolicyConfigurationError("SealTarget contains 0 PCRs")
        return self.pcrs


def resolve_for_sealing(device: TPMDevice, strategy: SealOpts) -> RegisterSet:
    """
    Resolve a sealing option to the PCR set to bind a secret to.

    Raises:
        PolicyConfigurationError: If the option is empty or not a SealOpts
    """
    if not isinstance(strategy, SealOpts):
        raise PolicyConfigurationError(f"Unsupported sealing option: {type(strategy).__name__}")

    pcrs = strategy.pcrs_for_sealing(device)
    logger.info(
        f"{type(strategy).__name__} resolved to {len(pcrs)} "
        f"{pcrs.hash_algorithm.name} PCR(s): {list(pcrs.indices())}"
    )
    return pcrs


# =========================================================================
# Certification
# =========================================================================

class CertifyOpts(ABC):
    """Determines if recorded PCR values pass certification"""

    @abstractmethod
    def certify_pcrs(self, device: TPMDevice, certified: RegisterSet) -> None:
        """
        Check certified against this option's reference values.

        Raises:
            CertificationMismatchError: If certified is not a subset of the
                reference
        """


@dataclass(frozen=True)
class CertifyCurrent(CertifyOpts):
    """
    Certify that the selected PCRs currently hold the values recorded at
    sealing. The selection is expected to use CERTIFY_HASH_ALG.
    """
    selection: RegisterSelection

    def certify_pcrs(self, device: TPMDevice, certified: RegisterSet) -> None:
        if not self.selection.pcrs:
            raise PolicyConfigurationError("CertifyCurrent contains 0 PCRs")
        current = read_selection(device, self.selection)
        check_subset(current, certified)


@dataclass(frozen=True)
class CertifyExpected(CertifyOpts):
    """
    Certify that the TPM had a specific set of PCR values when sealing.
    The set is expected to use CERTIFY_HASH_ALG.
    """
    pcrs: RegisterSet

    def certify_pcrs(self, device: TPMDevice, certified: RegisterSet) -> None:
        if not self.pcrs.values:
            raise PolicyConfigurationError("CertifyExpected contains 0 PCRs")
        check_subset(self.pcrs, certified)


def resolve_for_certification(device: TPMDevice, strategy: CertifyOpts,
                              certified: RegisterSet) -> bool:
    """
    Check a recorded PCR set against a certification option.

    Returns:
        True if certified is consistent with the option's reference values

    Raises:
        CertificationMismatchError: If it is not
        PolicyConfigurationError: If the option is empty or not a CertifyOpts
    """
    if not isinstance(strategy, CertifyOpts):
        raise PolicyConfigurationError(f"Unsupported certification option: {type(strategy).__name__}")

    try:
        strategy.certify_pcrs(device, certified)
    except CertificationMismatchError as e:
        if e.index is not None and e.index in certified.values:
            logger.warning(
                f"Certification failed at PCR {e.index} ({e.reason}), "
                f"certified {short_digest(certified.values[e.index])}"
            )
        else:
            logger.warning(f"Certification failed: {e}")
        raise

    logger.info(f"{type(strategy).__name__} certified {len(certified)} PCR(s)")
    return True
