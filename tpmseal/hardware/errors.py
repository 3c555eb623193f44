"""
TPM Error Types

All failures raised by the PCR policy core derive from TPMError. Callers
should treat CertificationMismatchError as a policy answer (the platform
state changed) and every other TPMError as a broken environment.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .algorithms import HashAlgorithm


class TPMError(Exception):
    """Base exception for TPM operations"""
    pass


class TPMNotAvailableError(TPMError):
    """TPM is not available on this system"""
    pass


class DiscoveryError(TPMError):
    """Capability query failed or returned an unexpected shape"""
    pass


class ReadError(TPMError):
    """A PCR read failed"""

    def __init__(self, message: str, hash_algorithm: Optional['HashAlgorithm'] = None,
                 chunk: Optional[tuple] = None):
        super().__init__(message)
        self.hash_algorithm = hash_algorithm
        self.chunk = chunk


class PolicyConfigurationError(TPMError):
    """A sealing or certification policy was built with no PCRs"""
    pass


class CertificationMismatchError(TPMError):
    """Observed PCR values do not certify against the recorded values"""

    def __init__(self, message: str, index: Optional[int] = None,
                 reason: Optional[str] = None):
        super().__init__(message)
        self.index = index
        self.reason = reason
