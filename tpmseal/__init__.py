"""
TPM Seal Policy - PCR selection, sealing and certification policies
"""

from .constants import (
    PCRLimits,
    CapabilityQuery,
    Timeouts,
    NUM_PCRS,
    MAX_PCRS_PER_READ,
    MAX_PROPERTY,
)

from .hardware import (
    HashAlgorithm,
    SESSION_HASH_ALG,
    CERTIFY_HASH_ALG,
    TPMError,
    TPMNotAvailableError,
    DiscoveryError,
    ReadError,
    PolicyConfigurationError,
    CertificationMismatchError,
    RegisterSelection,
    RegisterSet,
    full_selection,
    parse_selection,
    TPMDevice,
    SimulatedTPM,
    open_device,
    list_implemented_banks,
    read_selection,
    read_all_banks,
    check_subset,
    SealCurrent,
    SealTarget,
    resolve_for_sealing,
    CertifyCurrent,
    CertifyExpected,
    resolve_for_certification,
)

__version__ = "1.0.0"
