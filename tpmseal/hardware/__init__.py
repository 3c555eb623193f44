"""
Hardware Module - TPM PCR selection, reading and policy

Components:
- pcr: bank discovery and chunked PCR reads
- policy: sealing (SealCurrent / SealTarget) and certification
  (CertifyCurrent / CertifyExpected) options
- subset: the PCR subset comparison used by certification
- device / backends: the TPM device contract, simulator, tpm2-pytss and
  tpm2-tools backends
"""

from .algorithms import HashAlgorithm, SESSION_HASH_ALG, CERTIFY_HASH_ALG
from .errors import (
    TPMError,
    TPMNotAvailableError,
    DiscoveryError,
    ReadError,
    PolicyConfigurationError,
    CertificationMismatchError,
)
from .registers import (
    RegisterSelection,
    RegisterSet,
    full_selection,
    format_selection,
    parse_selection,
)
from .device import Capability, TPMDevice, SimulatedTPM
from .backends import (
    TPMBackend,
    TpmPytssDevice,
    Tpm2ToolsDevice,
    detect_backend,
    open_device,
)
from .pcr import list_implemented_banks, read_selection, read_all_banks
from .subset import check_subset
from .policy import (
    SealOpts,
    SealCurrent,
    SealTarget,
    resolve_for_sealing,
    CertifyOpts,
    CertifyCurrent,
    CertifyExpected,
    resolve_for_certification,
)

__all__ = [
    'HashAlgorithm',
    'SESSION_HASH_ALG',
    'CERTIFY_HASH_ALG',
    'TPMError',
    'TPMNotAvailableError',
    'DiscoveryError',
    'ReadError',
    'PolicyConfigurationError',
    'CertificationMismatchError',
    'RegisterSelection',
    'RegisterSet',
    'full_selection',
    'format_selection',
    'parse_selection',
    'Capability',
    'TPMDevice',
    'SimulatedTPM',
    'TPMBackend',
    'TpmPytssDevice',
    'Tpm2ToolsDevice',
    'detect_backend',
    'open_device',
    'list_implemented_banks',
    'read_selection',
    'read_all_banks',
    'check_subset',
    'SealOpts',
    'SealCurrent',
    'SealTarget',
    'resolve_for_sealing',
    'CertifyOpts',
    'CertifyCurrent',
    'CertifyExpected',
    'resolve_for_certification',
]
