"""
PCR bank hash algorithms.

Values are the TPM_ALG_ID codes from the TPM 2.0 algorithm registry, so a
HashAlgorithm can be compared directly with what the hardware reports.
"""

import hashlib
from enum import IntEnum


class HashAlgorithm(IntEnum):
    """Hash algorithm identifying a PCR bank"""
    SHA1 = 0x0004
    SHA256 = 0x000B
    SHA384 = 0x000C
    SHA512 = 0x000D
    SM3_256 = 0x0012

    @property
    def digest_size(self) -> int:
        """Canonical digest length in bytes"""
        return _DIGEST_SIZES[self]

    @property
    def tool_name(self) -> str:
        """Bank name as used in tpm2-tools selection strings (e.g. 'sha256')"""
        return self.name.lower()

    def new(self, data: bytes = b''):
        """Create a hashlib object for this algorithm"""
        name = 'sm3' if self is HashAlgorithm.SM3_256 else self.tool_name
        return hashlib.new(name, data)

    @classmethod
    def from_name(cls, name: str) -> 'HashAlgorithm':
        """
        Look up an algorithm by name.

        Accepts 'sha256', 'SHA256', 'sha-256' and 'sm3_256'.

        Raises:
            ValueError: If the name is not a known bank algorithm
        """
        key = name.strip().upper().replace('-', '')
        if key == 'SM3256':
            key = 'SM3_256'
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown hash algorithm: {name!r}")


_DIGEST_SIZES = {
    HashAlgorithm.SHA1: 20,
    HashAlgorithm.SHA256: 32,
    HashAlgorithm.SHA384: 48,
    HashAlgorithm.SHA512: 64,
    HashAlgorithm.SM3_256: 32,
}

# Policy sessions are hashed with SHA256 regardless of the PCR bank in use.
# This differs from the PCR hash algorithm, which selects the bank.
SESSION_HASH_ALG = HashAlgorithm.SHA256

# Bank expected by certification policies
CERTIFY_HASH_ALG = HashAlgorithm.SHA256
