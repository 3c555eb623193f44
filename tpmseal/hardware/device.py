"""
TPM device interface and software simulator.

The PCR policy core only issues two kinds of request over a device: a
capability query and a PCR read of at most eight indices. Opening and closing
the device is the caller's business.
"""

import logging
import threading
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..constants import MAX_PCRS_PER_READ, NUM_PCRS
from .algorithms import HashAlgorithm
from .errors import ReadError, TPMError
from .registers import RegisterSelection, full_selection

logger = logging.getLogger(__name__)


class Capability(IntEnum):
    """TPM_CAP values used by this package (same codes as tpm2_pytss TPM2_CAP)"""
    PCRS = 0x00000005


class TPMDevice(ABC):
    """
    Channel to a TPM.

    Implementations raise exceptions on failure; they do not return error
    values.
    """

    @abstractmethod
    def get_capability(self, capability: Capability, max_property: int,
                       start: int) -> Tuple[List[Any], bool]:
        """
        Run TPM2_GetCapability.

        Returns:
            (entries, more_data). For Capability.PCRS each entry should be a
            RegisterSelection describing one implemented bank.
        """

    @abstractmethod
    def read_pcrs(self, selection: RegisterSelection) -> Dict[int, bytes]:
        """
        Run TPM2_PCR_Read for at most MAX_PCRS_PER_READ indices.

        Returns:
            Mapping of PCR index to digest
        """


class SimulatedTPM(TPMDevice):
    """
    In-memory TPM used for tests and dry runs.

    Every bank starts with all PCRs zeroed. Extends follow the TPM rule
    new = H(old || H(data)). Every command issued is appended to command_log
    as (command, argument).
    """

    def __init__(self, banks: Iterable[HashAlgorithm] = (HashAlgorithm.SHA1, HashAlgorithm.SHA256)):
        self._lock = threading.Lock()
        self._banks: Dict[HashAlgorithm, Dict[int, bytes]] = {}
        for bank in banks:
            bank = HashAlgorithm(bank)
            self._banks[bank] = {i: bytes(bank.digest_size) for i in range(NUM_PCRS)}
        self.command_log: List[Tuple[str, Any]] = []

    def get_capability(self, capability: Capability, max_property: int,
                       start: int) -> Tuple[List[Any], bool]:
        with self._lock:
            self.command_log.append(('get_capability', capability))
            if capability != Capability.PCRS:
                raise TPMError(f"Simulator does not implement capability {capability!r}")
            return [full_selection(bank) for bank in self._banks], False

    def read_pcrs(self, selection: RegisterSelection) -> Dict[int, bytes]:
        with self._lock:
            self.command_log.append(('read_pcrs', selection.pcrs))
            if len(selection.pcrs) > MAX_PCRS_PER_READ:
                raise ReadError(
                    f"PCR_Read accepts at most {MAX_PCRS_PER_READ} PCRs, got {len(selection.pcrs)}",
                    hash_algorithm=selection.hash_algorithm,
                    chunk=selection.pcrs,
                )
            bank = self._bank(selection.hash_algorithm)
            result = {}
            for pcr in selection.pcrs:
                if pcr not in bank:
                    raise ReadError(f"PCR {pcr} is not implemented",
                                    hash_algorithm=selection.hash_algorithm,
                                    chunk=selection.pcrs)
                result[pcr] = bank[pcr]
            return result

    def extend(self, pcr: int, data: bytes,
               hash_algorithm: Optional[HashAlgorithm] = None) -> None:
        """
        Extend a PCR with data.

        With no hash_algorithm every bank is extended, as a measured-boot
        event would be.
        """
        if not 0 <= pcr < NUM_PCRS:
            raise ValueError(f"PCR {pcr} out of range")

        with self._lock:
            if hash_algorithm is None:
                targets = list(self._banks)
            else:
                self._bank(hash_algorithm)
                targets = [HashAlgorithm(hash_algorithm)]

            for alg in targets:
                bank = self._banks[alg]
                event_digest = alg.new(data).digest()
                bank[pcr] = alg.new(bank[pcr] + event_digest).digest()
            logger.debug(f"Simulator extended PCR {pcr} in {len(targets)} bank(s)")

    def set_pcr(self, hash_algorithm: HashAlgorithm, pcr: int, digest: bytes) -> None:
        """Overwrite a PCR value directly (simulator only)"""
        if not 0 <= pcr < NUM_PCRS:
            raise ValueError(f"PCR {pcr} out of range")

        with self._lock:
            bank = self._bank(hash_algorithm)
            if len(digest) != HashAlgorithm(hash_algorithm).digest_size:
                raise ValueError("Digest length does not match bank")
            bank[pcr] = bytes(digest)

    def _bank(self, hash_algorithm: HashAlgorithm) -> Dict[int, bytes]:
        try:
            return self._banks[HashAlgorithm(hash_algorithm)]
        except (KeyError, ValueError):
            raise ReadError(f"PCR bank {hash_algorithm!r} is not implemented",
                            hash_algorithm=hash_algorithm)
