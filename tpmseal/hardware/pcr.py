"""
PCR bank discovery and chunked PCR reads.

TPM2_PCR_Read returns at most eight digests per call, so larger selections
are split into consecutive slices of the requested index list and read one
slice at a time. Nothing is cached: every call reflects the TPM's current
state.
"""

import logging
from typing import Dict, List

from ..constants import CapabilityQuery, MAX_PCRS_PER_READ
from .device import Capability, TPMDevice
from .errors import DiscoveryError, ReadError
from .registers import RegisterSelection, RegisterSet

logger = logging.getLogger(__name__)


def list_implemented_banks(device: TPMDevice) -> List[RegisterSelection]:
    """
    Get a list of selections corresponding to the TPM's implemented PCRs.

    Raises:
        DiscoveryError: If the query fails, reports more data than one
            response holds, or returns an entry that is not a bank selection
    """
    try:
        entries, more_data = device.get_capability(
            Capability.PCRS,
            CapabilityQuery.MAX_PROPERTY,
            CapabilityQuery.START_PROPERTY,
        )
    except DiscoveryError:
        raise
    except Exception as e:
        raise DiscoveryError(f"listing implemented PCR banks: {e}") from e

    if more_data:
        raise DiscoveryError("extra data from GetCapability")

    selections = []
    for entry in entries:
        if not isinstance(entry, RegisterSelection):
            raise DiscoveryError(f"unexpected data from GetCapability: {entry!r}")
        selections.append(entry)

    logger.debug(f"Discovered {len(selections)} PCR bank(s): "
                 f"{', '.join(s.hash_algorithm.name for s in selections)}")
    return selections


def read_selection(device: TPMDevice, selection: RegisterSelection) -> RegisterSet:
    """
    Fetch all the PCR values specified in selection, making multiple calls
    to the TPM if necessary.

    Any chunk failure propagates unchanged; no partial result is returned.

    Raises:
        ReadError: If the device returns a digest of the wrong size for the
            bank
    """
    values: Dict[int, bytes] = {}
    pcrs = selection.pcrs

    for start in range(0, len(pcrs), MAX_PCRS_PER_READ):
        chunk = RegisterSelection(selection.hash_algorithm, pcrs[start:start + MAX_PCRS_PER_READ])
        try:
            pcr_map = device.read_pcrs(chunk)
        except Exception:
            logger.debug(f"PCR read failed for chunk {chunk}")
            raise

        for pcr, digest in pcr_map.items():
            if len(digest) != selection.hash_algorithm.digest_size:
                raise ReadError(
                    f"PCR {pcr} digest is {len(digest)} bytes, "
                    f"{selection.hash_algorithm.name} requires {selection.hash_algorithm.digest_size}",
                    hash_algorithm=selection.hash_algorithm,
                    chunk=chunk.pcrs,
                )
            values[int(pcr)] = digest

    logger.debug(f"Read {len(values)} PCR(s) from {selection.hash_algorithm.name} bank")
    return RegisterSet(selection.hash_algorithm, values)


def read_all_banks(device: TPMDevice) -> List[RegisterSet]:
    """
    Fetch all the PCR values from all implemented PCR banks, in the order
    the TPM reports the banks.

    Raises:
        DiscoveryError: If bank discovery fails (no reads are issued)
        ReadError: If any bank read fails, naming the failing bank
    """
    selections = list_implemented_banks(device)

    all_pcrs = []
    for selection in selections:
        try:
            all_pcrs.append(read_selection(device, selection))
        except Exception as e:
            raise ReadError(
                f"reading bank {selection.hash_algorithm.name} PCRs: {e}",
                hash_algorithm=selection.hash_algorithm,
                chunk=getattr(e, 'chunk', None),
            ) from e
    return all_pcrs
