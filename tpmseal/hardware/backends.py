"""
TPM backends - concrete TPMDevice implementations and backend detection.

Backends:
- tpm2-pytss: in-process ESAPI calls (preferred when installed)
- tpm2-tools: shells out to tpm2_getcap / tpm2_pcrread
- simulator: in-memory SimulatedTPM (testing and dry runs)
"""

import logging
import os
import re
import subprocess
from enum import Enum
from typing import Any, Dict, List, Tuple

import yaml

from ..constants import Timeouts
from .algorithms import HashAlgorithm
from .device import Capability, SimulatedTPM, TPMDevice
from .errors import ReadError, TPMError, TPMNotAvailableError
from .registers import RegisterSelection, format_selection

logger = logging.getLogger(__name__)

TPM_DEVICE_PATHS = ('/dev/tpmrm0', '/dev/tpm0')

# tpm2_pcrread prints one "  <index> : 0x<DIGEST>" line per PCR
_PCRREAD_LINE = re.compile(r'^\s*(\d+)\s*:\s*0x([0-9A-Fa-f]+)\s*$')


class TPMBackend(Enum):
    """Available TPM backends"""
    TPM2_PYTSS = "tpm2-pytss"      # Python library
    TPM2_TOOLS = "tpm2-tools"      # Command-line tools
    SIMULATOR = "simulator"        # Software TPM simulator (for testing)
    NONE = "none"                  # No TPM available


class TpmPytssDevice(TPMDevice):
    """TPM accessed in-process through tpm2-pytss ESAPI"""

    def __init__(self, tcti: str = None):
        self.tcti = tcti
        self._tpm_ctx = None

    def _context(self):
        if self._tpm_ctx is None:
            try:
                from tpm2_pytss import ESAPI
            except ImportError:
                raise TPMNotAvailableError("tpm2-pytss not installed")
            try:
                self._tpm_ctx = ESAPI(self.tcti)
            except Exception as e:
                raise TPMNotAvailableError(f"Could not open TPM with tpm2-pytss: {e}") from e
        return self._tpm_ctx

    def close(self) -> None:
        """Release the ESAPI context"""
        if self._tpm_ctx is not None:
            self._tpm_ctx.close()
            self._tpm_ctx = None

    def get_capability(self, capability: Capability, max_property: int,
                       start: int) -> Tuple[List[Any], bool]:
        if capability != Capability.PCRS:
            raise TPMError(f"tpm2-pytss backend does not query capability {capability!r}")

        ctx = self._context()
        try:
            more_data, capability_data = ctx.get_capability(int(capability), start, max_property)
        except Exception as e:
            raise TPMError(f"TPM2_GetCapability failed: {e}") from e

        entries = [_from_pcr_selection(sel) for sel in capability_data.data.assignedPCR]
        return entries, bool(more_data)

    def read_pcrs(self, selection: RegisterSelection) -> Dict[int, bytes]:
        ctx = self._context()
        try:
            _, selection_out, digests = ctx.pcr_read(format_selection(selection))
        except Exception as e:
            raise ReadError(
                f"TPM2_PCR_Read failed: {e}",
                hash_algorithm=selection.hash_algorithm,
                chunk=selection.pcrs,
            ) from e

        # Digests come back in ascending PCR order of the returned selection
        returned: List[int] = []
        for sel in selection_out:
            entry = _from_pcr_selection(sel)
            if isinstance(entry, RegisterSelection) and entry.hash_algorithm == selection.hash_algorithm:
                returned.extend(entry.pcrs)

        pcr_map = {pcr: bytes(value) for pcr, value in zip(returned, digests)}

        missing = set(selection.pcrs) - set(pcr_map)
        if missing:
            raise ReadError(
                f"TPM2_PCR_Read returned no value for PCR(s) {sorted(missing)}",
                hash_algorithm=selection.hash_algorithm,
                chunk=selection.pcrs,
            )
        return pcr_map


def _from_pcr_selection(sel) -> Any:
    """
    Convert a TPMS_PCR_SELECTION into a RegisterSelection.

    Banks this package does not know are passed through unchanged.
    """
    try:
        hash_algorithm = HashAlgorithm(int(sel.hash))
    except ValueError:
        logger.debug(f"Unrecognised PCR bank algorithm {int(sel.hash):#06x}")
        return sel

    bitmap = bytes(sel.pcrSelect[0:sel.sizeofSelect])
    pcrs = [i for i in range(len(bitmap) * 8) if bitmap[i // 8] & (1 << (i % 8))]
    return RegisterSelection(hash_algorithm, pcrs)


class Tpm2ToolsDevice(TPMDevice):
    """TPM accessed through the tpm2-tools command-line utilities"""

    def __init__(self, tcti: str = None, timeout: float = Timeouts.TPM_COMMAND):
        self.tcti = tcti
        self.timeout = timeout

    def _run(self, args: List[str], error_cls=TPMError) -> str:
        cmd = list(args)
        if self.tcti:
            cmd += ['-T', self.tcti]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError:
            raise TPMNotAvailableError(f"{cmd[0]} not found; is tpm2-tools installed?")
        except subprocess.TimeoutExpired:
            raise error_cls(f"{cmd[0]} timed out after {self.timeout}s")
        except subprocess.SubprocessError as e:
            raise error_cls(f"TPM subprocess error: {e}")

        if result.returncode != 0:
            raise error_cls(f"{cmd[0]} failed: {result.stderr.strip()}")
        return result.stdout

    def get_capability(self, capability: Capability, max_property: int,
                       start: int) -> Tuple[List[Any], bool]:
        if capability != Capability.PCRS:
            raise TPMError(f"tpm2-tools backend does not query capability {capability!r}")

        output = self._run(['tpm2_getcap', 'pcrs'])
        try:
            data = yaml.safe_load(output) or {}
        except yaml.YAMLError as e:
            raise TPMError(f"Could not parse tpm2_getcap output: {e}")

        # tpm2_getcap pages through the capability itself, so more_data is
        # never reported back to the caller.
        return _parse_pcr_banks(data), False

    def read_pcrs(self, selection: RegisterSelection) -> Dict[int, bytes]:
        output = self._run(['tpm2_pcrread', format_selection(selection)], error_cls=ReadError)

        pcr_map = {}
        for line in output.splitlines():
            match = _PCRREAD_LINE.match(line)
            if match:
                pcr_map[int(match.group(1))] = bytes.fromhex(match.group(2))

        missing = set(selection.pcrs) - set(pcr_map)
        if missing:
            raise ReadError(
                f"tpm2_pcrread returned no value for PCR(s) {sorted(missing)}",
                hash_algorithm=selection.hash_algorithm,
                chunk=selection.pcrs,
            )
        return pcr_map


def _parse_pcr_banks(data: Dict[str, Any]) -> List[Any]:
    """
    Convert tpm2_getcap pcrs YAML into bank selections.

    Banks this package does not know are passed through as raw entries.
    """
    entries: List[Any] = []
    for bank in data.get('selected-pcrs') or []:
        if not isinstance(bank, dict) or len(bank) != 1:
            entries.append(bank)
            continue
        (name, pcrs), = bank.items()
        try:
            hash_algorithm = HashAlgorithm.from_name(str(name))
        except ValueError:
            logger.debug(f"Unrecognised PCR bank {name!r} in tpm2_getcap output")
            entries.append(bank)
            continue
        entries.append(RegisterSelection(hash_algorithm, tuple(pcrs or ())))
    return entries


def _have_pytss() -> bool:
    try:
        import tpm2_pytss  # noqa: F401
    except ImportError:
        return False
    return True


def detect_backend() -> TPMBackend:
    """Detect available TPM backend"""
    if not any(os.path.exists(path) for path in TPM_DEVICE_PATHS):
        return TPMBackend.NONE

    # Try tpm2-pytss first (preferred)
    if _have_pytss():
        return TPMBackend.TPM2_PYTSS

    # Try tpm2-tools (command-line)
    try:
        result = subprocess.run(
            ['tpm2_getcap', 'properties-fixed'],
            capture_output=True,
            timeout=Timeouts.TPM_PROBE
        )
        if result.returncode == 0:
            return TPMBackend.TPM2_TOOLS
    except (subprocess.SubprocessError, FileNotFoundError):
        pass

    return TPMBackend.NONE


def open_device(backend: str = "auto") -> TPMDevice:
    """
    Create a TPMDevice for the named backend.

    Args:
        backend: 'auto', 'tpm2-pytss', 'tpm2-tools' or 'simulator'

    Raises:
        TPMNotAvailableError: If no usable TPM backend is found
        ValueError: If the backend name is unknown
    """
    if backend == "auto":
        selected = detect_backend()
    else:
        selected = TPMBackend(backend)

    logger.debug(f"Using TPM backend {selected.value}")

    if selected == TPMBackend.TPM2_PYTSS:
        return TpmPytssDevice()
    if selected == TPMBackend.TPM2_TOOLS:
        return Tpm2ToolsDevice()
    if selected == TPMBackend.SIMULATOR:
        return SimulatedTPM()
    raise TPMNotAvailableError("TPM not available")
