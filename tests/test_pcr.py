"""
Tests for PCR bank discovery and chunked PCR reads.
"""

import math
import os
import sys
from unittest.mock import MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tpmseal.constants import MAX_PCRS_PER_READ, MAX_PROPERTY
from tpmseal.hardware.algorithms import HashAlgorithm
from tpmseal.hardware.device import Capability, SimulatedTPM
from tpmseal.hardware.errors import DiscoveryError, ReadError, TPMError
from tpmseal.hardware.pcr import list_implemented_banks, read_all_banks, read_selection
from tpmseal.hardware.registers import RegisterSelection, RegisterSet, full_selection
from conftest import digest, reads_issued


# ===========================================================================
# Bank Discovery Tests
# ===========================================================================

class TestListImplementedBanks:
    """Tests for list_implemented_banks."""

    def test_returns_banks_in_order(self, simulated_tpm):
        """Banks should come back in the order the TPM reports them."""
        banks = list_implemented_banks(simulated_tpm)
        assert banks == [full_selection(HashAlgorithm.SHA1), full_selection(HashAlgorithm.SHA256)]

    def test_single_exhaustive_query(self, mock_device):
        """Discovery should issue one PCRS query for every property from zero."""
        mock_device.get_capability.return_value = ([full_selection(HashAlgorithm.SHA256)], False)
        list_implemented_banks(mock_device)
        mock_device.get_capability.assert_called_once_with(Capability.PCRS, MAX_PROPERTY, 0)
        assert MAX_PROPERTY == 0xFFFFFFFF

    def test_more_data_is_fatal(self, mock_device):
        """A more-data flag should raise DiscoveryError, not retry."""
        mock_device.get_capability.return_value = ([full_selection(HashAlgorithm.SHA256)], True)
        with pytest.raises(DiscoveryError, match="extra data"):
            list_implemented_banks(mock_device)
        assert mock_device.get_capability.call_count == 1

    def test_unexpected_entry(self, mock_device):
        """Entries that are not bank selections should raise DiscoveryError."""
        mock_device.get_capability.return_value = (
            [full_selection(HashAlgorithm.SHA256), {'md5': [0, 1]}], False
        )
        with pytest.raises(DiscoveryError, match="unexpected data"):
            list_implemented_banks(mock_device)

    def test_query_failure_wrapped(self, mock_device):
        """Device errors should become DiscoveryError chained to the cause."""
        cause = TPMError("TPM_RC_FAILURE")
        mock_device.get_capability.side_effect = cause
        with pytest.raises(DiscoveryError) as exc_info:
            list_implemented_banks(mock_device)
        assert exc_info.value.__cause__ is cause
        assert "listing implemented PCR banks" in str(exc_info.value)

    def test_empty_response(self, mock_device):
        """A TPM reporting no banks yields an empty list."""
        mock_device.get_capability.return_value = ([], False)
        assert list_implemented_banks(mock_device) == []


# ===========================================================================
# Chunked Read Tests
# ===========================================================================

class TestReadSelection:
    """Tests for read_selection."""

    @pytest.mark.parametrize("count", [1, 7, 8, 9, 16, 17, 24, 100, 200])
    def test_chunk_count(self, populated_tpm, count):
        """count indices should take ceil(count/8) reads."""
        pcrs = [i % 24 for i in range(count)]
        sel = RegisterSelection(HashAlgorithm.SHA256, pcrs)

        result = read_selection(populated_tpm, sel)

        reads = reads_issued(populated_tpm)
        assert len(reads) == math.ceil(count / MAX_PCRS_PER_READ)
        assert all(len(chunk) <= MAX_PCRS_PER_READ for chunk in reads)
        assert set(result.values) == set(pcrs)

    def test_chunks_are_consecutive_slices(self, populated_tpm):
        """Chunks should be positional slices, never reordered."""
        pcrs = [23, 0, 5, 1, 7, 2, 9, 3, 8, 4]
        read_selection(populated_tpm, RegisterSelection(HashAlgorithm.SHA256, pcrs))
        assert reads_issued(populated_tpm) == [tuple(pcrs[:8]), tuple(pcrs[8:])]

    def test_nine_pcrs_split_at_eighth(self, populated_tpm):
        """PCRs 0-8 should be read as [0..7] then [8]."""
        read_selection(populated_tpm, RegisterSelection(HashAlgorithm.SHA256, range(9)))
        assert reads_issued(populated_tpm) == [tuple(range(8)), (8,)]

    def test_duplicates_collapse(self, populated_tpm):
        """Duplicate indices should appear once in the result."""
        sel = RegisterSelection(HashAlgorithm.SHA256, [3, 3, 5, 3])
        result = read_selection(populated_tpm, sel)
        assert result.values == {3: digest(4), 5: digest(6)}

    def test_last_write_wins(self, mock_device):
        """If a later chunk returns an index again, its digest is kept."""
        mock_device.read_pcrs.side_effect = [
            {i: digest(1) for i in range(8)},
            {0: digest(2)},
        ]
        sel = RegisterSelection(HashAlgorithm.SHA256, list(range(8)) + [0])
        result = read_selection(mock_device, sel)
        assert result.values[0] == digest(2)

    def test_result_bank(self, simulated_tpm):
        """The result should carry the selection's bank."""
        result = read_selection(simulated_tpm, RegisterSelection(HashAlgorithm.SHA1, [0]))
        assert result.hash_algorithm == HashAlgorithm.SHA1
        assert result.values == {0: bytes(20)}

    def test_empty_selection_reads_nothing(self, simulated_tpm):
        """An empty selection issues no reads and returns an empty set."""
        result = read_selection(simulated_tpm, RegisterSelection(HashAlgorithm.SHA256, ()))
        assert len(result) == 0
        assert reads_issued(simulated_tpm) == []

    def test_chunk_failure_propagates_unchanged(self, mock_device):
        """A failing chunk aborts the read and re-raises the same error."""
        error = ReadError("TPM_RC_LOCALITY")
        mock_device.read_pcrs.side_effect = [{i: digest(1) for i in range(8)}, error]
        sel = RegisterSelection(HashAlgorithm.SHA256, range(20))

        with pytest.raises(ReadError) as exc_info:
            read_selection(mock_device, sel)

        assert exc_info.value is error
        assert mock_device.read_pcrs.call_count == 2

    def test_wrong_digest_size_is_read_error(self, mock_device):
        """A digest of the wrong size for the bank is reported as a ReadError."""
        mock_device.read_pcrs.side_effect = [
            {i: digest(1) for i in range(8)},
            {8: bytes(20)},
        ]
        sel = RegisterSelection(HashAlgorithm.SHA256, range(9))

        with pytest.raises(ReadError) as exc_info:
            read_selection(mock_device, sel)

        assert exc_info.value.hash_algorithm == HashAlgorithm.SHA256
        assert exc_info.value.chunk == (8,)
        assert "20 bytes" in str(exc_info.value)

    def test_idempotent(self, populated_tpm):
        """Two reads of an unchanged TPM should be identical."""
        sel = RegisterSelection(HashAlgorithm.SHA256, [0, 4, 9, 17, 23])
        first = read_selection(populated_tpm, sel)
        second = read_selection(populated_tpm, sel)
        assert first == second
        assert dict(first.values) == dict(second.values)

    def test_no_caching(self, simulated_tpm):
        """Reads should reflect extends made between calls."""
        sel = RegisterSelection(HashAlgorithm.SHA256, [16])
        before = read_selection(simulated_tpm, sel)
        simulated_tpm.extend(16, b"event")
        after = read_selection(simulated_tpm, sel)
        assert before != after


# ===========================================================================
# All Banks Tests
# ===========================================================================

class TestReadAllBanks:
    """Tests for read_all_banks."""

    def test_one_set_per_bank(self, simulated_tpm):
        """Each discovered bank should be read fully, in discovery order."""
        all_pcrs = read_all_banks(simulated_tpm)

        assert [p.hash_algorithm for p in all_pcrs] == [HashAlgorithm.SHA1, HashAlgorithm.SHA256]
        for pcrs in all_pcrs:
            assert pcrs.indices() == tuple(range(24))
        # 24 PCRs per bank take 3 reads each
        assert len(reads_issued(simulated_tpm)) == 6

    def test_discovery_more_data_no_reads(self, mock_device):
        """A more-data discovery failure should issue no PCR reads."""
        mock_device.get_capability.return_value = ([full_selection(HashAlgorithm.SHA256)], True)
        with pytest.raises(DiscoveryError):
            read_all_banks(mock_device)
        mock_device.read_pcrs.assert_not_called()

    def test_bank_failure_names_bank(self, mock_device):
        """A failed bank read should identify the bank."""
        mock_device.get_capability.return_value = (
            [RegisterSelection(HashAlgorithm.SHA1, [0]),
             RegisterSelection(HashAlgorithm.SHA256, [0])],
            False,
        )
        cause = ReadError("TPM_RC_HASH")
        mock_device.read_pcrs.side_effect = [{0: digest(1, HashAlgorithm.SHA1)}, cause]

        with pytest.raises(ReadError) as exc_info:
            read_all_banks(mock_device)

        assert exc_info.value.hash_algorithm == HashAlgorithm.SHA256
        assert "SHA256" in str(exc_info.value)
        assert exc_info.value.__cause__ is cause

    def test_banks_with_partial_pcrs(self):
        """A bank implementing fewer PCRs is read as reported."""
        device = SimulatedTPM(banks=[HashAlgorithm.SHA384])
        device.get_capability = MagicMock(return_value=(
            [RegisterSelection(HashAlgorithm.SHA384, range(10))], False
        ))
        (pcrs,) = read_all_banks(device)
        assert pcrs.indices() == tuple(range(10))
        assert pcrs.values[0] == bytes(48)
