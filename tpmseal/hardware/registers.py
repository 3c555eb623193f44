"""
PCR value types.

RegisterSelection names the PCRs to act on within one bank. RegisterSet holds
the measured digests of one bank at a point in time. Both are immutable.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Tuple

from ..constants import NUM_PCRS
from .algorithms import HashAlgorithm


@dataclass(frozen=True)
class RegisterSelection:
    """
    A bank plus an ordered sequence of PCR indices.

    Order and duplicates are preserved exactly as given; readers chunk the
    sequence as-is.
    """
    hash_algorithm: HashAlgorithm
    pcrs: Tuple[int, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'hash_algorithm', HashAlgorithm(self.hash_algorithm))
        object.__setattr__(self, 'pcrs', tuple(int(p) for p in self.pcrs))

    def __str__(self) -> str:
        return format_selection(self)


@dataclass(frozen=True)
class RegisterSet:
    """
    Measured state of one PCR bank.

    values maps PCR index to digest bytes. Every digest must be exactly
    hash_algorithm.digest_size bytes long.
    """
    hash_algorithm: HashAlgorithm
    values: Mapping[int, bytes] = field(default_factory=dict)

    def __post_init__(self):
        hash_algorithm = HashAlgorithm(self.hash_algorithm)
        values = {int(index): bytes(digest) for index, digest in self.values.items()}

        for index, digest in values.items():
            if len(digest) != hash_algorithm.digest_size:
                raise ValueError(
                    f"PCR {index} digest is {len(digest)} bytes, "
                    f"{hash_algorithm.name} requires {hash_algorithm.digest_size}"
                )

        object.__setattr__(self, 'hash_algorithm', hash_algorithm)
        object.__setattr__(self, 'values', MappingProxyType(values))

    def __len__(self) -> int:
        return len(self.values)

    def indices(self) -> Tuple[int, ...]:
        """Sorted PCR indices present in this set"""
        return tuple(sorted(self.values))

    def selection(self) -> RegisterSelection:
        """Selection covering exactly the PCRs in this set"""
        return RegisterSelection(self.hash_algorithm, self.indices())

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization"""
        return {
            'hash': self.hash_algorithm.tool_name,
            'pcrs': {index: self.values[index].hex() for index in self.indices()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RegisterSet':
        """
        Create from dictionary.

        PCR keys may be ints (YAML) or strings (JSON). Digests are hex.
        """
        try:
            hash_algorithm = _coerce_algorithm(data['hash'])
            pcrs = data.get('pcrs') or {}
            return cls(
                hash_algorithm=hash_algorithm,
                values={int(index): bytes.fromhex(str(digest))
                        for index, digest in pcrs.items()},
            )
        except (KeyError, AttributeError, TypeError) as e:
            raise ValueError(f"Malformed PCR set: {e}")


def _coerce_algorithm(value: Any) -> HashAlgorithm:
    if isinstance(value, str):
        return HashAlgorithm.from_name(value)
    return HashAlgorithm(value)


def full_selection(hash_algorithm: HashAlgorithm) -> RegisterSelection:
    """Selection of every PCR (0 to NUM_PCRS-1) in the given bank."""
    return RegisterSelection(hash_algorithm, tuple(range(NUM_PCRS)))


def format_selection(selection: RegisterSelection) -> str:
    """Render a selection in tpm2-tools syntax, e.g. 'sha256:0,7,8'."""
    return f"{selection.hash_algorithm.tool_name}:{','.join(str(p) for p in selection.pcrs)}"


def parse_selection(text: str) -> RegisterSelection:
    """
    Parse a selection in tpm2-tools syntax.

    'sha256:0,7,8' and 'sha1:0-7,16' are accepted; index order is kept.

    Raises:
        ValueError: If the bank is unknown or an index is malformed
    """
    bank, sep, indices = text.partition(':')
    if not sep:
        raise ValueError(f"PCR selection {text!r} is missing ':'")

    hash_algorithm = HashAlgorithm.from_name(bank)
    return RegisterSelection(hash_algorithm, tuple(_parse_indices(indices)))


def _parse_indices(text: str) -> Iterable[int]:
    for part in text.split(','):
        part = part.strip()
        if not part:
            continue
        low, dash, high = part.partition('-')
        try:
            if dash:
                yield from range(int(low), int(high) + 1)
            else:
                yield int(part)
        except ValueError:
            raise ValueError(f"Invalid PCR index {part!r}")
