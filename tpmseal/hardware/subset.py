"""
PCR subset comparison.

check_subset decides whether every PCR recorded in a certified set appears in
a reference set with an identical digest. The reference may hold extra PCRs;
they are ignored.
"""

import hmac

from ..logging_config import short_digest
from .errors import CertificationMismatchError
from .registers import RegisterSet


def check_subset(reference: RegisterSet, certified: RegisterSet) -> None:
    """
    Verify certified is a value-equal subset of reference.

    Indices are checked in ascending order and the first failure is reported.

    Raises:
        CertificationMismatchError: On a bank mismatch, or on the first
            certified PCR that is missing from reference or differs
    """
    if reference.hash_algorithm != certified.hash_algorithm:
        raise CertificationMismatchError(
            f"PCR bank mismatch: reference is {reference.hash_algorithm.name}, "
            f"certified is {certified.hash_algorithm.name}",
            reason="hash_algorithm",
        )

    for index in certified.indices():
        expected = certified.values[index]
        actual = reference.values.get(index)

        if actual is None:
            raise CertificationMismatchError(
                f"PCR {index} missing from reference values",
                index=index,
                reason="missing",
            )

        if not hmac.compare_digest(actual, expected):
            raise CertificationMismatchError(
                f"PCR {index} mismatch: got {short_digest(actual)}, certified {short_digest(expected)}",
                index=index,
                reason="mismatch",
            )
