"""
Deterministic cohort sampling for gradual feature rollout.

A user must land in the same cohort on every request, in every process, so the
decision is derived from a digest of the identifier rather than from a random
number generator. Salting with the feature name samples each feature
independently.
"""

import hashlib
from typing import Union

COHORT_HEX_DIGITS = 13
"""The low 52 bits of the digest, the widest integer a double holds exactly."""

COHORT_MAX = 0xfffffffffffff


def is_sampled(rate: float, identifier: Union[bytes, str], salt: str) -> bool:
    """
    Decide whether ``identifier`` falls inside a ``rate``-sized cohort.

    Parameters
    ----------
    rate : float
        Fraction of identifiers to include, in [0, 1].
    identifier : bytes or str
        Usually a uid. Bytes are hex-encoded before hashing; anything else is
        coerced to ``str``.
    salt : str
        The feature name.

    Returns
    -------
    bool

    """
    if rate <= 0:
        return False
    if rate >= 1:
        return True

    if isinstance(identifier, (bytes, bytearray)):
        identifier = identifier.hex()
    digest = hashlib.sha1()
    digest.update(str(identifier).encode('utf-8'))
    digest.update(salt.encode('utf-8'))
    cohort = int(digest.hexdigest()[-COHORT_HEX_DIGITS:], 16)
    return rate > cohort / COHORT_MAX
