"""Bucket-count growth policies for open-addressing hash tables.

Each policy is built from a requested minimum bucket count. It may raise that
count (never lower it) and exposes the adjusted value as ``bucket_count``. It
maps a hash to a bucket and reports the bucket count to use on the next growth.
"""

from __future__ import annotations

import math
from bisect import bisect_left

__all__ = [
    "HashTableSizeError",
    "PowerOfTwoGrowthPolicy",
    "ModGrowthPolicy",
    "PrimeGrowthPolicy",
    "is_power_of_two",
    "round_up_to_power_of_two",
]

_SIZE_T_MAX = (1 << 64) - 1

_MAX_SIZE_MESSAGE = "The hash table exceeds its maximum size."

PRIMES: tuple[int, ...] = (
    1, 5, 17, 29, 37, 53, 67, 79, 97, 131, 193, 257, 389, 521, 769, 1031,
    1543, 2053, 3079, 6151, 12289, 24593, 49157, 98317, 196613, 393241,
    786433, 1572869, 3145739, 6291469, 12582917, 25165843, 50331653,
    100663319, 201326611, 402653189, 805306457, 1610612741, 3221225473,
    4294967291, 6442450939, 12884901893, 25769803751, 51539607551,
    103079215111, 206158430209, 412316860441, 824633720831,
    1649267441651, 3298534883309, 6597069766657,
)


class HashTableSizeError(ValueError):
    """Raised when a hash table would exceed its maximum bucket count."""

    def __init__(self, message: str = _MAX_SIZE_MESSAGE) -> None:
        super().__init__(message)


def _as_size_t(value: int) -> int:
    return int(value) & _SIZE_T_MAX


def is_power_of_two(value: int) -> bool:
    """True if ``value`` is a positive power of two."""
    return value != 0 and (value & (value - 1)) == 0


def round_up_to_power_of_two(value: int) -> int:
    """Smallest power of two that is greater than or equal to ``value`` (1 for 0)."""
    if value < 0:
        raise ValueError("value must not be negative")
    if is_power_of_two(value):
        return value
    if value == 0:
        return 1
    return 1 << (value - 1).bit_length()


class PowerOfTwoGrowthPolicy:
    """Keep the bucket count a power of two and map hashes with a mask."""

    def __init__(self, min_bucket_count: int, growth_factor: int = 2) -> None:
        if not is_power_of_two(growth_factor) or growth_factor < 2:
            raise ValueError("growth_factor must be a power of two >= 2")
        self.growth_factor = growth_factor
        if min_bucket_count < 0:
            raise ValueError("min_bucket_count must not be negative")
        if min_bucket_count > self.max_bucket_count():
            raise HashTableSizeError()
        if min_bucket_count > 0:
            self.bucket_count = round_up_to_power_of_two(min_bucket_count)
            self._mask = self.bucket_count - 1
        else:
            self.bucket_count = 0
            self._mask = 0

    def bucket_for_hash(self, hash_value: int) -> int:
        """Bucket in ``[0, bucket_count)`` for the hash (0 when there are none)."""
        return _as_size_t(hash_value) & self._mask

    def next_bucket_count(self) -> int:
        """Bucket count to use on the next growth."""
        if (self._mask + 1) > self.max_bucket_count() // self.growth_factor:
            raise HashTableSizeError()
        return (self._mask + 1) * self.growth_factor

    def max_bucket_count(self) -> int:
        """Largest power of two representable as an unsigned 64-bit size."""
        return (_SIZE_T_MAX // 2) + 1

    def clear(self) -> None:
        """Behave as if built with a bucket count of 0."""
        self._mask = 0
        self.bucket_count = 0


class ModGrowthPolicy:
    """Grow by ``numerator / denominator`` and map hashes with a modulo."""

    def __init__(self, min_bucket_count: int, numerator: int = 3, denominator: int = 2) -> None:
        if denominator <= 0:
            raise ValueError("denominator must be positive")
        self._factor = 1.0 * numerator / denominator
        if self._factor < 1.1:
            raise ValueError("Growth factor should be >= 1.1.")
        self._max_bucket_count = int(float(_SIZE_T_MAX) / self._factor)
        if min_bucket_count < 0:
            raise ValueError("min_bucket_count must not be negative")
        if min_bucket_count > self.max_bucket_count():
            raise HashTableSizeError()
        self.bucket_count = min_bucket_count
        self._mod = min_bucket_count if min_bucket_count > 0 else 1

    def bucket_for_hash(self, hash_value: int) -> int:
        """Bucket for the hash: the hash modulo the current bucket count."""
        return _as_size_t(hash_value) % self._mod

    def next_bucket_count(self) -> int:
        """Bucket count to use on the next growth, capped at the maximum."""
        if self._mod == self.max_bucket_count():
            raise HashTableSizeError()
        next_count = math.ceil(float(self._mod) * self._factor)
        if not math.isfinite(next_count) or next_count == 0:
            raise HashTableSizeError()
        if next_count > float(self.max_bucket_count()):
            return self.max_bucket_count()
        return int(next_count)

    def max_bucket_count(self) -> int:
        """Largest bucket count the policy supports."""
        return self._max_bucket_count

    def clear(self) -> None:
        """Behave as if built with a bucket count of 0."""
        self._mod = 1
        self.bucket_count = 0


class PrimeGrowthPolicy:
    """Use prime bucket counts from a fixed table and map hashes with a modulo."""

    def __init__(self, min_bucket_count: int) -> None:
        if min_bucket_count < 0:
            raise ValueError("min_bucket_count must not be negative")
        index = bisect_left(PRIMES, min_bucket_count)
        if index == len(PRIMES):
            raise HashTableSizeError()
        self._iprime = index
        self.bucket_count = PRIMES[index] if min_bucket_count > 0 else 0

    def bucket_for_hash(self, hash_value: int) -> int:
        """Bucket for the hash: the hash modulo the current prime."""
        return _as_size_t(hash_value) % PRIMES[self._iprime]

    def next_bucket_count(self) -> int:
        """The next prime in the table."""
        if self._iprime + 1 >= len(PRIMES):
            raise HashTableSizeError()
        return PRIMES[self._iprime + 1]

    def max_bucket_count(self) -> int:
        """The largest prime in the table."""
        return PRIMES[-1]

    def clear(self) -> None:
        """Behave as if built with a bucket count of 0."""
        self._iprime = 0
        self.bucket_count = 0