"""Random mutation of file contents held in a bytearray."""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Protocol

log = logging.getLogger(__name__)

# One draw out of this many inclusive values bypasses the plugin.
_RANDOM_MUTATION_CHANCE = 10


class _Rng(Protocol):
    def randint(self, a: int, b: int) -> int: ...


def _rng(rng: _Rng | None) -> _Rng:
    return rng if rng is not None else random.SystemRandom()


def _check_data(data: bytearray) -> None:
    if not data:
        raise ValueError("can't mutate an empty file")


def flip_byte_mutator(data: bytearray, rng: _Rng | None = None) -> None:
    """Invert every bit of one randomly chosen byte."""
    _check_data(data)
    offset = _rng(rng).randint(0, len(data) - 1)
    data[offset] ^= 0xFF


def flip_bit_mutator(data: bytearray, rng: _Rng | None = None) -> None:
    """Flip one randomly chosen bit of one randomly chosen byte."""
    _check_data(data)
    rng = _rng(rng)
    offset = rng.randint(0, len(data) - 1)
    bit = rng.randint(0, 7)
    data[offset] ^= 1 << bit


def xor_mutator(data: bytearray, rng: _Rng | None = None) -> None:
    """Leave the data as it is; this mutator applies no change."""
    _check_data(data)


_MUTATORS: tuple[Callable[[bytearray, Any], None], ...] = (
    flip_byte_mutator,
    flip_bit_mutator,
    xor_mutator,
)


def mutate_file_randomly(data: bytearray, rng: _Rng | None = None) -> None:
    """Apply one mutator picked at random."""
    _check_data(data)
    rng = _rng(rng)
    mutator = _MUTATORS[rng.randint(0, len(_MUTATORS) - 1)]
    mutator(data, rng)


def mutate_file(
    data: bytearray,
    file_extension: str,
    registry: Any = None,
    rng: _Rng | None = None,
) -> None:
    """Mutate ``data`` in place, using a plugin for the format when one exists."""
    rng = _rng(rng)
    offset = registry.supported_file(file_extension) if registry is not None else None
    if offset is None:
        mutate_file_randomly(data, rng)
        return

    number_of_features = registry.features_supported(offset)
    if rng.randint(0, _RANDOM_MUTATION_CHANCE) == _RANDOM_MUTATION_CHANCE:
        mutate_file_randomly(data, rng)
        return

    feature = rng.randint(0, number_of_features)
    constraints = registry.feature_constraints(offset)
    log.debug("Testing feature %d with %r", feature, constraints)


def mutate_arguments(ctx: Any) -> None:
    """Check a child's context; its syscall arguments are left as generated."""
    if ctx is None:
        raise ValueError("no child context to mutate")
    log.debug("Leaving arguments of %r as generated", ctx)