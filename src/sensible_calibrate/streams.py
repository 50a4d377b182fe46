"""Splittable pseudorandom streams.

A :class:`Stream` is an immutable handle on a ``numpy.random.SeedSequence``.
Splitting and joining are pure functions of the handles involved: nothing is
spawned from a shared, mutable parent, so sub-streams can be consumed in any
order (or concurrently) and still reproduce the same draws.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Tuple

import numpy as np

__all__ = ["Stream", "as_stream", "join"]

# Number of 32-bit words used when folding sub-streams into a continuation.
_STATE_WORDS = 8


@dataclass(frozen=True)
class Stream:
    """Immutable, splittable source of independent random generators."""

    seed_seq: np.random.SeedSequence

    @classmethod
    def from_seed(cls, seed: Any = None) -> "Stream":
        """Root stream from anything ``SeedSequence`` accepts (None = OS entropy)."""
        if isinstance(seed, np.random.SeedSequence):
            return cls(seed)
        return cls(np.random.SeedSequence(seed))

    def split(self, n: int) -> Tuple["Stream", ...]:
        """Derive ``n`` independent child streams.

        Child ``i`` extends the parent's spawn key with ``i``; the parent's
        own spawn counter is never touched, so the same parent always yields
        the same children.
        """
        n = int(n)
        if n < 0:
            raise ValueError("Cannot split a stream into a negative number of parts.")
        ss = self.seed_seq
        return tuple(
            Stream(
                np.random.SeedSequence(
                    ss.entropy,
                    spawn_key=tuple(ss.spawn_key) + (i,),
                    pool_size=ss.pool_size,
                )
            )
            for i in range(n)
        )

    def state_words(self) -> np.ndarray:
        return self.seed_seq.generate_state(_STATE_WORDS, dtype=np.uint32)

    def generator(self) -> np.random.Generator:
        """Fresh generator owned by the caller; repeated calls restart the stream."""
        return np.random.Generator(np.random.PCG64(self.seed_seq))


def join(streams: Iterable[Stream]) -> Stream:
    """Fold sub-streams into a single continuation stream.

    The fold XORs the sub-streams' state words, so it is commutative and
    associative: the continuation does not depend on the order in which the
    sub-streams were consumed.
    """
    streams = tuple(streams)
    if not streams:
        raise ValueError("join() needs at least one stream.")
    words = np.bitwise_xor.reduce([s.state_words() for s in streams], axis=0)
    entropy = [int(w) for w in words] + [len(streams)]
    return Stream(np.random.SeedSequence(entropy))


def as_stream(seed: Any = None) -> Stream:
    """Return ``seed`` if it is already a Stream, else a root stream built from it."""
    if isinstance(seed, Stream):
        return seed
    return Stream.from_seed(seed)
