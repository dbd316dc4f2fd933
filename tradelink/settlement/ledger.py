"""All-or-nothing execution over in-process collaborators.

On chain, a reverted call unwinds every effect for free. Off chain the
settlement engine gets the same guarantee from ``atomic_execution``: each
participant is snapshotted before the block runs and restored if anything
inside it raises.

``LocalChain`` stands in for the ledger's block height, which is the only
clock the protocol knows about.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Transactional(Protocol):
    """A collaborator whose state can be captured and put back."""

    def snapshot(self) -> Any: ...

    def restore(self, snapshot: Any) -> None: ...


@runtime_checkable
class BlockSource(Protocol):
    """Anything that reports the current block height."""

    @property
    def block_number(self) -> int: ...


class LocalChain:
    """Monotonic block counter for local runs and tests."""

    def __init__(self, block_number: int = 0) -> None:
        if block_number < 0:
            raise ValueError("block_number must be non-negative")
        self._block_number = block_number

    @property
    def block_number(self) -> int:
        return self._block_number

    def mine(self, blocks: int = 1) -> int:
        """Advance the chain by ``blocks`` and return the new height."""
        if blocks < 0:
            raise ValueError("cannot mine a negative number of blocks")
        self._block_number += blocks
        return self._block_number


@contextmanager
def atomic_execution(*participants: Any) -> Iterator[None]:
    """Run a block so that either every effect persists or none does.

    Participants that do not implement ``Transactional`` are passed over;
    they are expected to be atomic on their own.
    """
    unique: list[Transactional] = []
    for participant in participants:
        if isinstance(participant, Transactional) and not any(p is participant for p in unique):
            unique.append(participant)

    snapshots = [(p, p.snapshot()) for p in unique]
    try:
        yield
    except BaseException:
        logger.warning("Rolling back %d participant(s) after failure", len(snapshots))
        for participant, snapshot in reversed(snapshots):
            participant.restore(snapshot)
        raise
