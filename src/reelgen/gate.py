"""Process-wide busy gate for long-running operations."""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from .errors import BusyError

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    """Operations that may not overlap."""
    BATCH_GENERATION = "batch generation"
    SINGLE_GENERATION = "single generation"
    EXPORT = "export"


class BusyGate:
    """Allows at most one of batch generation, single generation or export.

    The gate is advisory: callers check ``is_busy`` before starting work and
    hold the gate for the duration of the operation. It is not thread-safe;
    it is only touched from the event loop.
    """

    def __init__(self) -> None:
        self._operation: Optional[Operation] = None

    @property
    def operation(self) -> Optional[Operation]:
        return self._operation

    @property
    def is_busy(self) -> bool:
        return self._operation is not None

    def try_acquire(self, operation: Operation) -> bool:
        if self._operation is not None:
            logger.debug(f"Gate busy with {self._operation.value}; refusing {operation.value}")
            return False
        self._operation = operation
        logger.debug(f"Gate acquired for {operation.value}")
        return True

    def release(self) -> None:
        if self._operation is not None:
            logger.debug(f"Gate released from {self._operation.value}")
        self._operation = None

    @contextmanager
    def hold(self, operation: Operation) -> Iterator[None]:
        """Hold the gate for a block, releasing it however the block exits.

        Raises:
            BusyError: If another operation holds the gate.
        """
        if not self.try_acquire(operation):
            raise BusyError(
                f"Cannot start {operation.value} while {self._operation.value} is in progress"
            )
        try:
            yield
        finally:
            self.release()
