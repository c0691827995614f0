# START OF FILE clusterseed/fanout.py
"""
Concurrent per-node execution for ClusterSeed.

Runs one task per item on a thread pool and collects every outcome. The
default policy waits for all tasks, so no node is left half-configured by an
abrupt stop; the alternative policy only skips tasks that have not started.
"""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Generic, Hashable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class FailurePolicy(Enum):
    """What happens to sibling tasks once one task fails."""
    WAIT_ALL = "wait_all"              # Every task runs to completion
    CANCEL_PENDING = "cancel_pending"  # Tasks not yet started are cancelled


@dataclass
class FanOutResult(Generic[R]):
    """
    Outcome of a fan-out run.

    Attributes:
        results: Return values of tasks that succeeded, by key
        errors: Exceptions of tasks that failed, by key
        cancelled: Keys of tasks that never ran
        first_error: The first failure observed, by completion order
        first_error_key: Key of the task that produced first_error
    """
    results: Dict[Hashable, R] = field(default_factory=dict)
    errors: Dict[Hashable, Exception] = field(default_factory=dict)
    cancelled: List[Hashable] = field(default_factory=list)
    first_error: Optional[Exception] = None
    first_error_key: Optional[Hashable] = None

    @property
    def ok(self) -> bool:
        return self.first_error is None

    def raise_first(self):
        """Re-raise the first error, if any."""
        if self.first_error is not None:
            raise self.first_error


class FanOutExecutor:
    """Runs a unit of work for every item concurrently and waits for all of them."""

    def __init__(
        self,
        max_workers: Optional[int] = None,
        policy: FailurePolicy = FailurePolicy.WAIT_ALL,
        name: str = "fanout"
    ):
        """
        Args:
            max_workers: Thread cap (default: one thread per item)
            policy: Failure policy
            name: Thread name prefix, shows up in logs
        """
        self.max_workers = max_workers
        self.policy = policy
        self.name = name

    def run(
        self,
        items: Iterable[T],
        work: Callable[[T], R],
        key: Callable[[T], Hashable] = lambda item: item
    ) -> FanOutResult:
        """
        Execute work(item) for each item.

        Workers only return values or raise; results are gathered here, after
        each future completes, so no worker writes to shared state.

        Args:
            items: Work items (e.g. nodes)
            work: Per-item unit of work
            key: Maps an item to its result key; keys must be unique

        Returns:
            FanOutResult once every task has finished or been cancelled
        """
        items = list(items)
        result = FanOutResult()
        if not items:
            return result

        keys = [key(item) for item in items]
        if len(set(keys)) != len(keys):
            raise ValueError(f"{self.name}: duplicate fan-out keys")

        workers = min(self.max_workers or len(items), len(items))
        logger.debug(f"{self.name}: running {len(items)} task(s) on {workers} worker(s)")

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix=self.name
        ) as executor:
            future_to_key: Dict[concurrent.futures.Future, Hashable] = {
                executor.submit(work, item): item_key
                for item, item_key in zip(items, keys)
            }

            for future in concurrent.futures.as_completed(future_to_key):
                item_key = future_to_key[future]

                if future.cancelled():
                    result.cancelled.append(item_key)
                    continue

                error = future.exception()
                if error is None:
                    result.results[item_key] = future.result()
                    continue

                result.errors[item_key] = error
                if result.first_error is None:
                    result.first_error = error
                    result.first_error_key = item_key
                    logger.warning(f"{self.name}: task {item_key} failed: {error}")

                    if self.policy is FailurePolicy.CANCEL_PENDING:
                        cancelled = sum(1 for f in future_to_key if f.cancel())
                        if cancelled:
                            logger.info(f"{self.name}: cancelled {cancelled} pending task(s)")
                else:
                    logger.warning(f"{self.name}: task {item_key} also failed: {error}")

        return result

