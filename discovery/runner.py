"""Fixed-concurrency task runner shared by the ping and ARP sweeps."""
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Iterator, List, TypeVar

from config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BoundedTaskRunner:
    """Runs a worker over many inputs with at most `limit` running at once.

    Results come back in completion order. Workers are expected to report
    failures inside their return value; an exception raised by a worker is
    re-raised to the caller when its result is reached.

    Attributes:
        limit: Maximum number of concurrent worker invocations.
        skip_pending_on_stop: When the consumer stops iterating early, cancel
            tasks that have not started yet instead of letting them run.

    Example:
        >>> runner = BoundedTaskRunner(limit=4)
        >>> sorted(runner.run([1, 2, 3], lambda x: x * 2))
        [2, 4, 6]
    """

    def __init__(self, limit: int, skip_pending_on_stop: bool = False):
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")
        self.limit = limit
        self.skip_pending_on_stop = skip_pending_on_stop

    def iter_results(self, inputs: Iterable[T], worker: Callable[[T], R]) -> Iterator[R]:
        """Yield worker results as they complete.

        Closing the generator before it is exhausted never abandons a task:
        running tasks are always waited for, and pending tasks are either
        cancelled (`skip_pending_on_stop`) or left to finish with their
        results discarded.
        """
        items = list(inputs)
        if not items:
            return

        executor = ThreadPoolExecutor(
            max_workers=min(self.limit, len(items)),
            thread_name_prefix="lansweep-probe",
        )
        futures: List[Future] = []
        exhausted = False
        try:
            futures = [executor.submit(worker, item) for item in items]
            for future in as_completed(futures):
                yield future.result()
            exhausted = True
        finally:
            if not exhausted and self.skip_pending_on_stop:
                cancelled = sum(1 for future in futures if future.cancel())
                if cancelled:
                    logger.debug(f"Skipped {cancelled} pending tasks")
            executor.shutdown(wait=True)

    def run(self, inputs: Iterable[T], worker: Callable[[T], R]) -> List[R]:
        """Run the worker over every input and collect all results."""
        return list(self.iter_results(inputs, worker))
