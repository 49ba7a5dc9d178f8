"""Fan-out/join helper for parallel clone and deploy."""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def run_all(
    items: Sequence[T],
    func: Callable[[T], R],
    parallel: bool = False,
    max_workers: int = 4,
) -> List[R]:
    """Apply func to every item and return results in input order.

    In parallel mode each item runs on its own worker thread and nothing is
    shared between them; callers aggregate the returned outcomes after the
    join. An exception raised by func propagates once all items finished.
    """
    if not parallel or len(items) <= 1:
        return [func(item) for item in items]

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as pool:
        futures = [pool.submit(func, item) for item in items]
        return [future.result() for future in futures]
