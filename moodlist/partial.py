# moodlist/partial.py
# -------------------------------------------------------------------
# Sequential "run each, keep what worked" helper used by the per-tag
# lookups and the per-track search/append loops. One outbound call at
# a time; a failing item is logged and skipped, never re-raised.
# -------------------------------------------------------------------
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Tuple, TypeVar

log = logging.getLogger("moodlist.partial")

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class PartialResult(Generic[T, R]):
    ok: List[R] = field(default_factory=list)
    failed: List[Tuple[T, str]] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.ok) + len(self.failed)

    def __bool__(self) -> bool:
        return bool(self.ok)


async def collect_successes(
    items: Iterable[T],
    task: Callable[[T], Awaitable[R]],
    label: str = "task",
) -> PartialResult[T, R]:
    """
    Await ``task(item)`` for every item in order.
    Results that come back as ``None`` are treated as a miss (recorded as failed).
    """
    result: PartialResult[Any, Any] = PartialResult()
    for item in items:
        try:
            out = await task(item)
        except Exception as e:
            log.warning("[%s] skipped %r: %s", label, item, e)
            result.failed.append((item, str(e) or type(e).__name__))
            continue
        if out is None:
            log.info("[%s] no result for %r", label, item)
            result.failed.append((item, "no result"))
            continue
        result.ok.append(out)
    return result
