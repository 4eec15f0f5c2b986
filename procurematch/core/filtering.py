from collections.abc import Iterable, Sequence
from typing import Literal

from pydantic import BaseModel

from procurematch.core.process import Process
from procurematch.core.sanitize import sanitize_text
from procurematch.core.status import PROCESS_STATUSES

StatusFilter = Literal["all", "open", "conflict", "completed"]


class StatusCounts(BaseModel):
    """Per-status process counters shown next to each filter."""
    total: int = 0
    open: int = 0
    conflict: int = 0
    completed: int = 0


def filter_processes(
    processes: Iterable[Process],
    status_filter: str = "all",
    search_term: str = "",
) -> list[Process]:
    """Filter by aggregate status, then by case-insensitive substring of the id.

    The input order is preserved.
    """
    if status_filter != "all" and status_filter not in PROCESS_STATUSES:
        raise ValueError(f"Unknown status filter: {status_filter}")

    by_status = [p for p in processes if status_filter == "all" or p.status == status_filter]

    term = sanitize_text(search_term).casefold()
    if not term:
        return by_status
    return [p for p in by_status if term in p.id.casefold()]


def count_by_status(processes: Sequence[Process]) -> StatusCounts:
    counts = StatusCounts(total=len(processes))
    for status in PROCESS_STATUSES:
        setattr(counts, status, sum(1 for p in processes if p.status == status))
    return counts


def find_process(processes: Iterable[Process], process_id: str) -> Process | None:
    wanted = sanitize_text(process_id)
    return next((p for p in processes if p.id == wanted), None)
