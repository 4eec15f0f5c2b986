from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from procurematch.core.process import Process

ProcessStatus = Literal["open", "conflict", "completed"]
PROCESS_STATUSES: tuple[str, ...] = ("open", "conflict", "completed")


def derive_status(process: "Process") -> ProcessStatus:
    """Aggregate status of a process from its stages.

    Conflict beats completion beats open:
        confirmation or delivery in conflict -> "conflict"
        delivery verified                    -> "completed"
        otherwise                            -> "open"

    The order stage never contributes; it is populated by external ingestion.
    """
    if process.confirmation.status == "conflict" or process.delivery.status == "conflict":
        return "conflict"
    if process.delivery.status == "verified":
        return "completed"
    return "open"
