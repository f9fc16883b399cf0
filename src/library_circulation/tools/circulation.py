"""
Circulation tools: the MCP surface over the lifecycle engine.

Each tool validates its arguments with a Pydantic input model, calls one
engine operation and returns an MCP tool result:

- success: ``{"content": [text], "data": {...}}``
- failure: ``{"isError": True, "content": [text], "data": {"error": code}}``

Engine errors map to codes (``invalid_input``, ``invalid_state``,
``invalid_reference``, ``conflict``, ``not_found`` ...), so clients can tell
a retryable conflict from a request that will never succeed.
"""

import logging
from datetime import date
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from ..database import SqlAlchemyLifecycleStore, get_db_manager
from ..engine import LifecycleEngine
from ..exceptions import CirculationError
from ..models import Borrowing, Reservation
from ..storage import PermissiveIdentityDirectory

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# =============================================================================
# ENGINE ACCESS
# =============================================================================


class _EngineStore:
    """Internal storage for the engine used by tool handlers."""

    _instance: LifecycleEngine | None = None


def get_engine() -> LifecycleEngine:
    """
    Get the engine used by tool handlers.

    Defaults to the SQLite store from settings with a permissive identity
    directory; call ``set_engine`` to wire other collaborators.
    """
    if _EngineStore._instance is None:  # type: ignore[reportPrivateUsage]
        db = get_db_manager()
        db.init_database()
        _EngineStore._instance = LifecycleEngine(  # type: ignore[reportPrivateUsage]
            SqlAlchemyLifecycleStore(db), PermissiveIdentityDirectory()
        )
    return _EngineStore._instance  # type: ignore[reportPrivateUsage]


def set_engine(engine: LifecycleEngine | None) -> None:
    """Replace the engine used by tool handlers; None restores the default."""
    _EngineStore._instance = engine  # type: ignore[reportPrivateUsage]


# =============================================================================
# INPUT SCHEMAS
# =============================================================================


class CreateBorrowingInput(BaseModel):
    """Input schema for the create_borrowing tool."""

    member_id: str = Field(..., description="Member checking the book out", min_length=1)
    book_id: str = Field(..., description="Book being checked out", min_length=1)
    borrow_date: date = Field(
        default_factory=date.today,
        description="Checkout date; defaults to today",
        examples=["2024-01-10"],
    )
    loan_period_days: int | None = Field(
        default=None,
        description="Days until due; the configured loan period is used when omitted",
        gt=0,
    )


class ReturnBorrowingInput(BaseModel):
    """Input schema for the return_borrowing tool."""

    borrowing_id: str = Field(..., description="ID of the borrowing being returned", min_length=1)
    return_date: date = Field(
        default_factory=date.today,
        description="Date the book came back; defaults to today",
        examples=["2024-02-01"],
    )
    fee_per_late_day: int | None = Field(
        default=None,
        description="Fee per day past due; the configured fee is used when omitted",
        ge=0,
    )


class CreateReservationInput(BaseModel):
    """Input schema for the create_reservation tool."""

    member_id: str = Field(..., description="Member placing the hold", min_length=1)
    book_id: str = Field(..., description="Book being reserved", min_length=1)
    reservation_date: date = Field(
        default_factory=date.today,
        description="Date of the reservation; defaults to today",
        examples=["2024-03-01"],
    )


class ReservationActionInput(BaseModel):
    """Input schema for the fulfill_reservation and cancel_reservation tools."""

    reservation_id: str = Field(..., description="ID of the reservation", min_length=1)


class ListRecordsInput(BaseModel):
    """Input schema for the list_borrowings and list_reservations tools."""

    member_id: str | None = Field(
        default=None,
        description="Only list this member's records; all records when omitted",
        min_length=1,
    )


# =============================================================================
# RESPONSES
# =============================================================================


def _text(message: str) -> list[dict[str, str]]:
    return [{"type": "text", "text": message}]


def _error(message: str, code: str) -> dict[str, Any]:
    return {"isError": True, "content": _text(message), "data": {"error": code}}


def _borrowing_data(borrowing: Borrowing) -> dict[str, Any]:
    return {"borrowing": borrowing.model_dump(mode="json")}


def _reservation_data(reservation: Reservation) -> dict[str, Any]:
    return {"reservation": reservation.model_dump(mode="json")}


def _parse(schema: type[M], arguments: dict[str, Any]) -> M | dict[str, Any]:
    try:
        return schema.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid %s arguments: %s", schema.__name__, e)
        return _error(f"Invalid parameters: {e}", "invalid_input")


def _failure(operation: str, error: CirculationError) -> dict[str, Any]:
    logger.info("%s failed (%s): %s", operation, error.code, error)
    return _error(str(error), error.code)


# =============================================================================
# HANDLERS
# =============================================================================


async def create_borrowing_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Check a book out to a member."""
    params = _parse(CreateBorrowingInput, arguments)
    if isinstance(params, dict):
        return params

    try:
        borrowing = get_engine().create_borrowing(
            params.member_id,
            params.book_id,
            params.borrow_date,
            params.loan_period_days,
        )
    except CirculationError as e:
        return _failure("create_borrowing", e)

    message = (
        f"Created borrowing {borrowing.borrowing_number}: book '{borrowing.book_id}' "
        f"to member '{borrowing.member_id}', due {borrowing.due_date.strftime('%B %d, %Y')}"
    )
    return {"content": _text(message), "data": _borrowing_data(borrowing)}


async def return_borrowing_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return a borrowed book and report the late fee."""
    params = _parse(ReturnBorrowingInput, arguments)
    if isinstance(params, dict):
        return params

    engine = get_engine()
    try:
        borrowing = engine.get_borrowing(params.borrowing_id)
        returned = engine.return_borrowing(
            borrowing, params.return_date, params.fee_per_late_day
        )
    except CirculationError as e:
        return _failure("return_borrowing", e)

    # The return is already stored at this point
    try:
        waiting = engine.next_reservation_for(returned.book_id)
    except CirculationError as e:
        logger.warning(
            "Returned %s but could not check its reservation queue: %s",
            returned.borrowing_number,
            e,
        )
        waiting = None

    message = f"Returned borrowing {returned.borrowing_number}"
    if returned.late_fee > 0:
        message += f" with a late fee of {returned.late_fee}"
    else:
        message += " on time"

    data = _borrowing_data(returned)
    if waiting is not None:
        message += (
            f". Reservation {waiting.reservation_number} by member "
            f"'{waiting.member_id}' is next in line"
        )
        data["next_reservation"] = waiting.model_dump(mode="json")

    return {"content": _text(message), "data": data}


async def create_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Place a hold on a book."""
    params = _parse(CreateReservationInput, arguments)
    if isinstance(params, dict):
        return params

    try:
        reservation = get_engine().create_reservation(
            params.member_id, params.book_id, params.reservation_date
        )
    except CirculationError as e:
        return _failure("create_reservation", e)

    message = (
        f"Created reservation {reservation.reservation_number}: book '{reservation.book_id}' "
        f"for member '{reservation.member_id}'"
    )
    return {"content": _text(message), "data": _reservation_data(reservation)}


async def fulfill_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Mark a reservation as received by the member."""
    params = _parse(ReservationActionInput, arguments)
    if isinstance(params, dict):
        return params

    engine = get_engine()
    try:
        reservation = engine.fulfill_reservation(engine.get_reservation(params.reservation_id))
    except CirculationError as e:
        return _failure("fulfill_reservation", e)

    message = f"Reservation {reservation.reservation_number} received"
    return {"content": _text(message), "data": _reservation_data(reservation)}


async def cancel_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Withdraw a pending reservation."""
    params = _parse(ReservationActionInput, arguments)
    if isinstance(params, dict):
        return params

    engine = get_engine()
    try:
        reservation = engine.cancel_reservation(engine.get_reservation(params.reservation_id))
    except CirculationError as e:
        return _failure("cancel_reservation", e)

    message = f"Reservation {reservation.reservation_number} cancelled"
    return {"content": _text(message), "data": _reservation_data(reservation)}


async def list_borrowings_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """List borrowings, optionally for one member."""
    params = _parse(ListRecordsInput, arguments)
    if isinstance(params, dict):
        return params

    try:
        borrowings = get_engine().borrowings_for(params.member_id)
    except CirculationError as e:
        return _failure("list_borrowings", e)

    if not borrowings:
        message = "No borrowings found"
    else:
        lines = [f"Found {len(borrowings)} borrowing(s):"]
        for b in borrowings:
            line = f"- {b.borrowing_number}: book '{b.book_id}', {b.status.value}"
            if b.is_active:
                line += f", due {b.due_date.isoformat()}"
            elif b.late_fee > 0:
                line += f", late fee {b.late_fee}"
            lines.append(line)
        message = "\n".join(lines)

    data = {"borrowings": [b.model_dump(mode="json") for b in borrowings]}
    return {"content": _text(message), "data": data}


async def list_reservations_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """List reservations, optionally for one member."""
    params = _parse(ListRecordsInput, arguments)
    if isinstance(params, dict):
        return params

    try:
        reservations = get_engine().reservations_for(params.member_id)
    except CirculationError as e:
        return _failure("list_reservations", e)

    if not reservations:
        message = "No reservations found"
    else:
        lines = [f"Found {len(reservations)} reservation(s):"]
        lines.extend(
            f"- {r.reservation_number}: book '{r.book_id}', {r.status.value}"
            for r in reservations
        )
        message = "\n".join(lines)

    data = {"reservations": [r.model_dump(mode="json") for r in reservations]}
    return {"content": _text(message), "data": data}


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

create_borrowing = {
    "name": "create_borrowing",
    "description": (
        "Check a book out to a member. Assigns the next BR number for the year and "
        "sets the due date from the loan period."
    ),
    "inputSchema": CreateBorrowingInput.model_json_schema(),
    "handler": create_borrowing_handler,
}

return_borrowing = {
    "name": "return_borrowing",
    "description": (
        "Return a borrowed book. Fixes the late fee for days past the due date and "
        "reports the next pending reservation for the book, if any. A borrowing can "
        "only be returned once."
    ),
    "inputSchema": ReturnBorrowingInput.model_json_schema(),
    "handler": return_borrowing_handler,
}

create_reservation = {
    "name": "create_reservation",
    "description": "Reserve a book that is currently out. Assigns the next RS number.",
    "inputSchema": CreateReservationInput.model_json_schema(),
    "handler": create_reservation_handler,
}

fulfill_reservation = {
    "name": "fulfill_reservation",
    "description": "Mark a pending reservation as received once the member claims the copy.",
    "inputSchema": ReservationActionInput.model_json_schema(),
    "handler": fulfill_reservation_handler,
}

cancel_reservation = {
    "name": "cancel_reservation",
    "description": "Cancel a pending reservation.",
    "inputSchema": ReservationActionInput.model_json_schema(),
    "handler": cancel_reservation_handler,
}

list_borrowings = {
    "name": "list_borrowings",
    "description": "List borrowings, oldest first. Pass member_id to see one member's loans.",
    "inputSchema": ListRecordsInput.model_json_schema(),
    "handler": list_borrowings_handler,
}

list_reservations = {
    "name": "list_reservations",
    "description": (
        "List reservations, oldest first. Pass member_id to see one member's holds."
    ),
    "inputSchema": ListRecordsInput.model_json_schema(),
    "handler": list_reservations_handler,
}
