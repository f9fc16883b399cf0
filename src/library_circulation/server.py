"""Library Circulation MCP Server.

Exposes the lifecycle engine as MCP tools over stdio. The server owns
process-level concerns only: logging setup, tool registration and the
transport loop. Business rules stay in ``library_circulation.engine``.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .config import CirculationSettings, get_settings
from .tools.circulation import (
    cancel_reservation,
    cancel_reservation_handler,
    create_borrowing,
    create_borrowing_handler,
    create_reservation,
    create_reservation_handler,
    fulfill_reservation,
    fulfill_reservation_handler,
    list_borrowings,
    list_borrowings_handler,
    list_reservations,
    list_reservations_handler,
    return_borrowing,
    return_borrowing_handler,
)

logger = logging.getLogger(__name__)


def configure_logging(settings: CirculationSettings) -> None:
    """Send log records to stderr, keeping stdout free for the stdio transport."""
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    if not settings.debug:
        logging.getLogger("fastmcp").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def create_server(settings: CirculationSettings | None = None) -> FastMCP:
    """Build the FastMCP server with every circulation tool registered."""
    settings = settings or get_settings()

    mcp = FastMCP(
        name=settings.server_name,
        version=settings.server_version,
        instructions=(
            "Library circulation desk. Check books out and back in, compute late fees, "
            "manage reservations for books that are currently out, "
            "and list a member's loans and holds."
        ),
    )

    @mcp.tool(name=create_borrowing["name"], description=create_borrowing["description"])
    async def create_borrowing_tool(
        member_id: str,
        book_id: str,
        borrow_date: str | None = None,
        loan_period_days: int | None = None,
    ) -> dict[str, Any]:
        return await create_borrowing_handler(
            _present(
                member_id=member_id,
                book_id=book_id,
                borrow_date=borrow_date,
                loan_period_days=loan_period_days,
            )
        )

    @mcp.tool(name=return_borrowing["name"], description=return_borrowing["description"])
    async def return_borrowing_tool(
        borrowing_id: str,
        return_date: str | None = None,
        fee_per_late_day: int | None = None,
    ) -> dict[str, Any]:
        return await return_borrowing_handler(
            _present(
                borrowing_id=borrowing_id,
                return_date=return_date,
                fee_per_late_day=fee_per_late_day,
            )
        )

    @mcp.tool(name=create_reservation["name"], description=create_reservation["description"])
    async def create_reservation_tool(
        member_id: str,
        book_id: str,
        reservation_date: str | None = None,
    ) -> dict[str, Any]:
        return await create_reservation_handler(
            _present(member_id=member_id, book_id=book_id, reservation_date=reservation_date)
        )

    @mcp.tool(name=fulfill_reservation["name"], description=fulfill_reservation["description"])
    async def fulfill_reservation_tool(reservation_id: str) -> dict[str, Any]:
        return await fulfill_reservation_handler({"reservation_id": reservation_id})

    @mcp.tool(name=cancel_reservation["name"], description=cancel_reservation["description"])
    async def cancel_reservation_tool(reservation_id: str) -> dict[str, Any]:
        return await cancel_reservation_handler({"reservation_id": reservation_id})

    @mcp.tool(name=list_borrowings["name"], description=list_borrowings["description"])
    async def list_borrowings_tool(member_id: str | None = None) -> dict[str, Any]:
        return await list_borrowings_handler(_present(member_id=member_id))

    @mcp.tool(name=list_reservations["name"], description=list_reservations["description"])
    async def list_reservations_tool(member_id: str | None = None) -> dict[str, Any]:
        return await list_reservations_handler(_present(member_id=member_id))

    logger.info("Registered 7 circulation tools on %s", settings.server_name)

    return mcp


def _present(**arguments: Any) -> dict[str, Any]:
    """Drop omitted optional arguments so input defaults apply."""
    return {k: v for k, v in arguments.items() if v is not None}


def main() -> None:
    """Entry point for ``library-circulation``: serve the tools over stdio."""
    settings = get_settings()
    configure_logging(settings)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, shutting down", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Starting %s v%s on stdio", settings.server_name, settings.server_version)
    try:
        create_server(settings).run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Fatal error in circulation server")
        sys.exit(1)


if __name__ == "__main__":
    main()
