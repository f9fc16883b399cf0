"""Identity directory backed by plain sets of known IDs."""

from collections.abc import Iterable

from .base import IdentityDirectory


class StaticIdentityDirectory(IdentityDirectory):
    """
    Directory of member and book IDs held in memory.

    Removing an ID models deletion: later operations referencing it fail
    reference validation.
    """

    def __init__(self, members: Iterable[str] = (), books: Iterable[str] = ()) -> None:
        self._members = set(members)
        self._books = set(books)

    def remove_member(self, member_id: str) -> None:
        self._members.discard(member_id)

    def member_exists(self, member_id: str) -> bool:
        return member_id in self._members

    def book_exists(self, book_id: str) -> bool:
        return book_id in self._books


class PermissiveIdentityDirectory(IdentityDirectory):
    """Accepts every ID; for deployments that validate members and books upstream."""

    def member_exists(self, member_id: str) -> bool:
        return bool(member_id)

    def book_exists(self, book_id: str) -> bool:
        return bool(book_id)
