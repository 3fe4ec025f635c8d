"""In-memory filtering and ordering of catalog records.

The engine never decides which records are candidates: the caller resolves
the scope (public or owned) into a sequence and the predicates below are
applied to it unchanged. This keeps the public store view and the writer
dashboard on exactly the same filter semantics.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from .types import Book, BookFilter, OwnedBy, PublicScope, Scope

Predicate = Callable[[Book], bool]


def build_predicates(book_filter: BookFilter) -> list[Predicate]:
    predicates: list[Predicate] = []

    # blank search imposes nothing; otherwise the text is matched as given
    search = book_filter.search or ""
    if search.strip():
        needle = search.lower()
        predicates.append(
            lambda book: needle in book.name.lower() or needle in book.description.lower()
        )

    category = (book_filter.category or "").strip()
    if category:
        predicates.append(lambda book: book.category == category)

    min_price = book_filter.min_price
    if min_price is not None:
        predicates.append(lambda book: book.price >= min_price)

    max_price = book_filter.max_price
    if max_price is not None:
        predicates.append(lambda book: book.price <= max_price)

    return predicates


def order_books(books: Iterable[Book]) -> list[Book]:
    """Most recently created first; ties broken by ascending id."""

    ordered = sorted(books, key=lambda book: book.id)
    ordered.sort(key=lambda book: book.created_at, reverse=True)
    return ordered


def apply_filter(candidates: Iterable[Book], book_filter: BookFilter | None = None) -> list[Book]:
    predicates = build_predicates(book_filter or BookFilter())
    matches = [book for book in candidates if all(check(book) for check in predicates)]
    return order_books(matches)


class CatalogQueryEngine:
    """Resolve a scope into candidates and apply a :class:`BookFilter`."""

    def __init__(
        self,
        list_all: Callable[[], Sequence[Book]],
        list_by_owner: Callable[[str], Sequence[Book]],
    ) -> None:
        self._list_all = list_all
        self._list_by_owner = list_by_owner

    def candidates(self, scope: Scope) -> Sequence[Book]:
        if isinstance(scope, OwnedBy):
            return self._list_by_owner(scope.actor_id)
        if isinstance(scope, PublicScope):
            return self._list_all()
        raise TypeError(f"Unsupported scope: {scope!r}")

    def query(self, scope: Scope, book_filter: BookFilter | None = None) -> list[Book]:
        return apply_filter(self.candidates(scope), book_filter)


__all__ = ["CatalogQueryEngine", "apply_filter", "build_predicates", "order_books"]
