"""
Human-readable sequential business identifiers (SC-000001, INV-000042, ...).

Sequence numbers come from an atomic per-collection counter in the document
store, so concurrent creates never draw the same number. Uniqueness is
still enforced by the store's unique index on the identifier field; a
collision (for example with a caller-supplied identifier that used up a
number) is resolved by drawing the next number.
"""

import logging
from typing import Callable, TypeVar

from clients.document_store import DocumentStore, DuplicateKeyError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WIDTH = 6
MAX_ATTEMPTS = 5


def next_id(count: int, prefix: str, width: int = DEFAULT_WIDTH) -> str:
    """
    Format the identifier that follows `count` existing records.

    next_id(0, "SC") == "SC-000001"
    """
    return f"{prefix}-{count + 1:0{width}d}"


def format_id(sequence: int, prefix: str, width: int = DEFAULT_WIDTH) -> str:
    """Format a 1-based sequence number."""
    return next_id(sequence - 1, prefix, width)


class IdentifierGenerator:
    """Draws identifiers from the store's per-collection counters."""

    def __init__(self, store: DocumentStore, width: int = DEFAULT_WIDTH):
        self.store = store
        self.width = width

    def next(self, collection: str, prefix: str) -> str:
        return format_id(self.store.next_sequence(collection), prefix, self.width)

    def create_with_identifier(
        self,
        collection: str,
        prefix: str,
        field: str,
        supplied: str | None,
        insert: Callable[[str], T],
    ) -> T:
        """
        Run insert(identifier), generating the identifier unless supplied.

        Generated identifiers are retried on a duplicate; supplied ones are
        used unchanged and a duplicate propagates.

        Raises:
            DuplicateKeyError: If a supplied identifier is taken, or no free
                number was found within MAX_ATTEMPTS
        """
        if supplied:
            return insert(supplied)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            identifier = self.next(collection, prefix)
            try:
                return insert(identifier)
            except DuplicateKeyError as e:
                if e.field != field or attempt == MAX_ATTEMPTS:
                    raise
                logger.warning(
                    f"{field} {identifier} already taken in {collection}, drawing next"
                )

        raise DuplicateKeyError(collection, field)
