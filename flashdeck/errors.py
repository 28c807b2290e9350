from typing import Optional


class FlashdeckError(Exception):
    """Base class for all scheduling engine errors."""


class NoDueCards(FlashdeckError):
    """Raised when a review session would start with an empty queue."""

    def __init__(self, deck: Optional[str] = None):
        self.deck = deck
        where = f"deck '{deck}'" if deck else "any deck"
        super().__init__(f"No cards due for review in {where}")


class InvalidStateTransition(FlashdeckError):
    """A session operation was called in a state that does not allow it."""

    def __init__(self, operation: str, state: str):
        self.operation = operation
        self.state = state
        super().__init__(f"Cannot {operation} while {state}")


class StoreError(FlashdeckError):
    """Progress could not be persisted."""

    def __init__(self, message: str, card_id: Optional[str] = None):
        self.card_id = card_id
        super().__init__(message)


class SyncError(FlashdeckError):
    """Cards could not be read from or written to the vault."""


class InvalidImportFormat(FlashdeckError):
    """A bulk import payload was rejected as a whole."""
