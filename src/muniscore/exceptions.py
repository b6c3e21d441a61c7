from typing import Optional


class MuniscoreError(Exception):
    """Base exception for Muniscore errors."""
    pass

class ConfigError(MuniscoreError):
    """Configuration loading specific errors."""
    pass

class DataAccessError(MuniscoreError):
    """An underlying store query failed."""
    pass

class InvalidInputError(MuniscoreError):
    """Caller supplied a value outside the accepted domain (period label, rating, filter)."""
    pass

class NotFoundError(MuniscoreError):
    """A referenced unit, task, division or delivery does not exist."""

    def __init__(self, entity: str, entity_id: Optional[int]):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id {entity_id} not found")
