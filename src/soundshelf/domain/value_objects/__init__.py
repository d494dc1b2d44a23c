"""Value objects for entity identifiers."""

import uuid
from dataclasses import dataclass

from soundshelf.domain.exceptions import ValidationException


# Hey future me, IDs are wrapped so a user id can never be passed where a track id is
# expected. from_string() is THE place where malformed path parameters die - it raises
# ValidationException (400 "Invalid ID") instead of letting a bad string reach SQL.
@dataclass(frozen=True)
class EntityId:
    """Base class for UUID-backed identifiers."""

    value: uuid.UUID

    entity_name = "entity"

    @classmethod
    def generate(cls) -> "EntityId":
        return cls(uuid.uuid4())

    @classmethod
    def from_string(cls, value: str) -> "EntityId":
        """Parse an identifier, raising ValidationException for malformed input."""
        try:
            return cls(uuid.UUID(str(value)))
        except (ValueError, AttributeError, TypeError) as e:
            raise ValidationException(
                f"The provided {cls.entity_name} ID is not valid",
                error=f"Invalid {cls.entity_name} ID",
            ) from e

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class UserId(EntityId):
    """Identifier of a user account."""

    entity_name = "user"


@dataclass(frozen=True)
class TrackId(EntityId):
    """Identifier of a catalog track."""

    entity_name = "song"


__all__ = ["EntityId", "TrackId", "UserId"]
