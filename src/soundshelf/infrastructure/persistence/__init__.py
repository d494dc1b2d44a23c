"""Infrastructure persistence layer."""

from .database import Database
from .models import Base, TrackModel, UserModel
from .repositories import TrackRepository, UserRepository

__all__ = [
    "Base",
    "Database",
    "TrackModel",
    "TrackRepository",
    "UserModel",
    "UserRepository",
]
