from pomotrack.models.base import Base
from pomotrack.models.reflection import Reflection
from pomotrack.models.session import Session
from pomotrack.models.user import User

__all__ = [
    "Base",
    "Reflection",
    "Session",
    "User",
]
