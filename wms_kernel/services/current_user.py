"""
Current-user resolution for command handlers.

The command boundary never trusts a user id passed alongside the request
payload; it asks a CurrentUserAccessor, which the hosting application
binds to its authentication layer.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from wms_kernel.exceptions import UnauthenticatedError


class CurrentUserAccessor(ABC):
    """Resolves the acting user of the current request."""

    @property
    @abstractmethod
    def user_id(self) -> UUID | None:
        """The acting user's id, or None when the request is anonymous."""
        ...

    def require_user_id(self) -> UUID:
        """
        Return the acting user's id.

        Raises:
            UnauthenticatedError: no user is bound to the request.
        """
        user_id = self.user_id
        if user_id is None:
            raise UnauthenticatedError()
        return user_id


class StaticCurrentUser(CurrentUserAccessor):
    """Accessor bound to a fixed user id (workers, scripts, tests)."""

    def __init__(self, user_id: UUID | None):
        self._user_id = user_id

    @property
    def user_id(self) -> UUID | None:
        return self._user_id
