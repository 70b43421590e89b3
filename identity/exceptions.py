from typing import Optional


class IdentityError(Exception):
    """Base exception for directory and identity provider errors."""
    pass


class ObjectNotFoundError(IdentityError):
    """Raised when a requested directory object does not exist."""
    pass


class DirectoryOperationError(IdentityError):
    """
    Raised when a search or write against the directory backend fails.

    The original backend exception is kept as ``__cause__`` and the LDAP result
    code, when one was returned, is kept on ``result_code``.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        dn: Optional[str] = None,
        result_code: Optional[int] = None,
        description: Optional[str] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.dn = dn
        self.result_code = result_code
        self.description = description


class MutationRefreshError(DirectoryOperationError):
    """
    Raised when a write reached the backend but re-reading the object failed.

    The write may or may not have been applied, so the object state is
    uncertain and must be re-verified by the caller.
    """
    pass


class UserNotFoundError(ObjectNotFoundError):
    """Raised when a user named by a role operation does not exist."""
    pass


class RoleNotFoundError(ObjectNotFoundError):
    """Raised when a role (group) named by a role operation does not exist."""
    pass


class RoleProviderError(IdentityError):
    """Raised when a role operation could not be written to the directory."""
    pass
