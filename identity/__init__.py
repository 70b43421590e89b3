from .exceptions import (
    DirectoryOperationError,
    IdentityError,
    MutationRefreshError,
    ObjectNotFoundError,
    RoleNotFoundError,
    RoleProviderError,
    UserNotFoundError,
)
from .identity_attribute import IdentityAttribute
from .identity_object import Group, IdentityObject, User
from .directory_system import DirectorySystemClient
