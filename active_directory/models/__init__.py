from .directory_object import ActiveDirectoryObject
from .security_principal import SecurityPrincipal
from .group import Group
from .user import User

__all__ = ['ActiveDirectoryObject', 'SecurityPrincipal', 'Group', 'User']
