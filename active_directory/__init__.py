from .facade.active_directory_client import ActiveDirectoryClient
from .models.group import Group
from .models.user import User

__all__ = ['ActiveDirectoryClient', 'Group', 'User']
