"""
Role Service

Treats Active Directory groups as application roles. A role is named by the
sAMAccountName of its group and a user by their sAMAccountName.

Membership questions follow nested groups, so a user who belongs to a group
inside a role's group is in that role.
"""

import logging
from typing import Iterable, List, Optional

from active_directory.facade.active_directory_client import GROUP_NAME_MAX_CHARS, ActiveDirectoryClient
from active_directory.models.group import Group
from active_directory.models.user import User
from identity.exceptions import RoleNotFoundError, RoleProviderError, UserNotFoundError

logger = logging.getLogger(__name__)

# Group type used for roles created through this service
ROLE_GROUP_TYPE = "Security"


def _require_name(value: Optional[str], kind: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"A {kind} name is required")
    return value.strip()


def _require_names(values: Optional[Iterable[str]], kind: str) -> List[str]:
    if values is None:
        raise ValueError(f"A list of {kind} names is required")
    return [_require_name(value, kind) for value in values]


class RoleService:
    """
    Role lookups and role membership changes over an Active Directory client.

    Lookups of a role or user that does not exist raise ``RoleNotFoundError``
    or ``UserNotFoundError``. Writes the directory refused raise
    ``RoleProviderError`` with the directory's error as the cause.
    """

    def __init__(self, client: ActiveDirectoryClient):
        if client is None:
            raise ValueError("An Active Directory client is required")
        self.client = client

    @property
    def max_role_name_length(self) -> int:
        return GROUP_NAME_MAX_CHARS

    def _get_role(self, role_name: str) -> Group:
        group = self.client.get_group_by_sam_account_name(role_name)
        if group is None:
            raise RoleNotFoundError(f"The role '{role_name}' does not exist")
        return group

    def _get_user(self, username: str) -> User:
        user = self.client.get_user_by_sam_account_name(username)
        if user is None:
            raise UserNotFoundError(f"The user '{username}' does not exist")
        return user

    def role_exists(self, role_name: str) -> bool:
        role_name = _require_name(role_name, "role")
        return self.client.get_group_by_sam_account_name(role_name) is not None

    def get_all_roles(self) -> List[str]:
        """Names of every group under the client's search base."""
        return sorted(
            group.sam_account_name for group in self.client.get_all_groups() if group.sam_account_name
        )

    def get_roles_for_user(self, username: str) -> List[str]:
        """
        Names of the groups the user is a direct member of.

        Groups that can no longer be read are left out.
        """
        user = self._get_user(_require_name(username, "user"))
        roles = []
        for group in user.groups:
            if isinstance(group, Group) and group.sam_account_name:
                roles.append(group.sam_account_name)
        return sorted(roles)

    def get_users_in_role(self, role_name: str) -> List[str]:
        """Names of the users in the role, including users of nested groups."""
        group = self._get_role(_require_name(role_name, "role"))
        result = self.client.membership.all_user_members(group)
        if not result.complete:
            logger.warning(
                f"⚠️  Membership of role '{role_name}' is partial: {len(result.errors)} group(s) unreadable"
            )
        return sorted(user.sam_account_name for user in result.items if user.sam_account_name)

    def is_user_in_role(self, username: str, role_name: str) -> bool:
        user = self._get_user(_require_name(username, "user"))
        group = self._get_role(_require_name(role_name, "role"))
        return self.client.membership.is_member(user, group, recursive=True)

    def find_users_in_role(self, role_name: str, username_to_match: str) -> List[str]:
        """Names of the users in the role that contain ``username_to_match``, in alphabetical order."""
        match = _require_name(username_to_match, "user").lower()
        return [
            username
            for username in self.get_users_in_role(role_name)
            if match in username.lower()
        ]

    def add_users_to_roles(self, usernames: Iterable[str], role_names: Iterable[str]):
        """
        Add every user to every role.

        All names are checked before any write. Users already in a role are
        left as they are.
        """
        usernames = _require_names(usernames, "user")
        role_names = _require_names(role_names, "role")
        groups = [self._get_role(role_name) for role_name in role_names]
        users = [self._get_user(username) for username in usernames]

        for group in groups:
            result = group.add_members(users)
            if not result:
                raise RoleProviderError(
                    f"Unable to add {', '.join(usernames)} to role '{group.sam_account_name}'"
                ) from result.error
            logger.info(f"✅ Added {len(users)} user(s) to role '{group.sam_account_name}'")

    def remove_users_from_roles(self, usernames: Iterable[str], role_names: Iterable[str]):
        usernames = _require_names(usernames, "user")
        role_names = _require_names(role_names, "role")
        groups = [self._get_role(role_name) for role_name in role_names]
        users = [self._get_user(username) for username in usernames]

        for group in groups:
            result = group.remove_members(users)
            if not result:
                raise RoleProviderError(
                    f"Unable to remove {', '.join(usernames)} from role '{group.sam_account_name}'"
                ) from result.error
            logger.info(f"Removed {len(users)} user(s) from role '{group.sam_account_name}'")

    def create_role(self, role_name: str, parent_unique_id: Optional[str] = None) -> Group:
        """
        Create a security group for the role.

        Raises:
            ValueError: If the name is blank, contains a comma or is not a valid group name.
            RoleProviderError: If the role already exists or could not be created.
        """
        role_name = _require_name(role_name, "role")
        if "," in role_name:
            raise ValueError("A role name may not contain a comma")
        if not self.client.is_group_name_valid(role_name):
            raise ValueError(f"'{role_name}' is not a valid role name")
        if self.role_exists(role_name):
            raise RoleProviderError(f"The role '{role_name}' already exists")

        group = self.client.create_group(role_name, ROLE_GROUP_TYPE, parent_unique_id)
        if group is None:
            raise RoleProviderError(f"Unable to create role '{role_name}'")
        return group

    def delete_role(self, role_name: str, throw_on_populated_role: bool = True) -> bool:
        """
        Delete the role's group.

        Raises:
            RoleNotFoundError: If the role does not exist.
            RoleProviderError: If the role still has members and
                ``throw_on_populated_role`` is set, or the delete failed.
        """
        group = self._get_role(_require_name(role_name, "role"))
        if throw_on_populated_role and group.member_count > 0:
            raise RoleProviderError(f"The role '{role_name}' still has members")
        if not self.client.delete(group.guid):
            raise RoleProviderError(f"Unable to delete role '{role_name}'")
        logger.info(f"Deleted role '{role_name}'")
        return True
