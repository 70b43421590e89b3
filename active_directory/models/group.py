import logging
from typing import Any, Dict, List, Optional

from ldap3.utils.dn import escape_rdn

from identity.exceptions import DirectoryOperationError
from identity.identity_object import Group as IdentityGroup

from ..attributes.mutator import MutationResult
from .flags import GroupType, group_type_from_attribute, group_type_name, group_type_to_attribute
from .security_principal import SecurityPrincipal

logger = logging.getLogger(__name__)

DEFAULT_CREATE_PATH = "CN=Users"

# Attributes set by ``Group.create`` itself that callers may not override.
_RESERVED_CREATE_ATTRIBUTES = {"objectclass", "samaccountname", "grouptype"}


class Group(SecurityPrincipal, IdentityGroup):
    """An Active Directory group."""

    ATTRIBUTE_NAMES = SecurityPrincipal.ATTRIBUTE_NAMES + ["groupType"]

    @property
    def group_type(self) -> Optional[GroupType]:
        return group_type_from_attribute(self.get_integer("groupType"))

    @property
    def type(self) -> Optional[str]:
        """Group type name: DomainLocal, Global, Security or Universal."""
        return group_type_name(self.group_type)

    @property
    def member_dns(self) -> List[str]:
        return self.get_strings("member")

    @property
    def members(self) -> List[SecurityPrincipal]:
        """Direct members that are users or groups. Other objects are left out."""
        return self.client.membership.direct_members(self).items

    @property
    def all_user_members(self) -> List[SecurityPrincipal]:
        """Users in this group and in every group nested inside it, each listed once."""
        return self.client.membership.all_user_members(self).items

    @property
    def member_count(self) -> int:
        return len(self.member_dns)

    def add_members(self, members: List[Any]) -> MutationResult:
        return self.client.membership.add_members(self, members)

    def remove_members(self, members: List[Any]) -> MutationResult:
        return self.client.membership.remove_members(self, members)

    def clear_membership(self) -> MutationResult:
        return self.client.membership.clear_membership(self)

    @classmethod
    def create(
        cls,
        client,
        sam_account_name: str,
        ou_dn: str,
        group_type: GroupType,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional["Group"]:
        """
        Create a group in the given container.

        Returns:
            Group: The new group, or None when the directory refused it.

        Raises:
            ValueError: If the name is not a valid group name or the container does not exist.
        """
        if client is None:
            raise ValueError("An Active Directory client is required")
        if not sam_account_name or not sam_account_name.strip():
            raise ValueError("A group name is required")
        if not ou_dn or not ou_dn.strip():
            raise ValueError("The distinguished name of the container is required")
        if not client.is_group_name_valid(sam_account_name):
            raise ValueError(f"'{sam_account_name}' is not a valid group name")
        if client.get_entry_by_distinguished_name(ou_dn, ["distinguishedName"]) is None:
            raise ValueError(f"The container {ou_dn} does not exist")

        dn = f"CN={escape_rdn(sam_account_name)},{ou_dn}"
        attributes: Dict[str, Any] = {
            "objectClass": ["top", "group"],
            "sAMAccountName": sam_account_name,
            "groupType": group_type_to_attribute(group_type),
        }
        for name, value in (additional_attributes or {}).items():
            if name.lower() not in _RESERVED_CREATE_ATTRIBUTES:
                attributes[name] = value

        try:
            client.connection.add(dn, attributes)
        except DirectoryOperationError as e:
            logger.error(f"❌ Could not create group {dn}: {e}")
            return None

        guid = client.get_guid_by_distinguished_name(dn)
        if guid is None:
            logger.error(f"Group {dn} was created but could not be read back")
            return None
        logger.info(f"✅ Created group {dn}")
        return cls(client, guid=guid)
