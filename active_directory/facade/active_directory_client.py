import datetime
import logging
import uuid
from typing import Any, Dict, List, Optional, Union

from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from identity.directory_system import DirectorySystemClient
from identity.exceptions import IdentityError, ObjectNotFoundError

from ..adapters.ldap_adapter import LDAPAdapter
from ..adapters.site_locator import get_site_domain_controllers
from ..attributes import codec
from ..attributes.mutator import AttributeMutator
from ..attributes.ranged_reader import DEFAULT_RANGE_PAGE_SIZE, RangedAttributeReader
from ..attributes.snapshot import AttributeSnapshot, DirectoryEntry
from ..membership import DEFAULT_MAX_DEPTH, GroupMembershipEngine
from ..models import group as group_model
from ..models import user as user_model
from ..models.flags import parse_group_type
from ..models.group import Group
from ..models.user import USER_FILTER, User
from ..resolver import SecurityPrincipalResolver

logger = logging.getLogger(__name__)

GROUP_FILTER = "(objectCategory=group)"
GROUP_NAME_MAX_CHARS = 63
GROUP_TYPES = ["Universal", "DomainLocal", "Global", "Security"]

GuidLike = Union[str, uuid.UUID, bytes]


class ActiveDirectoryClient(DirectorySystemClient):
    """
    Facade over one Active Directory session.

    The client owns the connection and the shared helpers (ranged reader,
    mutator, resolver and membership engine) that every ``Group`` and ``User``
    it hands out works through. Lookups return None or an empty list when
    nothing matches or the directory could not be read; the cause is logged.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, connection=None):
        """
        Args:
            config: ``LDAPAdapter`` settings, plus optional ``domain`` and
                ``site`` for locating site domain controllers,
                ``range_page_size`` and ``max_group_depth``.
            connection: An already configured directory connection. When
                given, no adapter is built from ``config``.
        """
        config = dict(config or {})
        if connection is None:
            if not config:
                raise ValueError("Either a configuration or a connection is required")
            domain = config.get("domain")
            site = config.get("site")
            if domain and site and not config.get("server"):
                controllers = get_site_domain_controllers(domain, site)
                if controllers:
                    config["server"] = controllers[0]
                    config["servers"] = controllers
            if not config.get("server") and domain:
                config["server"] = domain
            connection = LDAPAdapter(config)

        self.connection = connection
        self.ranged_reader = RangedAttributeReader(
            connection, config.get("range_page_size", DEFAULT_RANGE_PAGE_SIZE)
        )
        self.mutator = AttributeMutator(connection)
        self.resolver = SecurityPrincipalResolver(self)
        self.membership = GroupMembershipEngine(
            self, config.get("max_group_depth", DEFAULT_MAX_DEPTH)
        )

        self._distinguished_name: Optional[str] = None
        self._search_base: Optional[str] = (
            config.get("search_base") or getattr(connection, "search_base", None) or None
        )

    def close(self):
        self.connection.close()

    def __enter__(self) -> "ActiveDirectoryClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    # ----- Domain information -----

    @property
    def distinguished_name(self) -> Optional[str]:
        """Distinguished name of the domain, read once from the root DSE."""
        if self._distinguished_name is None:
            try:
                self._distinguished_name = self.connection.get_root_dse_attribute(
                    "defaultNamingContext"
                )
            except IdentityError as e:
                logger.error(f"Could not read the domain's naming context: {e}")
        return self._distinguished_name

    def _domain_string(self, attribute_name: str) -> Optional[str]:
        domain_dn = self.distinguished_name
        if not domain_dn:
            return None
        entry = self.get_entry_by_distinguished_name(domain_dn, [attribute_name])
        if entry is None:
            return None
        return codec.get_string(attribute_name, AttributeSnapshot.from_entry(entry))

    @property
    def name(self) -> Optional[str]:
        """DNS name of the domain, e.g. ``example.edu``."""
        canonical_name = self._domain_string("canonicalName")
        if not canonical_name or not canonical_name.strip():
            return None
        return canonical_name.replace("/", "")

    @property
    def nt_name(self) -> Optional[str]:
        """NetBIOS style name of the domain, e.g. ``EXAMPLE``."""
        principal_name = self._domain_string("msDS-PrincipalName")
        if not principal_name or not principal_name.strip():
            return None
        return principal_name.replace("\\", "")

    @property
    def administrators_group_dn(self) -> Optional[str]:
        return self.append_distinguished_name("CN=Administrators,CN=Builtin")

    @property
    def domain_admins_group_dn(self) -> Optional[str]:
        return self.append_distinguished_name("CN=Domain Admins,CN=Users")

    @property
    def domain_users_group_dn(self) -> Optional[str]:
        return self.append_distinguished_name("CN=Domain Users,CN=Users")

    @property
    def enterprise_admins_group_dn(self) -> Optional[str]:
        return self.append_distinguished_name("CN=Enterprise Admins,CN=Users")

    def append_distinguished_name(self, path_to_root: Optional[str]) -> Optional[str]:
        """Append the domain's DN to a relative path such as ``OU=Staff``."""
        if path_to_root is None:
            return None
        if not path_to_root.strip():
            return self.distinguished_name
        return f"{path_to_root},{self.distinguished_name}"

    @property
    def search_base(self) -> Optional[str]:
        return self._search_base or self.distinguished_name

    def set_search_base(self, distinguished_name: str) -> bool:
        """Restrict every following search to the subtree under ``distinguished_name``."""
        if not distinguished_name or not distinguished_name.strip():
            return False
        self._search_base = distinguished_name
        return True

    @staticmethod
    def get_site_domain_controllers(domain_name: str, site_name: str) -> List[str]:
        return get_site_domain_controllers(domain_name, site_name)

    # ----- Entry lookups -----

    def fetch_entries(
        self, search_filter: str, attributes: Optional[List[str]] = None
    ) -> List[DirectoryEntry]:
        """Search under the search base. Raises on backend failures."""
        return self.connection.search(
            search_filter, attributes=attributes, search_base=self.search_base
        )

    def fetch_entry_by_guid(
        self, guid: GuidLike, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryEntry]:
        """
        Load the entry with this objectGUID.

        Returns:
            DirectoryEntry: The entry, or None when no object has the GUID.

        Raises:
            DirectoryOperationError: If the search itself fails.
            ValueError: If the GUID is malformed.
        """
        entries = self.fetch_entries(codec.guid_filter(guid), attributes)
        return entries[0] if entries else None

    def fetch_entry_by_distinguished_name(
        self, dn: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryEntry]:
        """Load the entry at ``dn``. Raises on backend failures other than a missing entry."""
        if not dn or not dn.strip():
            return None
        entries = self.connection.search(
            "(objectClass=*)", attributes=attributes, search_base=dn, scope="base"
        )
        return entries[0] if entries else None

    def get_entries(
        self, search_filter: str, attributes: Optional[List[str]] = None
    ) -> List[DirectoryEntry]:
        try:
            return self.fetch_entries(search_filter, attributes)
        except IdentityError as e:
            logger.error(f"Search for {search_filter} failed: {e}")
            return []

    def get_entry(
        self, search_filter: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryEntry]:
        entries = self.get_entries(search_filter, attributes)
        return entries[0] if entries else None

    def get_entry_by_guid(
        self, guid: GuidLike, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryEntry]:
        return self.get_entry(codec.guid_filter(guid), attributes)

    def get_entry_by_distinguished_name(
        self, dn: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryEntry]:
        try:
            return self.fetch_entry_by_distinguished_name(dn, attributes)
        except IdentityError as e:
            logger.error(f"Lookup of {dn} failed: {e}")
            return None

    def get_entries_by_attribute(
        self, attribute_name: str, attribute_value: str, attributes: Optional[List[str]] = None
    ) -> List[DirectoryEntry]:
        """
        Find entries whose attribute equals the value.

        A trailing ``*`` in the value is kept as a prefix wildcard.
        """
        if not attribute_name or attribute_value is None:
            return []
        prefix = attribute_value.endswith("*")
        value = attribute_value[:-1] if prefix else attribute_value
        return self.get_entries(codec.attribute_filter(attribute_name, value, prefix), attributes)

    def get_entry_by_attribute(
        self, attribute_name: str, attribute_value: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryEntry]:
        entries = self.get_entries_by_attribute(attribute_name, attribute_value, attributes)
        return entries[0] if entries else None

    def get_entry_by_common_name(self, cn: str, attributes: Optional[List[str]] = None):
        return self.get_entry_by_attribute("cn", cn, attributes)

    def get_entry_by_sam_account_name(self, sam_account_name: str, attributes: Optional[List[str]] = None):
        return self.get_entry_by_attribute("sAMAccountName", sam_account_name, attributes)

    def get_entries_by_sam_account_name(self, sam_account_name: str, attributes: Optional[List[str]] = None):
        return self.get_entries_by_attribute("sAMAccountName", sam_account_name, attributes)

    def get_entry_by_email_address(
        self, email_address: str, attributes: Optional[List[str]] = None
    ) -> Optional[DirectoryEntry]:
        """
        Find the user with this address.

        Primary proxy addresses are tried first, then secondary ones, then ``mail``.
        """
        if not email_address or not email_address.strip():
            return None
        escaped = escape_filter_chars(email_address.strip())
        person = "(objectCategory=person)(objectClass=user)"
        filters = [
            f"(&(proxyAddresses=SMTP:{escaped}){person})",
            f"(&(proxyAddresses=smtp:{escaped}){person})",
            f"(&(mail={escaped}){person})",
        ]
        for search_filter in filters:
            entry = self.get_entry(search_filter, attributes)
            if entry is not None:
                return entry
        return None

    # ----- GUID lookups -----

    @staticmethod
    def get_guid(entry: Optional[DirectoryEntry]) -> Optional[uuid.UUID]:
        if entry is None:
            return None
        return codec.guid_from_bytes(codec.get_bytes("objectGUID", AttributeSnapshot.from_entry(entry)))

    def get_guid_by_attribute(self, attribute_name: str, attribute_value: str) -> Optional[uuid.UUID]:
        return self.get_guid(self.get_entry_by_attribute(attribute_name, attribute_value, ["objectGUID"]))

    def get_guid_by_employee_number(self, employee_number: str) -> Optional[uuid.UUID]:
        return self.get_guid_by_attribute("employeeNumber", employee_number)

    def get_guid_by_sam_account_name(self, sam_account_name: str) -> Optional[uuid.UUID]:
        return self.get_guid_by_attribute("sAMAccountName", sam_account_name)

    def get_guid_by_common_name(self, cn: str) -> Optional[uuid.UUID]:
        return self.get_guid_by_attribute("cn", cn)

    def get_guid_by_distinguished_name(self, dn: str) -> Optional[uuid.UUID]:
        return self.get_guid(self.get_entry_by_distinguished_name(dn, ["objectGUID"]))

    # ----- Principals -----

    def get_principal(self, guid: GuidLike):
        """The group or user with this GUID, or None."""
        return self.resolver.resolve_guid(guid)

    def get_group(self, guid: GuidLike) -> Optional[Group]:
        principal = self.get_principal(guid)
        return principal if isinstance(principal, Group) else None

    def get_user(self, guid: GuidLike) -> Optional[User]:
        principal = self.get_principal(guid)
        return principal if isinstance(principal, User) else None

    def get_user_by_sam_account_name(self, sam_account_name: str) -> Optional[User]:
        entry = self.get_entry(
            f"(&{USER_FILTER}{codec.attribute_filter('sAMAccountName', sam_account_name)})",
            User.ATTRIBUTE_NAMES,
        )
        principal = self.resolver.resolve_entry(entry)
        return principal if isinstance(principal, User) else None

    def get_group_by_sam_account_name(self, sam_account_name: str) -> Optional[Group]:
        entry = self.get_entry(
            f"(&{GROUP_FILTER}{codec.attribute_filter('sAMAccountName', sam_account_name)})",
            Group.ATTRIBUTE_NAMES,
        )
        principal = self.resolver.resolve_entry(entry)
        return principal if isinstance(principal, Group) else None

    def get_all_users(self) -> List[User]:
        return [User(self, entry=entry) for entry in self.get_entries(USER_FILTER, User.ATTRIBUTE_NAMES)]

    def get_all_groups(self) -> List[Group]:
        return [Group(self, entry=entry) for entry in self.get_entries(GROUP_FILTER, Group.ATTRIBUTE_NAMES)]

    def get_modified_users(
        self, start_date: datetime.datetime, end_date: datetime.datetime
    ) -> List[User]:
        """Users whose ``whenChanged`` falls between the two dates."""
        if start_date is None or end_date is None:
            raise ValueError("Both a start and an end date are required")
        start = self._generalized_time(start_date)
        end = self._generalized_time(end_date)
        search_filter = (
            "(&(objectCategory=person)(objectClass=user)"
            f"(whenChanged>={start})(whenChanged<={end}))"
        )
        return [User(self, entry=entry) for entry in self.get_entries(search_filter, User.ATTRIBUTE_NAMES)]

    @staticmethod
    def _generalized_time(value: datetime.datetime) -> str:
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc)
        return value.strftime("%Y%m%d%H%M%S.0Z")

    def _principals_by_attribute(
        self, name: str, value: str, returned_attributes: Optional[List[str]] = None
    ) -> List[Any]:
        if not name or not name.strip() or value is None:
            raise ValueError("An attribute name and value are required")
        attribute_names = self.resolver.principal_attribute_names() + list(returned_attributes or [])
        principals = []
        for entry in self.get_entries_by_attribute(name, f"{value}*", attribute_names):
            principal = self.resolver.resolve_entry(entry)
            if principal is not None:
                principals.append(principal)
        return principals

    def get_users_by_attribute(
        self, name: str, value: str, returned_attributes: Optional[List[str]] = None
    ) -> List[User]:
        """Users whose attribute starts with ``value``."""
        return [
            principal
            for principal in self._principals_by_attribute(name, value, returned_attributes)
            if isinstance(principal, User)
        ]

    def get_groups_by_attribute(
        self, name: str, value: str, returned_attributes: Optional[List[str]] = None
    ) -> List[Group]:
        """Groups whose attribute starts with ``value``."""
        return [
            principal
            for principal in self._principals_by_attribute(name, value, returned_attributes)
            if isinstance(principal, Group)
        ]

    def get_group_types(self) -> List[str]:
        return list(GROUP_TYPES)

    @staticmethod
    def is_group_name_valid(name: Optional[str]) -> bool:
        """
        A group name is valid when it is at most 63 characters, does not start
        with a space or a period, and contains at least one letter.
        """
        if not name:
            return False
        if len(name) > GROUP_NAME_MAX_CHARS:
            return False
        if name[0] in (" ", "."):
            return False
        return any(character.isalpha() for character in name)

    # ----- Creation, deletion and moves -----

    def _container_dn(self, default_path: str, parent_unique_id: Optional[str]) -> Optional[str]:
        ou_dn = self.append_distinguished_name(default_path)
        if parent_unique_id and parent_unique_id.strip():
            try:
                entry = self.fetch_entry_by_guid(parent_unique_id, ["distinguishedName"])
            except (IdentityError, ValueError) as e:
                logger.warning(f"⚠️  Parent {parent_unique_id} unusable, using {ou_dn}: {e}")
                return ou_dn
            if entry is not None:
                return entry.dn
            logger.warning(f"⚠️  Parent {parent_unique_id} not found, using {ou_dn}")
        return ou_dn

    def create_group(
        self,
        name: str,
        group_type: Optional[str] = None,
        parent_unique_id: Optional[str] = None,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[Group]:
        """
        Create a group.

        Args:
            name: sAMAccountName and common name of the group.
            group_type: One of ``get_group_types()``.
            parent_unique_id: GUID of the container. Defaults to ``CN=Users``.
            additional_attributes: Extra attribute values for the new entry.

        Returns:
            Group: The created group, or None when the directory refused it.

        Raises:
            ValueError: If the name or type is missing or invalid.
        """
        if not name or not name.strip():
            raise ValueError("A group name is required")
        if not group_type or not group_type.strip():
            raise ValueError("A group type is required")
        flags = parse_group_type(group_type)
        ou_dn = self._container_dn(group_model.DEFAULT_CREATE_PATH, parent_unique_id)
        return Group.create(self, name, ou_dn, flags, additional_attributes)

    def create_user(
        self,
        login: str,
        parent_unique_id: Optional[str] = None,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[User]:
        if not login or not login.strip():
            raise ValueError("A login is required")
        ou_dn = self._container_dn(user_model.DEFAULT_CREATE_PATH, parent_unique_id)
        return User.create(self, login, ou_dn, additional_attributes)

    def delete(self, guid: GuidLike) -> bool:
        """Delete the object with this GUID."""
        entry = self.get_entry_by_guid(guid, ["distinguishedName"])
        if entry is None:
            logger.warning(f"Nothing to delete: no object with GUID {guid}")
            return False
        try:
            return self.connection.delete(entry.dn)
        except IdentityError as e:
            logger.error(f"❌ Could not delete {entry.dn}: {e}")
            return False

    def delete_group(self, unique_id: str) -> bool:
        return self.delete(codec.parse_guid(unique_id))

    def delete_user(self, unique_id: str) -> bool:
        return self.delete(codec.parse_guid(unique_id))

    def move_rename_object(
        self,
        object_guid: GuidLike,
        new_parent_guid: Optional[GuidLike] = None,
        new_common_name: Optional[str] = None,
    ) -> bool:
        """
        Move an object to a new container and/or rename it.

        The object stays in its container when no parent is given and keeps
        its common name when no new name is given.
        """
        try:
            entry = self.fetch_entry_by_guid(object_guid, ["distinguishedName", "cn"])
            if entry is None:
                raise ObjectNotFoundError(f"No object with GUID {object_guid}")

            if new_parent_guid:
                parent = self.fetch_entry_by_guid(new_parent_guid, ["distinguishedName"])
                if parent is None:
                    raise ObjectNotFoundError(f"No container with GUID {new_parent_guid}")
                parent_dn = parent.dn
            else:
                parent_dn = codec.parent_dn(entry.dn)

            if new_common_name and new_common_name.strip():
                common_name = new_common_name.strip()
            else:
                common_name = codec.get_string("cn", AttributeSnapshot.from_entry(entry)) or codec.first_rdn_value(entry.dn)

            return self.connection.rename(entry.dn, parent_dn, f"CN={escape_rdn(common_name)}")
        except IdentityError as e:
            logger.error(f"❌ Could not move or rename {object_guid}: {e}")
            return False
