import datetime
import logging
from typing import Any, Dict, List, Optional

from ldap3.utils.dn import escape_rdn

from identity.exceptions import DirectoryOperationError
from identity.identity_object import User as IdentityUser

from ..attributes import codec
from ..attributes.mutator import MutationResult
from ..attributes.snapshot import AttributeSnapshot
from .directory_object import string_attribute
from .flags import UserAccountControl, user_account_control_names
from .security_principal import SecurityPrincipal

logger = logging.getLogger(__name__)

DEFAULT_CREATE_PATH = "CN=Users"

# Filter matching every user account (computers are users too, but not persons).
USER_FILTER = "(&(objectCategory=person)(objectClass=user))"

_RESERVED_CREATE_ATTRIBUTES = {"objectclass", "samaccountname"}


class User(SecurityPrincipal, IdentityUser):
    """An Active Directory user account."""

    ATTRIBUTE_NAMES = SecurityPrincipal.ATTRIBUTE_NAMES + [
        "badPwdCount",
        "badPasswordTime",
        "c",
        "company",
        "department",
        "division",
        "employeeID",
        "employeeNumber",
        "employeeType",
        "givenName",
        "homeDirectory",
        "homeDrive",
        "l",
        "manager",
        "middleName",
        "mobile",
        "msDS-User-Account-Control-Computed",
        "msIIS-FTPDir",
        "msIIS-FTPRoot",
        "postalAddress",
        "postalCode",
        "pwdLastSet",
        "scriptPath",
        "sn",
        "st",
        "streetAddress",
        "telephoneNumber",
        "title",
        "userAccountControl",
        "wWWHomePage",
    ]

    city = string_attribute("l")
    company = string_attribute("company")
    country_code = string_attribute("c")
    department = string_attribute("department")
    division = string_attribute("division")
    employee_id = string_attribute("employeeID")
    employee_number = string_attribute("employeeNumber")
    employee_type = string_attribute("employeeType")
    first_name = string_attribute("givenName")
    last_name = string_attribute("sn")
    middle_name = string_attribute("middleName")
    ftp_directory = string_attribute("msIIS-FTPDir")
    ftp_root = string_attribute("msIIS-FTPRoot")
    home_directory = string_attribute("homeDirectory")
    home_drive = string_attribute("homeDrive")
    home_page = string_attribute("wWWHomePage")
    login_script = string_attribute("scriptPath")
    mobile_phone = string_attribute("mobile")
    phone_number = string_attribute("telephoneNumber")
    postal_address = string_attribute("postalAddress")
    postal_code = string_attribute("postalCode")
    state = string_attribute("st")
    street_address = string_attribute("streetAddress")
    title = string_attribute("title")
    manager = string_attribute("manager", "Distinguished name of the user's manager.")

    @property
    def login(self) -> Optional[str]:
        return self.sam_account_name

    # ----- Manager -----

    def _manager_entry(self, attributes: List[str]):
        manager_dn = self.manager
        if not manager_dn:
            return None
        return self.client.get_entry_by_distinguished_name(manager_dn, attributes)

    @property
    def manager_id(self) -> Optional[str]:
        entry = self._manager_entry(["objectGUID"])
        if entry is None:
            return None
        snapshot = AttributeSnapshot.from_entry(entry)
        guid = codec.guid_from_bytes(codec.get_bytes("objectGUID", snapshot))
        return str(guid) if guid else None

    @property
    def manager_name(self) -> Optional[str]:
        entry = self._manager_entry(["displayName"])
        if entry is None:
            return None
        return codec.get_string("displayName", AttributeSnapshot.from_entry(entry))

    # ----- Account state -----

    @property
    def user_account_control(self) -> Optional[int]:
        return self.get_integer("userAccountControl")

    @property
    def user_account_control_flags(self) -> List[str]:
        return user_account_control_names(self.user_account_control)

    def user_account_control_contains(self, flag: UserAccountControl) -> bool:
        value = self.user_account_control
        return value is not None and bool(value & int(flag))

    def set_user_account_control_flag(self, flag: UserAccountControl) -> MutationResult:
        value = (self.user_account_control or 0) | int(flag)
        return self.set_string("userAccountControl", str(value))

    def remove_user_account_control_flag(self, flag: UserAccountControl) -> MutationResult:
        value = (self.user_account_control or 0) & ~int(flag)
        return self.set_string("userAccountControl", str(value))

    @property
    def is_disabled(self) -> bool:
        return self.user_account_control_contains(UserAccountControl.ACCOUNTDISABLE)

    def disable(self) -> MutationResult:
        return self.set_user_account_control_flag(UserAccountControl.ACCOUNTDISABLE)

    def enable(self) -> MutationResult:
        return self.remove_user_account_control_flag(UserAccountControl.ACCOUNTDISABLE)

    def unlock(self) -> MutationResult:
        """Clear a lockout. Succeeds when the account was not locked."""
        return self.set_attribute("lockoutTime", ["0"])

    def set_password(self, password: str) -> MutationResult:
        """Set the password. The directory only accepts this over an encrypted connection."""
        if password is None:
            raise ValueError("A password is required")
        encoded = f'"{password}"'.encode("utf-16-le")
        return self.set_attribute("unicodePwd", [encoded])

    @property
    def bad_password_count(self) -> Optional[int]:
        return self.get_integer("badPwdCount")

    @property
    def bad_password_time(self) -> Optional[datetime.datetime]:
        return self.get_interval("badPasswordTime")

    @property
    def password_last_set(self) -> Optional[datetime.datetime]:
        return self.get_interval("pwdLastSet")

    @property
    def password_expired(self) -> bool:
        computed = self.get_integer("msDS-User-Account-Control-Computed")
        return computed is not None and bool(computed & UserAccountControl.PASSWORD_EXPIRED)

    @property
    def must_change_password_at_next_logon(self) -> bool:
        """
        True when ``pwdLastSet`` is zero and the password is allowed to expire.
        """
        last_set = self.password_last_set
        return (
            last_set == codec.INTERVAL_EPOCH
            and not self.user_account_control_contains(UserAccountControl.DONT_EXPIRE_PASSWORD)
        )

    @must_change_password_at_next_logon.setter
    def must_change_password_at_next_logon(self, value: bool):
        # 0 forces a change; -1 stamps the current time.
        self.set_string("pwdLastSet", "0" if value else "-1")

    @classmethod
    def create(
        cls,
        client,
        sam_account_name: str,
        ou_dn: str,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional["User"]:
        """
        Create a user in the given container.

        ``userPrincipalName`` defaults to ``<sam_account_name>@<domain>``.

        Returns:
            User: The new user, or None when the directory refused it.

        Raises:
            ValueError: If a required argument is missing or the container does not exist.
        """
        if client is None:
            raise ValueError("An Active Directory client is required")
        if not sam_account_name or not sam_account_name.strip():
            raise ValueError("A login is required")
        if not ou_dn or not ou_dn.strip():
            raise ValueError("The distinguished name of the container is required")
        if client.get_entry_by_distinguished_name(ou_dn, ["distinguishedName"]) is None:
            raise ValueError(f"The container {ou_dn} does not exist")

        dn = f"CN={escape_rdn(sam_account_name)},{ou_dn}"
        attributes: Dict[str, Any] = {
            "objectClass": ["top", "person", "organizationalPerson", "user"],
            "sAMAccountName": sam_account_name,
            "userPrincipalName": f"{sam_account_name}@{client.name}",
        }
        for name, value in (additional_attributes or {}).items():
            if name.lower() == "userprincipalname":
                attributes.pop("userPrincipalName", None)
            if name.lower() not in _RESERVED_CREATE_ATTRIBUTES:
                attributes[name] = value

        try:
            client.connection.add(dn, attributes)
        except DirectoryOperationError as e:
            logger.error(f"❌ Could not create user {dn}: {e}")
            return None

        guid = client.get_guid_by_distinguished_name(dn)
        if guid is None:
            logger.error(f"User {dn} was created but could not be read back")
            return None
        logger.info(f"✅ Created user {dn}")
        return cls(client, guid=guid)
