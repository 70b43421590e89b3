from enum import IntFlag
from typing import List, Optional


class GroupType(IntFlag):
    """Bits of the ``groupType`` attribute."""

    GLOBAL = 0x00000002
    DOMAIN_LOCAL = 0x00000004
    UNIVERSAL = 0x00000008
    SECURITY = 0x80000000


# Names accepted by ``ActiveDirectoryClient.create_group``.
GROUP_TYPE_NAMES = {
    "universal": GroupType.UNIVERSAL,
    "domainlocal": GroupType.DOMAIN_LOCAL,
    "global": GroupType.GLOBAL,
    "security": GroupType.SECURITY | GroupType.GLOBAL,
}


def parse_group_type(name: str) -> GroupType:
    """
    Map a group type name to the flags written on creation.

    ``Security`` creates a global security group.

    Raises:
        ValueError: If the name is not a known group type.
    """
    if not name or not name.strip():
        raise ValueError("A group type is required")
    key = name.replace(" ", "").replace("_", "").lower()
    if key not in GROUP_TYPE_NAMES:
        raise ValueError(
            f"Unknown group type '{name}'. Expected one of: Universal, DomainLocal, Global, Security"
        )
    return GROUP_TYPE_NAMES[key]


def group_type_to_attribute(flags: GroupType) -> str:
    """Signed 32-bit decimal form stored in ``groupType``."""
    value = int(flags) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return str(value)


def group_type_from_attribute(value: Optional[int]) -> Optional[GroupType]:
    if value is None:
        return None
    return GroupType(int(value) & 0xFFFFFFFF & sum(member.value for member in GroupType))


def group_type_name(flags: Optional[GroupType]) -> Optional[str]:
    """Display name of a group type, checked in order DomainLocal, Global, Security, Universal."""
    if flags is None:
        return None
    if flags & GroupType.DOMAIN_LOCAL:
        return "DomainLocal"
    if flags & GroupType.GLOBAL:
        return "Global"
    if flags & GroupType.SECURITY:
        return "Security"
    if flags & GroupType.UNIVERSAL:
        return "Universal"
    return None


class UserAccountControl(IntFlag):
    """Bits of the ``userAccountControl`` attribute."""

    SCRIPT = 0x0000001
    ACCOUNTDISABLE = 0x0000002
    HOMEDIR_REQUIRED = 0x0000008
    LOCKOUT = 0x0000010
    PASSWD_NOTREQD = 0x0000020
    PASSWD_CANT_CHANGE = 0x0000040
    ENCRYPTED_TEXT_PWD_ALLOWED = 0x0000080
    TEMP_DUPLICATE_ACCOUNT = 0x0000100
    NORMAL_ACCOUNT = 0x0000200
    INTERDOMAIN_TRUST_ACCOUNT = 0x0000800
    WORKSTATION_TRUST_ACCOUNT = 0x0001000
    SERVER_TRUST_ACCOUNT = 0x0002000
    DONT_EXPIRE_PASSWORD = 0x0010000
    MNS_LOGON_ACCOUNT = 0x0020000
    SMARTCARD_REQUIRED = 0x0040000
    TRUSTED_FOR_DELEGATION = 0x0080000
    NOT_DELEGATED = 0x0100000
    USE_DES_KEY_ONLY = 0x0200000
    DONT_REQ_PREAUTH = 0x0400000
    PASSWORD_EXPIRED = 0x0800000
    TRUSTED_TO_AUTH_FOR_DELEGATION = 0x1000000
    PARTIAL_SECRETS_ACCOUNT = 0x4000000
    USE_AES_KEYS = 0x8000000


def user_account_control_names(value: Optional[int]) -> List[str]:
    """Names of the flags set in a ``userAccountControl`` value."""
    if value is None:
        return []
    return [flag.name for flag in UserAccountControl if value & flag.value]
