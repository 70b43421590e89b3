import logging
import re
from typing import Any, Dict, List, Optional

from identity.identity_attribute import IdentityAttribute
from identity.identity_object import IdentityObject

from ..attributes import codec
from ..attributes.mutator import MutationResult
from .directory_object import ActiveDirectoryObject

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"\w+([-+.']\w+)*@\w+([-.]\w+)*\.\w+([-.]\w+)*")

PRIMARY_PREFIX = "SMTP:"
SECONDARY_PREFIX = "smtp:"


def _is_smtp(proxy: str) -> bool:
    return proxy[:5].lower() == SECONDARY_PREFIX


def _is_primary(proxy: str) -> bool:
    return proxy.startswith(PRIMARY_PREFIX)


class SecurityPrincipal(ActiveDirectoryObject, IdentityObject):
    """A user or group: something that can hold group memberships and mail addresses."""

    ATTRIBUTE_NAMES = ActiveDirectoryObject.ATTRIBUTE_NAMES + [
        "mail",
        "proxyAddresses",
        "mailNickname",
        "targetAddress",
        "userPrincipalName",
        "sAMAccountName",
        "objectSid",
    ]

    # ----- Naming -----

    @property
    def sam_account_name(self) -> Optional[str]:
        return self.get_string("sAMAccountName")

    @sam_account_name.setter
    def sam_account_name(self, value: Optional[str]):
        self.set_string("sAMAccountName", value)

    @property
    def user_principal_name(self) -> Optional[str]:
        return self.get_string("userPrincipalName")

    @user_principal_name.setter
    def user_principal_name(self, value: Optional[str]):
        self.set_string("userPrincipalName", value)

    @property
    def exchange_alias(self) -> Optional[str]:
        return self.get_string("mailNickname")

    @exchange_alias.setter
    def exchange_alias(self, value: Optional[str]):
        self.set_string("mailNickname", value)

    @property
    def target_address(self) -> Optional[str]:
        return self.get_string("targetAddress")

    @target_address.setter
    def target_address(self, value: Optional[str]):
        self.set_string("targetAddress", value)

    @property
    def object_sid(self) -> Optional[bytes]:
        return self.get_bytes("objectSid")

    # ----- Mail addresses -----

    @property
    def mail(self) -> Optional[str]:
        return self.get_string("mail")

    @mail.setter
    def mail(self, value: Optional[str]):
        self.set_string("mail", value)

    @property
    def proxy_addresses(self) -> List[str]:
        return self.get_strings("proxyAddresses")

    @property
    def email_addresses(self) -> List[str]:
        """
        SMTP addresses of the principal with the primary address first.

        Falls back to ``mail`` when there are no proxy addresses.
        """
        proxies = self.proxy_addresses
        if not proxies:
            mail = self.mail
            return [mail] if mail and mail.strip() else []

        primary = [proxy[5:] for proxy in proxies if _is_primary(proxy)]
        secondary = [
            proxy[5:] for proxy in proxies if _is_smtp(proxy) and not _is_primary(proxy)
        ]
        return primary + secondary

    @property
    def primary_email_address(self) -> Optional[str]:
        proxies = self.proxy_addresses
        if not proxies:
            mail = self.mail
            return mail if mail and mail.strip() else None
        for proxy in proxies:
            if _is_primary(proxy):
                return proxy[5:]
        return None

    @primary_email_address.setter
    def primary_email_address(self, value: str):
        if not self._has_address(value):
            result = self.add_proxy_address(value)
            if not result:
                return
        self.set_primary_proxy_address(value)

    def _has_address(self, email_address: str) -> bool:
        wanted = (email_address or "").strip().lower()
        return any(address.lower() == wanted for address in self.email_addresses)

    def add_proxy_address(self, email_address: str, as_primary: bool = False) -> MutationResult:
        """
        Add an SMTP proxy address.

        Adding an address that is already present succeeds without a write.
        Adding a primary address fails while another primary exists; use
        ``set_primary_proxy_address`` to move the primary marker.

        Raises:
            ValueError: If the address is not a well formed e-mail address.
        """
        if not email_address or not EMAIL_PATTERN.search(email_address):
            raise ValueError(f"'{email_address}' is not a valid e-mail address")

        if as_primary:
            if any(_is_primary(proxy) for proxy in self.proxy_addresses):
                error = ValueError(f"{self.distinguished_name} already has a primary address")
                logger.warning(str(error))
                return MutationResult(False, error=error)
            proxies = [
                proxy
                for proxy in self.proxy_addresses
                if proxy[5:].lower() != email_address.lower() or not _is_smtp(proxy)
            ]
            return self.set_attribute("proxyAddresses", [PRIMARY_PREFIX + email_address] + proxies)

        return self.add_multi_value("proxyAddresses", [SECONDARY_PREFIX + email_address])

    def remove_proxy_address(self, email_address: str) -> MutationResult:
        """Remove an SMTP proxy address. Succeeds without a write when the address is absent."""
        if not email_address or not email_address.strip():
            raise ValueError("An e-mail address is required")
        proxies = self.proxy_addresses
        remaining = [
            proxy
            for proxy in proxies
            if not (_is_smtp(proxy) and proxy[5:].lower() == email_address.strip().lower())
        ]
        if len(remaining) == len(proxies):
            return MutationResult(True, self.snapshot)
        if remaining:
            return self.set_attribute("proxyAddresses", remaining)
        return self.delete_attribute("proxyAddresses")

    def set_primary_proxy_address(self, email_address: str) -> MutationResult:
        """
        Make an address already associated with the principal its primary address.

        The proxy list is rewritten in one replace: the new primary first, the
        previous primary demoted to a secondary address, and every other
        proxy kept in its original order.
        """
        if not email_address or not email_address.strip():
            raise ValueError("An e-mail address is required")
        wanted = email_address.strip()
        if not self._has_address(wanted):
            error = ValueError(f"{wanted} is not associated with {self.distinguished_name}")
            logger.warning(str(error))
            return MutationResult(False, error=error)

        proxies = self.proxy_addresses
        if not proxies:
            # Only ``mail`` is set: seed the proxy list with it.
            return self.set_attribute("proxyAddresses", [PRIMARY_PREFIX + wanted])

        rewritten = [PRIMARY_PREFIX + wanted]
        for proxy in proxies:
            if _is_smtp(proxy) and proxy[5:].lower() == wanted.lower():
                continue
            if _is_primary(proxy):
                rewritten.append(SECONDARY_PREFIX + proxy[5:])
            else:
                rewritten.append(proxy)
        return self.set_attribute("proxyAddresses", rewritten)

    # ----- Classification -----

    @property
    def is_group(self) -> bool:
        return self.client.resolver.classify(self.schema_classes) == "group"

    @property
    def is_user(self) -> bool:
        return self.client.resolver.classify(self.schema_classes) == "user"

    @property
    def type(self) -> Optional[str]:
        return self.client.resolver.classify(self.schema_classes)

    # ----- Group membership -----

    @property
    def group_dns(self) -> List[str]:
        """Distinguished names from ``memberOf``."""
        return self.get_strings("memberOf")

    @property
    def groups(self) -> List[IdentityObject]:
        """Groups this principal is a direct member of."""
        groups = []
        for dn in self.group_dns:
            principal = self.client.resolver.resolve_dn(dn)
            if principal is not None and principal.is_group:
                groups.append(principal)
        return groups

    def member_of_group(self, group, recursive: bool = False) -> bool:
        if group is None:
            raise ValueError("group is required")
        return self.client.membership.is_member(self, group, recursive)

    def add_to_group(self, group) -> bool:
        if group is None:
            raise ValueError("group is required")
        added = bool(self.client.membership.add_members(group, [self]))
        if added:
            self.refresh()
        return added

    def remove_from_group(self, group) -> bool:
        if group is None:
            raise ValueError("group is required")
        removed = bool(self.client.membership.remove_members(group, [self]))
        if removed:
            self.refresh()
        return removed

    # ----- Generic attribute access -----

    def get_attributes(self, names: List[str]) -> List[IdentityAttribute]:
        """
        Read attributes by name.

        Names with a registered type are decoded as that type. Others are
        decoded by trying string, string list, bytes, bytes list and
        interval in that order, so the returned value's type is only a best
        guess.
        """
        for name in names or []:
            self._ensure_fetched(name)
        attributes = []
        for name in names or []:
            if codec.lookup_type(name) is codec.AttributeType.STRINGS:
                attributes.append(IdentityAttribute(name, self.get_strings(name)))
            else:
                attributes.extend(codec.get_attributes([name], self.snapshot))
        return attributes

    def set_attributes(self, attributes: List[IdentityAttribute]) -> List[IdentityAttribute]:
        """
        Write several attributes.

        Returns:
            List[IdentityAttribute]: One entry per attribute with the boolean
            outcome of its write as the value.
        """
        results = []
        for attribute in attributes or []:
            value = attribute.value
            if value is None or (isinstance(value, str) and not value.strip()):
                result = self.delete_attribute(attribute.name)
            elif isinstance(value, (list, tuple)):
                result = self.set_attribute(attribute.name, list(value))
            else:
                result = self.set_attribute(attribute.name, [value])
            results.append(IdentityAttribute(attribute.name, bool(result)))
        return results

    # ----- Move and rename -----

    def move_rename(
        self, new_parent_guid: Any = None, new_sam_account_name: Optional[str] = None
    ) -> bool:
        """
        Move and/or rename the principal.

        A rename changes the common name and ``sAMAccountName`` and rewrites
        the old account name inside ``userPrincipalName``, leaving the UPN
        suffix unchanged.
        """
        old_sam_account_name = self.sam_account_name
        if not super().move_rename(new_parent_guid, new_sam_account_name):
            return False
        if not new_sam_account_name or not new_sam_account_name.strip():
            return True

        if not self.set_string("sAMAccountName", new_sam_account_name):
            return False
        upn = self.user_principal_name
        if upn and old_sam_account_name:
            local_part, at, suffix = upn.rpartition("@")
            if not at:
                local_part, suffix = upn, ""
            local_part = local_part.replace(old_sam_account_name, new_sam_account_name)
            return bool(self.set_string("userPrincipalName", f"{local_part}{at}{suffix}"))
        return True
