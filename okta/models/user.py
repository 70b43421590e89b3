import datetime
import logging
from typing import Any, Dict, List, Optional

from identity.identity_attribute import IdentityAttribute
from identity.identity_object import User

logger = logging.getLogger(__name__)

# Statuses in which the user cannot sign in
DISABLED_STATUSES = ("SUSPENDED", "DEPROVISIONED")
LOCKED_OUT = "LOCKED_OUT"
PASSWORD_EXPIRED = "PASSWORD_EXPIRED"


def parse_timestamp(value: Optional[str]) -> Optional[datetime.datetime]:
    """Parse an Okta ISO 8601 timestamp such as ``2024-01-31T23:59:59.000Z``."""
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unreadable Okta timestamp: {value}")
        return None


def profile_property(name: str, doc: Optional[str] = None) -> property:
    """A read-only property over one value of the record's ``profile``."""

    def getter(self) -> Optional[Any]:
        return self.profile.get(name)

    return property(getter, doc=doc or f"The ``{name}`` profile property.")


class OktaUser(User):
    """
    A user record returned by the Okta API.

    The record is a snapshot. Lifecycle calls go through the client and
    re-read the user, so the snapshot reflects the change afterwards.
    """

    def __init__(self, client, json: Dict[str, Any]):
        if not json or not json.get("id"):
            raise ValueError("An Okta user record with an id is required")
        self.client = client
        self.json = json

    @property
    def profile(self) -> Dict[str, Any]:
        return self.json.get("profile") or {}

    @property
    def unique_id(self) -> Optional[str]:
        return self.json.get("id")

    @property
    def status(self) -> Optional[str]:
        return self.json.get("status")

    @property
    def type(self) -> Optional[str]:
        user_type = self.json.get("type")
        if isinstance(user_type, dict):
            return user_type.get("id")
        return user_type

    login = profile_property("login")
    first_name = profile_property("firstName")
    last_name = profile_property("lastName")
    middle_name = profile_property("middleName")
    nick_name = profile_property("nickName")
    email = profile_property("email")
    second_email = profile_property("secondEmail")
    title = profile_property("title")
    department = profile_property("department")
    division = profile_property("division")
    organization = profile_property("organization")
    cost_center = profile_property("costCenter")
    employee_number = profile_property("employeeNumber")
    manager = profile_property("manager")
    manager_id = profile_property("managerId")
    mobile_phone = profile_property("mobilePhone")
    primary_phone = profile_property("primaryPhone")
    street_address = profile_property("streetAddress")
    city = profile_property("city")
    state = profile_property("state")
    zip_code = profile_property("zipCode")
    postal_address = profile_property("postalAddress")
    country_code = profile_property("countryCode")
    locale = profile_property("locale")
    time_zone = profile_property("timezone")
    user_type = profile_property("userType")

    @property
    def display_name(self) -> Optional[str]:
        display_name = self.profile.get("displayName")
        if display_name:
            return display_name
        names = [name for name in (self.first_name, self.last_name) if name]
        return " ".join(names) or None

    @property
    def email_addresses(self) -> List[str]:
        return [address for address in (self.email, self.second_email) if address]

    @property
    def created(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("created"))

    @property
    def activated(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("activated"))

    @property
    def last_login(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("lastLogin"))

    @property
    def last_updated(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("lastUpdated"))

    @property
    def password_changed(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("passwordChanged"))

    @property
    def status_changed(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("statusChanged"))

    @property
    def is_disabled(self) -> bool:
        return self.status in DISABLED_STATUSES

    @property
    def is_locked_out(self) -> bool:
        return self.status == LOCKED_OUT

    @property
    def password_expired(self) -> bool:
        return self.status == PASSWORD_EXPIRED

    @property
    def groups(self) -> List[Any]:
        return self.client.get_user_groups(self.unique_id)

    def get_attributes(self, names: List[str]) -> List[IdentityAttribute]:
        """Values of top-level record fields or profile properties, looked up by name."""
        attributes = []
        for name in names or []:
            if name in self.json and name != "profile":
                value = self.json.get(name)
            else:
                value = self.profile.get(name)
            attributes.append(IdentityAttribute(name, value))
        return attributes

    def _reload(self, succeeded: bool) -> bool:
        if succeeded:
            refreshed = self.client.user_api.get_user(self.unique_id)
            if refreshed:
                self.json = refreshed
        return succeeded

    def disable(self) -> bool:
        """Suspend the user."""
        return self._reload(self.client.suspend_user(self.unique_id))

    def enable(self) -> bool:
        """Lift a suspension."""
        return self._reload(self.client.unsuspend_user(self.unique_id))

    def unlock(self) -> bool:
        return self._reload(self.client.unlock_user(self.unique_id))

    def set_password(self, password: str) -> bool:
        if not password:
            raise ValueError("A password is required")
        updated = self.client.update_user(
            self.unique_id, credentials={"password": {"value": password}}
        )
        if updated is None:
            return False
        self.json = updated.json
        return True

    def __repr__(self) -> str:
        return f"OktaUser(id='{self.unique_id}', login='{self.login}')"
