import logging
from typing import Any, Dict, List, Optional

from identity.directory_system import DirectorySystemClient

from ..api.okta_api import create_headers
from ..api.group_api import GroupAPI
from ..api.user_api import UserAPI
from ..models.group import GroupType, OktaGroup
from ..models.user import OktaUser

logger = logging.getLogger(__name__)

API_VERSION = "v1"
PRODUCTION_DOMAIN = "okta.com"
PREVIEW_DOMAIN = "oktapreview.com"

# Record fields that sit outside the profile and are queried without a prefix
USER_RECORD_FIELDS = {"id", "status", "created", "activated", "statusChanged", "lastLogin", "lastUpdated", "passwordChanged"}
GROUP_RECORD_FIELDS = {"id", "type", "created", "lastUpdated", "lastMembershipUpdated"}

# User properties Okta accepts in a ``filter`` query. Everything else needs ``search``.
FILTERABLE_USER_PROPERTIES = {
    "status",
    "lastUpdated",
    "id",
    "profile.login",
    "profile.email",
    "profile.firstName",
    "profile.lastName",
}

# Keys of ``additional_attributes`` that go into the credentials of a new user
_CREDENTIAL_ATTRIBUTES = {"password", "recovery_question", "recovery_answer"}


def _query_property(name: str, record_fields) -> str:
    if name in record_fields or name.startswith("profile."):
        return name
    return f"profile.{name}"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class OktaClient(DirectorySystemClient):
    """
    Client for one Okta tenant.

    Args:
        tenant: The tenant subdomain, e.g. ``example`` for ``example.okta.com``.
        api_token: An Okta API token.
        preview: Use the tenant's preview organization instead of production.
    """

    def __init__(self, tenant: str, api_token: str, preview: bool = False):
        if not tenant or not tenant.strip():
            raise ValueError("An Okta tenant name is required")
        if not api_token or not api_token.strip():
            raise ValueError("An Okta API token is required")

        domain = PREVIEW_DOMAIN if preview else PRODUCTION_DOMAIN
        self.base_url = f"https://{tenant}.{domain}/api/{API_VERSION}"
        headers = create_headers(api_token)
        self.user_api = UserAPI(self.base_url, headers)
        self.group_api = GroupAPI(self.base_url, headers)

    # ----- Groups -----

    def create_group(
        self,
        name: str,
        group_type: Optional[str] = None,
        parent_unique_id: Optional[str] = None,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[OktaGroup]:
        """
        Create an Okta group. Only ``description`` is read from the additional
        attributes. The type and parent are ignored because Okta creates
        OKTA_GROUP groups in a flat namespace.
        """
        if not name or not name.strip():
            return None
        description = (additional_attributes or {}).get("description", "")
        response = self.group_api.create_group({"name": name, "description": description})
        if not response:
            logger.error(f"❌ Could not create Okta group '{name}'")
            return None
        logger.info(f"✅ Created Okta group '{name}'")
        return OktaGroup(self, response)

    def delete_group(self, unique_id: str) -> bool:
        if not unique_id:
            raise ValueError("A group id is required")
        return self.group_api.delete_group(unique_id) is not None

    def get_group(self, unique_id: str) -> Optional[OktaGroup]:
        if not unique_id:
            return None
        response = self.group_api.get_group(unique_id)
        return OktaGroup(self, response) if response else None

    def get_all_groups(self) -> List[OktaGroup]:
        return [OktaGroup(self, record) for record in self.group_api.get_groups() or []]

    def update_group(self, unique_id: str, profile: Dict[str, Any]) -> Optional[OktaGroup]:
        if not unique_id or not profile:
            return None
        response = self.group_api.update_group(unique_id, profile)
        return OktaGroup(self, response) if response else None

    def get_groups_by_attribute(
        self, name: str, value: str, group_type: GroupType = GroupType.OKTA_GROUP
    ) -> List[OktaGroup]:
        """Groups of the given type whose attribute starts with ``value``."""
        if not name or not name.strip() or value is None:
            return []
        property_name = _query_property(name, GROUP_RECORD_FIELDS)
        expression = f"type eq {_quote(group_type.value)} and {property_name} sw {_quote(value)}"
        return [OktaGroup(self, record) for record in self.group_api.search_groups(expression) or []]

    def get_group_membership(self, unique_id: str) -> List[OktaUser]:
        if not unique_id:
            return []
        return [OktaUser(self, record) for record in self.group_api.get_group_members(unique_id) or []]

    def add_user_to_group(self, user_id: str, group_id: str) -> bool:
        if not user_id or not group_id:
            return False
        return self.group_api.add_user_to_group(group_id, user_id) is not None

    def remove_user_from_group(self, user_id: str, group_id: str) -> bool:
        if not user_id or not group_id:
            return False
        return self.group_api.remove_user_from_group(group_id, user_id) is not None

    def get_group_types(self) -> List[str]:
        return [group_type.value for group_type in GroupType]

    # ----- Users -----

    def create_user(
        self,
        login: str,
        parent_unique_id: Optional[str] = None,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[OktaUser]:
        """
        Create and activate an Okta user.

        ``additional_attributes`` holds profile properties by their Okta name
        (``firstName``, ``lastName``, ``email`` ...) plus the optional
        credentials ``password``, ``recovery_question`` and ``recovery_answer``.
        ``email`` defaults to the login.
        """
        if not login or not login.strip():
            return None

        profile: Dict[str, Any] = {"login": login}
        credentials: Dict[str, Any] = {}
        for name, value in (additional_attributes or {}).items():
            if name == "password":
                credentials["password"] = {"value": value}
            elif name in _CREDENTIAL_ATTRIBUTES:
                recovery = credentials.setdefault("recovery_question", {})
                recovery["question" if name == "recovery_question" else "answer"] = value
            else:
                profile[name] = value
        profile.setdefault("email", login)

        data: Dict[str, Any] = {"profile": profile}
        if credentials:
            data["credentials"] = credentials

        response = self.user_api.create_user(data)
        if not response:
            logger.error(f"❌ Could not create Okta user '{login}'")
            return None
        logger.info(f"✅ Created Okta user '{login}'")
        return OktaUser(self, response)

    def delete_user(self, unique_id: str) -> bool:
        """Deactivate and then delete a user."""
        if not unique_id:
            raise ValueError("A user id is required")
        user = self.get_user(unique_id)
        if user is None:
            return False
        if user.status != "DEPROVISIONED" and self.user_api.deactivate_user(unique_id) is None:
            logger.error(f"❌ Could not deactivate Okta user {unique_id}")
            return False
        return self.user_api.delete_user(unique_id) is not None

    def get_user(self, unique_id: str) -> Optional[OktaUser]:
        if not unique_id:
            return None
        response = self.user_api.get_user(unique_id)
        return OktaUser(self, response) if response else None

    def get_all_users(self) -> List[OktaUser]:
        return [OktaUser(self, record) for record in self.user_api.get_users() or []]

    def get_users_by_attribute(self, name: str, value: str) -> List[OktaUser]:
        """
        Users whose attribute starts with ``value``.

        Filterable properties are queried with ``filter``, which reads current
        data. Other properties fall back to ``search``.
        """
        if not name or not name.strip() or value is None:
            return []
        property_name = _query_property(name, USER_RECORD_FIELDS)
        expression = f"{property_name} sw {_quote(value)}"
        if property_name in FILTERABLE_USER_PROPERTIES:
            records = self.user_api.filter_users(expression)
        else:
            records = self.user_api.search_users(expression)
        return [OktaUser(self, record) for record in records or []]

    def get_user_groups(self, unique_id: str) -> List[OktaGroup]:
        if not unique_id:
            return []
        return [OktaGroup(self, record) for record in self.user_api.get_user_groups(unique_id) or []]

    def update_user(
        self,
        unique_id: str,
        profile: Optional[Dict[str, Any]] = None,
        credentials: Optional[Dict[str, Any]] = None,
    ) -> Optional[OktaUser]:
        """Partially update a user. Profile properties left out are kept."""
        if not unique_id or not (profile or credentials):
            return None
        data: Dict[str, Any] = {}
        if profile:
            data["profile"] = profile
        if credentials:
            data["credentials"] = credentials
        response = self.user_api.update_user(unique_id, data)
        return OktaUser(self, response) if response else None

    def suspend_user(self, unique_id: str) -> bool:
        return bool(unique_id) and self.user_api.suspend_user(unique_id) is not None

    def unsuspend_user(self, unique_id: str) -> bool:
        return bool(unique_id) and self.user_api.unsuspend_user(unique_id) is not None

    def unlock_user(self, unique_id: str) -> bool:
        return bool(unique_id) and self.user_api.unlock_user(unique_id) is not None
