import datetime
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from identity.identity_attribute import IdentityAttribute
from identity.identity_object import Group

from .user import parse_timestamp

logger = logging.getLogger(__name__)


class GroupType(Enum):
    # Profile and memberships managed in Okta directly or through group rules
    OKTA_GROUP = "OKTA_GROUP"
    # Imported from an application and managed there
    APP_GROUP = "APP_GROUP"
    # Managed by Okta, read-only
    BUILT_IN = "BUILT_IN"


class OktaGroup(Group):
    """
    A group record returned by the Okta API.

    Okta groups hold users only, so membership is never nested.
    """

    def __init__(self, client, json: Dict[str, Any]):
        if not json or not json.get("id"):
            raise ValueError("An Okta group record with an id is required")
        self.client = client
        self.json = json

    @property
    def profile(self) -> Dict[str, Any]:
        return self.json.get("profile") or {}

    @property
    def unique_id(self) -> Optional[str]:
        return self.json.get("id")

    @property
    def name(self) -> Optional[str]:
        return self.profile.get("name")

    @property
    def description(self) -> Optional[str]:
        return self.profile.get("description")

    @property
    def type(self) -> Optional[str]:
        return self.json.get("type")

    @property
    def created(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("created"))

    @property
    def last_updated(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("lastUpdated"))

    @property
    def last_membership_updated(self) -> Optional[datetime.datetime]:
        return parse_timestamp(self.json.get("lastMembershipUpdated"))

    @property
    def groups(self) -> List[Any]:
        return []

    @property
    def members(self) -> List[Any]:
        return self.client.get_group_membership(self.unique_id)

    def get_attributes(self, names: List[str]) -> List[IdentityAttribute]:
        attributes = []
        for name in names or []:
            if name in self.json and name != "profile":
                value = self.json.get(name)
            else:
                value = self.profile.get(name)
            attributes.append(IdentityAttribute(name, value))
        return attributes

    def add_members(self, members: List[Any]) -> bool:
        """Add users to the group. True only when every user was added."""
        if not members:
            return False
        results = [self.client.add_user_to_group(member.unique_id, self.unique_id) for member in members]
        return all(results)

    def remove_members(self, members: List[Any]) -> bool:
        if not members:
            return False
        results = [
            self.client.remove_user_from_group(member.unique_id, self.unique_id) for member in members
        ]
        return all(results)

    def clear_membership(self) -> bool:
        members = self.members
        if not members:
            return True
        return self.remove_members(members)

    def __repr__(self) -> str:
        return f"OktaGroup(id='{self.unique_id}', name='{self.name}')"
