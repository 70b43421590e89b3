from typing import Any, Dict, List, Optional

from .okta_api import OktaAPI


class GroupAPI(OktaAPI):
    def get_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        return self.get(f"groups/{group_id}")

    def get_groups(self) -> Optional[List[Dict[str, Any]]]:
        return self.get_all("groups")

    def search_groups(self, expression: str) -> Optional[List[Dict[str, Any]]]:
        """
        Searches groups with an Okta search expression.

        Args:
            expression: e.g. ``type eq "OKTA_GROUP" and profile.name sw "eng"``.
        """
        return self.get_all("groups", {"search": expression})

    def create_group(self, profile: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Creates an Okta group.

        Args:
            profile: The group profile, at least ``name`` and usually ``description``.
        """
        return self.post("groups", {"profile": profile})

    def update_group(self, group_id: str, profile: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replaces the profile of an Okta group."""
        return self.put(f"groups/{group_id}", {"profile": profile})

    def delete_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        return self.delete(f"groups/{group_id}")

    def get_group_members(self, group_id: str) -> Optional[List[Dict[str, Any]]]:
        return self.get_all(f"groups/{group_id}/users")

    def add_user_to_group(self, group_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return self.put(f"groups/{group_id}/users/{user_id}")

    def remove_user_from_group(self, group_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return self.delete(f"groups/{group_id}/users/{user_id}")
