from typing import Any, Dict, List, Optional

from .okta_api import OktaAPI


class UserAPI(OktaAPI):
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Gets a user by id or login.

        Args:
            user_id: The user's Okta id, login or login shortname.
        """
        return self.get(f"users/{user_id}")

    def get_users(self) -> Optional[List[Dict[str, Any]]]:
        return self.get_all("users")

    def search_users(self, expression: str) -> Optional[List[Dict[str, Any]]]:
        """
        Searches users with an Okta search expression, e.g. ``profile.department eq "Physics"``.

        Search reads from the search index and may lag behind recent changes.
        """
        return self.get_all("users", {"search": expression})

    def filter_users(self, expression: str) -> Optional[List[Dict[str, Any]]]:
        """
        Filters users with an Okta filter expression.

        Only status, lastUpdated, id and the login, email, firstName and
        lastName profile properties can be filtered on.
        """
        return self.get_all("users", {"filter": expression})

    def create_user(self, data: Dict[str, Any], activate: bool = True) -> Optional[Dict[str, Any]]:
        """
        Creates a user.

        Args:
            data: The ``profile`` and optional ``credentials`` of the new user.
            activate: Whether to activate the user right away.
        """
        return self.post("users", data, params={"activate": str(activate).lower()})

    def update_user(self, user_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Partially updates a user's profile or credentials. Omitted properties are kept."""
        return self.post(f"users/{user_id}", data)

    def deactivate_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.post(f"users/{user_id}/lifecycle/deactivate")

    def delete_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Deletes a user. Okta only deletes users that are already deactivated."""
        return self.delete(f"users/{user_id}")

    def suspend_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.post(f"users/{user_id}/lifecycle/suspend")

    def unsuspend_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.post(f"users/{user_id}/lifecycle/unsuspend")

    def unlock_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.post(f"users/{user_id}/lifecycle/unlock")

    def get_user_groups(self, user_id: str) -> Optional[List[Dict[str, Any]]]:
        return self.get_all(f"users/{user_id}/groups")
