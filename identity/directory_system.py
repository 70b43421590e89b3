from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .identity_object import Group, User


class DirectorySystemClient(ABC):
    """
    Operations every identity backend client offers.

    Lookups return ``None`` or an empty list when nothing matches. Creation
    returns the new object or ``None`` when the backend refused it.
    """

    @abstractmethod
    def create_group(
        self,
        name: str,
        group_type: Optional[str] = None,
        parent_unique_id: Optional[str] = None,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[Group]:
        pass

    @abstractmethod
    def create_user(
        self,
        login: str,
        parent_unique_id: Optional[str] = None,
        additional_attributes: Optional[Dict[str, Any]] = None,
    ) -> Optional[User]:
        pass

    @abstractmethod
    def delete_group(self, unique_id: str) -> bool:
        pass

    @abstractmethod
    def delete_user(self, unique_id: str) -> bool:
        pass

    @abstractmethod
    def get_all_groups(self) -> List[Group]:
        pass

    @abstractmethod
    def get_all_users(self) -> List[User]:
        pass

    @abstractmethod
    def get_groups_by_attribute(self, name: str, value: str) -> List[Group]:
        pass

    @abstractmethod
    def get_users_by_attribute(self, name: str, value: str) -> List[User]:
        pass

    @abstractmethod
    def get_group_types(self) -> List[str]:
        pass
