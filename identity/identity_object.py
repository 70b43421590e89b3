from abc import ABC, abstractmethod
from typing import Iterator, List, Optional


class IdentityObject(ABC):
    """
    Common base for users and groups from any identity backend.

    Objects compare, sort and hash by their backend unique id so that objects
    fetched through different lookups can be matched against each other.
    """

    @property
    @abstractmethod
    def unique_id(self) -> Optional[str]:
        """The backend's stable identifier for the object."""

    @property
    @abstractmethod
    def groups(self) -> List["Group"]:
        """Groups the object is a direct member of."""

    def add_to_group(self, group: "Group") -> bool:
        """Add this object to the supplied group."""
        if group is None:
            raise ValueError("group is required")
        return bool(group.add_members([self]))

    def remove_from_group(self, group: "Group") -> bool:
        """Remove this object from the supplied group."""
        if group is None:
            raise ValueError("group is required")
        return bool(group.remove_members([self]))

    def member_of_group(self, group: "Group", recursive: bool = False) -> bool:
        """
        Check whether this object is a member of the supplied group.

        Backends without nested groups answer from the direct group list
        whatever the value of ``recursive``.
        """
        if group is None:
            raise ValueError("group is required")
        return any(g.unique_id == group.unique_id for g in self.groups)

    def __eq__(self, other) -> bool:
        if not isinstance(other, IdentityObject):
            return NotImplemented
        return self.unique_id == other.unique_id

    def __lt__(self, other: "IdentityObject") -> bool:
        return (self.unique_id or "") < (other.unique_id or "")

    def __hash__(self) -> int:
        return hash(self.unique_id)


class Group(IdentityObject):
    """A group of users and, on backends that support nesting, other groups."""

    @property
    @abstractmethod
    def members(self) -> List[IdentityObject]:
        """Direct members of the group."""

    @property
    def user_members(self) -> List["User"]:
        return [member for member in self.members if isinstance(member, User)]

    @property
    def group_members(self) -> List["Group"]:
        return [member for member in self.members if isinstance(member, Group)]

    @property
    def all_user_members(self) -> List["User"]:
        """Users that are members of this group directly or through nesting."""
        return self.user_members

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    @abstractmethod
    def description(self) -> Optional[str]:
        pass

    @abstractmethod
    def add_members(self, members: List[IdentityObject]):
        pass

    @abstractmethod
    def remove_members(self, members: List[IdentityObject]):
        pass

    @abstractmethod
    def clear_membership(self):
        pass

    def __iter__(self) -> Iterator[IdentityObject]:
        return iter(self.members)


class User(IdentityObject):
    """A person or service account that can sign in to the backend."""

    @property
    @abstractmethod
    def login(self) -> Optional[str]:
        pass

    @property
    @abstractmethod
    def display_name(self) -> Optional[str]:
        pass

    @property
    @abstractmethod
    def first_name(self) -> Optional[str]:
        pass

    @property
    @abstractmethod
    def last_name(self) -> Optional[str]:
        pass

    @property
    @abstractmethod
    def email_addresses(self) -> List[str]:
        pass

    @property
    def primary_email_address(self) -> Optional[str]:
        addresses = self.email_addresses
        return addresses[0] if addresses else None

    @property
    @abstractmethod
    def is_disabled(self) -> bool:
        pass

    @abstractmethod
    def disable(self) -> bool:
        pass

    @abstractmethod
    def enable(self) -> bool:
        pass

    @abstractmethod
    def unlock(self) -> bool:
        pass

    @abstractmethod
    def set_password(self, password: str) -> bool:
        pass
