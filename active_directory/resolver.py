import logging
from typing import Any, Iterable, List, Optional

from identity.exceptions import IdentityError

from .attributes import codec
from .attributes.ranged_reader import parse_range
from .attributes.snapshot import AttributeSnapshot, DirectoryEntry
from .models.directory_object import ActiveDirectoryObject
from .models.group import Group
from .models.user import User

logger = logging.getLogger(__name__)

GROUP_CLASS = "group"
USER_CLASS = "user"


class SecurityPrincipalResolver:
    """
    Turns GUIDs, distinguished names and search results into typed principals.

    Classification looks at ``objectClass`` only. Objects that are neither a
    group nor a user (contacts, computers ...) resolve to None and are left
    out of member lists by callers.
    """

    def __init__(self, client):
        self.client = client

    @staticmethod
    def classify(object_classes: Optional[Iterable[str]]) -> Optional[str]:
        """Return ``"group"``, ``"user"`` or None for a list of objectClass values."""
        classes = {value.lower() for value in object_classes or [] if value}
        if GROUP_CLASS in classes:
            return GROUP_CLASS
        if USER_CLASS in classes:
            return USER_CLASS
        return None

    def resolve_entry(self, entry: Optional[DirectoryEntry]):
        """
        Wrap a search result as a ``Group`` or ``User``.

        The entry should have been fetched with the principal attribute set so
        the object does not need an immediate re-read.
        """
        if entry is None:
            return None
        snapshot = AttributeSnapshot.from_entry(entry, ["objectClass", "objectGUID"])
        guid = codec.guid_from_bytes(codec.get_bytes("objectGUID", snapshot))
        kind = self.classify(self._object_classes(snapshot, guid))
        if kind is None:
            return None
        if guid is None:
            logger.debug(f"Entry {entry.dn} has no readable objectGUID")
            return None

        try:
            if kind == GROUP_CLASS:
                return Group(self.client, entry=entry)
            return User(self.client, entry=entry)
        except (IdentityError, ValueError) as e:
            logger.warning(f"Could not wrap {entry.dn}: {e}")
            return None

    def _object_classes(self, snapshot: AttributeSnapshot, guid) -> List[str]:
        classes = codec.get_strings("objectClass", snapshot)
        if classes or guid is None:
            return classes
        pages = [parse_range(name) for name in snapshot.attribute_names]
        if not any(page and page[0].lower() == "objectclass" for page in pages):
            return classes
        result = self.client.ranged_reader.read(
            "objectClass", codec.guid_filter(guid), self.client.search_base, snapshot=snapshot
        )
        if not result.complete:
            logger.warning(f"objectClass of {snapshot.dn} was only partly read: {result.error}")
        return result.values

    def resolve_guid(self, guid: Any):
        """Load the object with this GUID as a ``Group`` or ``User``, or None."""
        entry = self.client.get_entry_by_guid(guid, self.principal_attribute_names())
        return self.resolve_entry(entry)

    def resolve_dn(self, dn: str):
        """Load the object at this distinguished name as a ``Group`` or ``User``, or None."""
        if not dn:
            return None
        entry = self.client.get_entry_by_distinguished_name(dn, self.principal_attribute_names())
        return self.resolve_entry(entry)

    @staticmethod
    def principal_attribute_names():
        """Attribute names fetched when a principal's type is not known yet."""
        return ActiveDirectoryObject._merge_names(Group.ATTRIBUTE_NAMES, User.ATTRIBUTE_NAMES)
