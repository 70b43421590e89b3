import datetime
import logging
import uuid
from typing import Any, Iterable, List, Optional

from identity.exceptions import IdentityError, ObjectNotFoundError

from ..attributes import codec
from ..attributes.mutator import MutationResult
from ..attributes.ranged_reader import RangedReadResult
from ..attributes.snapshot import AttributeSnapshot, DirectoryEntry

logger = logging.getLogger(__name__)


class ActiveDirectoryObject:
    """
    An entry in Active Directory, located by its objectGUID.

    The object holds one immutable ``AttributeSnapshot``. Getters read from
    it and widen it with a single extra query the first time an attribute
    outside the fetched set is requested. Writes go through the client's
    ``AttributeMutator`` and the object rebinds to the snapshot returned with
    the result.

    Instances are not safe to share between threads.
    """

    ATTRIBUTE_NAMES = [
        "objectGUID",
        "distinguishedName",
        "description",
        "memberOf",
        "objectClass",
        "objectCategory",
        "displayName",
        "cn",
        "createTimeStamp",
    ]

    def __init__(
        self,
        client,
        guid: Any = None,
        entry: Optional[DirectoryEntry] = None,
        additional_attributes: Optional[Iterable[str]] = None,
    ):
        """
        Load an object by GUID, or wrap a search result already in hand.

        Args:
            client: The ``ActiveDirectoryClient`` session used for all reads and writes.
            guid: objectGUID of the object (UUID, string or raw bytes).
            entry: A search result that was fetched with this class's attribute names.
            additional_attributes: Extra attribute names to fetch alongside the defaults.

        Raises:
            ObjectNotFoundError: If no object with the GUID exists.
            ValueError: If neither a GUID nor an entry is supplied.
        """
        if client is None:
            raise ValueError("An Active Directory client is required")
        self.client = client
        self._attribute_names = self._merge_names(self.ATTRIBUTE_NAMES, additional_attributes)

        if entry is not None:
            self._snapshot = AttributeSnapshot.from_entry(entry, self._attribute_names)
            guid_value = codec.guid_from_bytes(codec.get_bytes("objectGUID", self._snapshot))
            if guid_value is None and guid is None:
                raise ValueError(f"Entry {entry.dn} has no objectGUID")
            self._guid = guid_value or codec.parse_guid(guid)
        elif guid is not None:
            self._guid = codec.parse_guid(guid)
            self._snapshot = self._fetch_snapshot()
        else:
            raise ValueError("Either a GUID or a directory entry is required")

    @staticmethod
    def _merge_names(base: Iterable[str], extra: Optional[Iterable[str]]) -> List[str]:
        names: List[str] = []
        seen = set()
        for name in list(base) + list(extra or []):
            if name and name.lower() not in seen:
                seen.add(name.lower())
                names.append(name)
        return names

    # ----- Snapshot management -----

    @property
    def snapshot(self) -> AttributeSnapshot:
        return self._snapshot

    @property
    def attribute_names(self) -> List[str]:
        """Every attribute name the snapshot is fetched with."""
        return list(self._attribute_names)

    def _fetch_snapshot(self) -> AttributeSnapshot:
        entry = self.client.fetch_entry_by_guid(self._guid, self._attribute_names)
        if entry is None:
            raise ObjectNotFoundError(f"No object with GUID {self._guid}")
        return AttributeSnapshot.from_entry(entry, self._attribute_names)

    def refresh(self) -> bool:
        """
        Re-read the object with every attribute fetched so far.

        Returns:
            bool: True when the snapshot was replaced, False when the object
            could not be read (the previous snapshot is kept).
        """
        try:
            self._snapshot = self._fetch_snapshot()
            return True
        except IdentityError as e:
            logger.warning(f"Could not refresh {self.distinguished_name}: {e}")
            return False

    def _ensure_fetched(self, name: str) -> bool:
        """Widen the snapshot to include ``name`` if it was never requested."""
        if self._snapshot.has_fetched(name):
            return True
        self._attribute_names = self._merge_names(self._attribute_names, [name])
        logger.debug(f"Fetching '{name}' for {self._snapshot.dn}")
        return self.refresh()

    def _apply(self, result: MutationResult) -> MutationResult:
        if result.snapshot is not None:
            self._snapshot = result.snapshot
        return result

    # ----- Typed getters -----

    def get_string(self, name: str) -> Optional[str]:
        self._ensure_fetched(name)
        return codec.get_string(name, self._snapshot)

    def get_strings(self, name: str) -> List[str]:
        """All values of a multi-valued attribute, following range retrieval."""
        return self.get_strings_result(name).values

    def get_strings_result(self, name: str) -> RangedReadResult:
        self._ensure_fetched(name)
        return self.client.ranged_reader.read(
            name,
            codec.guid_filter(self._guid),
            self.client.search_base,
            snapshot=self._snapshot,
        )

    def get_bytes(self, name: str) -> Optional[bytes]:
        self._ensure_fetched(name)
        return codec.get_bytes(name, self._snapshot)

    def get_bytes_list(self, name: str) -> List[bytes]:
        self._ensure_fetched(name)
        return codec.get_bytes_list(name, self._snapshot)

    def get_interval(self, name: str) -> Optional[datetime.datetime]:
        self._ensure_fetched(name)
        return codec.get_interval(name, self._snapshot)

    def get_integer(self, name: str) -> Optional[int]:
        self._ensure_fetched(name)
        return codec.get_integer(name, self._snapshot)

    def get_generalized_time(self, name: str) -> Optional[datetime.datetime]:
        self._ensure_fetched(name)
        return codec.get_generalized_time(name, self._snapshot)

    # ----- Writes -----

    def set_attribute(self, name: str, values: Any) -> MutationResult:
        """Replace all values of an attribute (adding it when absent)."""
        return self._apply(
            self.client.mutator.replace_values(
                self.distinguished_name, name, values, self._fetch_snapshot
            )
        )

    def add_values(self, name: str, values: Any) -> MutationResult:
        return self._apply(
            self.client.mutator.add_values(
                self.distinguished_name, name, values, self._fetch_snapshot
            )
        )

    def add_multi_value(self, name: str, values: Any) -> MutationResult:
        """Add values to a multi-valued attribute. Already present values are skipped."""
        self._ensure_fetched(name)
        return self._apply(
            self.client.mutator.add_multi_value(
                self.distinguished_name,
                name,
                values,
                self._fetch_snapshot,
                current=self._snapshot,
            )
        )

    def set_string(self, name: str, value: Optional[str]) -> MutationResult:
        """Set a single string value. A blank value deletes the attribute."""
        return self._apply(
            self.client.mutator.set_string(
                self.distinguished_name, name, value, self._fetch_snapshot
            )
        )

    def delete_attribute(self, name: str, values: Any = None) -> MutationResult:
        """Delete specific values of an attribute, or all of them."""
        return self._apply(
            self.client.mutator.delete_values(
                self.distinguished_name, name, self._fetch_snapshot, values
            )
        )

    # ----- Common properties -----

    @property
    def guid(self) -> uuid.UUID:
        return self._guid

    @property
    def unique_id(self) -> str:
        return str(self._guid)

    @property
    def distinguished_name(self) -> Optional[str]:
        return codec.get_string("distinguishedName", self._snapshot) or self._snapshot.dn

    @property
    def common_name(self) -> Optional[str]:
        return self.get_string("cn")

    @property
    def description(self) -> Optional[str]:
        return self.get_string("description")

    @description.setter
    def description(self, value: Optional[str]):
        self.set_string("description", value)

    @property
    def display_name(self) -> Optional[str]:
        return self.get_string("displayName")

    @display_name.setter
    def display_name(self, value: Optional[str]):
        self.set_string("displayName", value)

    @property
    def organizational_unit(self) -> Optional[str]:
        """Distinguished name of the container holding this object."""
        return codec.parent_dn(self.distinguished_name)

    @property
    def schema_classes(self) -> List[str]:
        return self.get_strings("objectClass")

    @property
    def create_timestamp(self) -> Optional[datetime.datetime]:
        return self.get_generalized_time("createTimeStamp")

    def move_rename(
        self, new_parent_guid: Any = None, new_common_name: Optional[str] = None
    ) -> bool:
        """
        Move the object to another container and/or give it a new common name.

        Returns:
            bool: True when the directory accepted the change and the object
            was re-read.
        """
        if self.client.move_rename_object(self._guid, new_parent_guid, new_common_name):
            return self.refresh()
        return False

    def __eq__(self, other) -> bool:
        if not isinstance(other, ActiveDirectoryObject):
            return NotImplemented
        return self._guid == other._guid

    def __lt__(self, other: "ActiveDirectoryObject") -> bool:
        return str(self._guid) < str(other._guid)

    def __hash__(self) -> int:
        return hash(self._guid)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dn='{self.distinguished_name}', guid='{self._guid}')"


def string_attribute(name: str, doc: Optional[str] = None) -> property:
    """A read/write property over a single-valued string attribute."""

    def getter(self) -> Optional[str]:
        return self.get_string(name)

    def setter(self, value: Optional[str]):
        self.set_string(name, value)

    return property(getter, setter, doc=doc or f"The ``{name}`` attribute.")
