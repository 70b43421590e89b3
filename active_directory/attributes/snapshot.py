from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from ldap3.utils.ciDict import CaseInsensitiveDict


class DirectoryEntry:
    """
    One search result: a distinguished name plus its attribute values.

    Attribute names are case-insensitive. Values are kept as returned by the
    server, usually ``bytes``.
    """

    def __init__(self, dn: str, attributes: Optional[Dict[str, List[Any]]] = None):
        self.dn = dn
        self.attributes = CaseInsensitiveDict()
        for name, values in (attributes or {}).items():
            if values is None:
                continue
            if not isinstance(values, (list, tuple)):
                values = [values]
            self.attributes[name] = list(values)

    def get(self, name: str) -> List[Any]:
        return list(self.attributes.get(name, []))

    def __repr__(self) -> str:
        return f"DirectoryEntry(dn='{self.dn}', attributes={list(self.attributes.keys())})"


class AttributeSnapshot:
    """
    Immutable view of an object's attributes as last read from the directory.

    ``fetched_names`` records every attribute name that was requested in the
    read that produced the snapshot, so an absent value can be told apart
    from an attribute that was never asked for.
    """

    __slots__ = ("_dn", "_attributes", "_fetched_names")

    def __init__(
        self,
        dn: Optional[str],
        attributes: Optional[Dict[str, Iterable[Any]]] = None,
        fetched_names: Optional[Iterable[str]] = None,
    ):
        self._dn = dn
        self._attributes = CaseInsensitiveDict()
        for name, values in (attributes or {}).items():
            if values is None:
                continue
            if isinstance(values, (bytes, str)):
                values = [values]
            self._attributes[name] = tuple(values)

        fetched = {name.lower() for name in (fetched_names or [])}
        fetched.update(name.lower() for name in self._attributes.keys())
        self._fetched_names = frozenset(fetched)

    @classmethod
    def from_entry(
        cls, entry: DirectoryEntry, requested: Optional[Iterable[str]] = None
    ) -> "AttributeSnapshot":
        """Build a snapshot from a search result and the names that were requested."""
        return cls(entry.dn, entry.attributes, requested)

    @property
    def dn(self) -> Optional[str]:
        return self._dn

    @property
    def fetched_names(self) -> FrozenSet[str]:
        return self._fetched_names

    @property
    def attribute_names(self) -> List[str]:
        return list(self._attributes.keys())

    def has_fetched(self, name: str) -> bool:
        return name.lower() in self._fetched_names

    def values(self, name: str) -> List[Any]:
        """All values stored for ``name``, or an empty list."""
        return list(self._attributes.get(name, ()))

    def items(self):
        return [(name, list(values)) for name, values in self._attributes.items()]

    def __contains__(self, name: str) -> bool:
        return bool(self._attributes.get(name))

    def __repr__(self) -> str:
        return f"AttributeSnapshot(dn='{self._dn}', attributes={self.attribute_names})"
