import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from identity.exceptions import IdentityError, ObjectNotFoundError

from . import codec
from .snapshot import AttributeSnapshot, DirectoryEntry

logger = logging.getLogger(__name__)

DEFAULT_RANGE_PAGE_SIZE = 1500

_RANGE_PATTERN = re.compile(
    r"^(?P<name>[^;]+);range=(?P<start>\d+)-(?P<end>\d+|\*)$", re.IGNORECASE
)


@dataclass
class RangedReadResult:
    """Values of a multi-valued attribute and whether all of them were read."""

    values: List[str] = field(default_factory=list)
    complete: bool = True
    error: Optional[Exception] = None

    def __iter__(self):
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


def parse_range(decorated_name: str) -> Optional[Tuple[str, int, Optional[int]]]:
    """
    Split ``member;range=0-1499`` into ``("member", 0, 1499)``.

    The end is None for a final page (``range=N-*``). Returns None for names
    without a range option.
    """
    match = _RANGE_PATTERN.match(decorated_name)
    if not match:
        return None
    end = match.group("end")
    return (
        match.group("name"),
        int(match.group("start")),
        None if end == "*" else int(end),
    )


def _find_ranged_values(
    name: str, attributes: List[Tuple[str, List[Any]]]
) -> Optional[Tuple[int, Optional[int], List[Any]]]:
    for decorated, values in attributes:
        parsed = parse_range(decorated)
        if parsed and parsed[0].lower() == name.lower():
            return parsed[1], parsed[2], list(values)
    return None


class RangedAttributeReader:
    """
    Reads every value of a multi-valued attribute through range retrieval.

    Active Directory returns at most a fixed number of values (1500 by
    default) of an attribute per response. Larger attributes come back under a
    decorated name such as ``member;range=0-1499`` and the rest has to be
    requested page by page.

    Ranged pages are not read atomically. Values changed by another writer
    between pages may be missed or repeated.
    """

    def __init__(self, connection, page_size: int = DEFAULT_RANGE_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be a positive integer")
        self.connection = connection
        self.page_size = page_size

    def read(
        self,
        name: str,
        search_filter: str,
        search_base: Optional[str] = None,
        snapshot: Optional[AttributeSnapshot] = None,
    ) -> RangedReadResult:
        """
        Read all values of ``name`` from the object matched by ``search_filter``.

        Args:
            name: Plain attribute name, for example ``member``.
            search_filter: Filter matching exactly the object, normally a GUID filter.
            search_base: Base DN for the lookups.
            snapshot: Already fetched attributes. When it holds values for
                ``name`` no query is made.

        Returns:
            RangedReadResult: ``complete`` is False and ``error`` holds the
            cause when a query failed part way. ``values`` then holds every
            value read before the failure.
        """
        if snapshot is not None and snapshot.has_fetched(name):
            plain = codec.get_strings(name, snapshot)
            if plain:
                return RangedReadResult(plain)
            first_page = _find_ranged_values(name, snapshot.items())
        else:
            try:
                entry = self._fetch(search_filter, search_base, [name])
            except IdentityError as e:
                logger.warning(f"Could not read attribute '{name}': {e}")
                return RangedReadResult([], False, e)
            plain = self._strings(entry.get(name))
            if plain:
                return RangedReadResult(plain)
            first_page = _find_ranged_values(name, list(entry.attributes.items()))

        values: List[str] = []

        if first_page is None:
            # No plain values and no ranged page yet: ask for the open range
            # to learn whether the attribute is ranged at all.
            try:
                entry = self._fetch(search_filter, search_base, [f"{name};range=0-*"])
            except IdentityError as e:
                logger.warning(f"Range discovery for '{name}' failed: {e}")
                return RangedReadResult(values, False, e)
            first_page = _find_ranged_values(name, list(entry.attributes.items()))
            if first_page is None:
                return RangedReadResult(self._strings(entry.get(name)))

        start, end, page = first_page
        while True:
            page_values = self._strings(page)
            if not page_values:
                break
            values.extend(page_values)
            if end is None:
                break
            if end < start:
                error = ValueError(f"Server returned an invalid range {start}-{end} for '{name}'")
                logger.warning(str(error))
                return RangedReadResult(values, False, error)

            start = end + 1
            requested = f"{name};range={start}-{start + self.page_size - 1}"
            logger.debug(f"Requesting next page: {requested}")
            try:
                entry = self._fetch(search_filter, search_base, [requested])
            except IdentityError as e:
                logger.warning(
                    f"Ranged read of '{name}' stopped after {len(values)} values: {e}"
                )
                return RangedReadResult(values, False, e)

            next_page = _find_ranged_values(name, list(entry.attributes.items()))
            if next_page is None:
                break
            start, end, page = next_page

        logger.debug(f"Ranged read of '{name}' returned {len(values)} values")
        return RangedReadResult(values)

    def _fetch(
        self, search_filter: str, search_base: Optional[str], attributes: List[str]
    ) -> DirectoryEntry:
        entries = self.connection.search(
            search_filter, attributes=attributes, search_base=search_base
        )
        if not entries:
            raise ObjectNotFoundError(f"No object matches {search_filter}")
        return entries[0]

    @staticmethod
    def _strings(values: List[Any]) -> List[str]:
        return codec.strings_from_values(values)
