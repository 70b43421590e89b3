import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from identity.exceptions import DirectoryOperationError, IdentityError, MutationRefreshError

from . import codec
from .snapshot import AttributeSnapshot

logger = logging.getLogger(__name__)

# LDAP result codes
RESULT_ATTRIBUTE_OR_VALUE_EXISTS = 20

MODIFY_ADD = "add"
MODIFY_REPLACE = "replace"
MODIFY_DELETE = "delete"


@dataclass
class MutationResult:
    """
    Outcome of an attribute write.

    Truthy only when the write and the refresh that follows it both
    succeeded. ``refresh_failed`` marks the uncertain case where the write was
    sent but the object could not be re-read afterwards.
    """

    success: bool
    snapshot: Optional[AttributeSnapshot] = None
    error: Optional[Exception] = None
    refresh_failed: bool = False

    def __bool__(self) -> bool:
        return self.success


def _as_list(values: Any) -> List[Any]:
    if values is None:
        return []
    if isinstance(values, (str, bytes)):
        return [values]
    return list(values)


class AttributeMutator:
    """
    Add, replace and delete attribute values on one entry.

    Every successful write is followed by a call to ``refresh`` and the
    re-read snapshot is returned in the result, so the caller can rebind its
    handle to it.
    """

    def __init__(self, connection):
        self.connection = connection

    def add_values(
        self,
        dn: str,
        name: str,
        values: Iterable[Any],
        refresh: Callable[[], AttributeSnapshot],
    ) -> MutationResult:
        return self._modify(dn, name, MODIFY_ADD, _as_list(values), refresh)

    def replace_values(
        self,
        dn: str,
        name: str,
        values: Iterable[Any],
        refresh: Callable[[], AttributeSnapshot],
    ) -> MutationResult:
        """Replace every value of ``name``, adding the attribute if needed."""
        return self._modify(dn, name, MODIFY_REPLACE, _as_list(values), refresh)

    def delete_values(
        self,
        dn: str,
        name: str,
        refresh: Callable[[], AttributeSnapshot],
        values: Optional[Iterable[Any]] = None,
    ) -> MutationResult:
        """Delete the given values of ``name``, or the whole attribute when none are given."""
        return self._modify(dn, name, MODIFY_DELETE, _as_list(values), refresh)

    def set_string(
        self,
        dn: str,
        name: str,
        value: Optional[str],
        refresh: Callable[[], AttributeSnapshot],
    ) -> MutationResult:
        """
        Set a single-valued string attribute.

        A blank value deletes the attribute, so an empty string cannot be
        stored through this call.
        """
        if value is None or not str(value).strip():
            return self.delete_values(dn, name, refresh)
        return self.replace_values(dn, name, [value], refresh)

    def add_multi_value(
        self,
        dn: str,
        name: str,
        values: Iterable[Any],
        refresh: Callable[[], AttributeSnapshot],
        current: Optional[AttributeSnapshot] = None,
    ) -> MutationResult:
        """
        Add values to a multi-valued attribute without replacing existing ones.

        Values already present are skipped and a backend "already exists"
        rejection counts as success, so repeating the call changes nothing.
        """
        requested = _as_list(values)
        if current is not None:
            existing = {
                value.lower() for value in codec.get_strings(name, current)
            }
            requested = [
                value
                for value in requested
                if not (isinstance(value, str) and value.lower() in existing)
            ]

        if not requested:
            logger.debug(f"All values for '{name}' already present on {dn}")
            return self._refresh(dn, refresh)

        return self._modify(
            dn, name, MODIFY_ADD, requested, refresh, tolerate_existing=True
        )

    def _modify(
        self,
        dn: str,
        name: str,
        operation: str,
        values: List[Any],
        refresh: Callable[[], AttributeSnapshot],
        tolerate_existing: bool = False,
    ) -> MutationResult:
        if not dn:
            raise ValueError("A distinguished name is required to modify an entry")
        if not name or not name.strip():
            raise ValueError("An attribute name is required")

        try:
            self.connection.modify(dn, name, operation, values or None)
            logger.info(f"Applied {operation} on '{name}' for {dn}")
        except DirectoryOperationError as e:
            if not (tolerate_existing and e.result_code == RESULT_ATTRIBUTE_OR_VALUE_EXISTS):
                logger.error(f"Failed to {operation} '{name}' on {dn}: {e}")
                return MutationResult(False, error=e)
            # The server rejects the whole request when any one value exists,
            # so the remaining values are added one at a time.
            logger.debug(f"Some values for '{name}' already exist on {dn}, adding individually")
            if len(values) > 1:
                for value in values:
                    try:
                        self.connection.modify(dn, name, operation, [value])
                    except DirectoryOperationError as single_error:
                        if single_error.result_code != RESULT_ATTRIBUTE_OR_VALUE_EXISTS:
                            logger.error(f"Failed to {operation} '{name}' on {dn}: {single_error}")
                            # Earlier values may have been written.
                            refreshed = self._refresh(dn, refresh)
                            return MutationResult(
                                False,
                                refreshed.snapshot,
                                single_error,
                                refreshed.refresh_failed,
                            )

        return self._refresh(dn, refresh)

    @staticmethod
    def _refresh(dn: str, refresh: Callable[[], AttributeSnapshot]) -> MutationResult:
        try:
            snapshot = refresh()
        except IdentityError as e:
            logger.error(f"Entry {dn} could not be re-read after a write: {e}")
            error = MutationRefreshError(
                f"Write sent but refresh of {dn} failed; state is uncertain",
                operation="refresh",
                dn=dn,
            )
            error.__cause__ = e
            return MutationResult(False, error=error, refresh_failed=True)
        return MutationResult(True, snapshot)
