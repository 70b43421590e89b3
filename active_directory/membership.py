import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, List

from identity.exceptions import IdentityError

from .attributes import codec
from .attributes.mutator import MutationResult
from .models.group import Group
from .models.security_principal import SecurityPrincipal
from .models.user import User

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


@dataclass
class TraversalResult:
    """
    Principals found by a membership walk.

    ``complete`` is False when part of the group graph could not be read;
    ``errors`` then holds the causes. Members that simply are not users or
    groups are skipped without making the result incomplete.
    """

    items: List[Any] = field(default_factory=list)
    complete: bool = True
    errors: List[Exception] = field(default_factory=list)

    def add_error(self, error: Exception):
        self.complete = False
        self.errors.append(error)

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)


class GroupMembershipEngine:
    """
    Answers membership questions over the group graph stored in the directory.

    The graph is not owned by this client and may contain cycles, so every
    walk keeps a set of visited group GUIDs and stops descending below
    ``max_depth`` levels of nesting.

    Distinguished names are compared after normalization (case and spacing
    around separators are ignored, component order is not).
    """

    def __init__(self, client, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.client = client
        self.max_depth = max_depth

    # ----- Reading -----

    def direct_members(self, group: Group) -> TraversalResult:
        """Users and groups listed in the group's ``member`` attribute."""
        result = TraversalResult()
        read = group.get_strings_result("member")
        if not read.complete:
            result.add_error(read.error)

        attribute_names = self.client.resolver.principal_attribute_names()
        for dn in read.values:
            try:
                entry = self.client.fetch_entry_by_distinguished_name(dn, attribute_names)
            except IdentityError as e:
                logger.warning(f"Could not read member {dn} of {group.distinguished_name}: {e}")
                result.add_error(e)
                continue
            principal = self.client.resolver.resolve_entry(entry)
            if principal is None:
                logger.debug(f"Skipping member {dn}: not a user or group")
                continue
            result.items.append(principal)
        return result

    def all_user_members(self, group: Group) -> TraversalResult:
        """Every user reachable from the group through nested groups, each listed once."""
        result = TraversalResult()
        visited = {group.guid}
        seen_users = set()
        pending = deque([(group, 0)])

        while pending:
            current, depth = pending.popleft()
            members = self.direct_members(current)
            for error in members.errors:
                result.add_error(error)
            for member in members:
                if isinstance(member, User):
                    if member.guid not in seen_users:
                        seen_users.add(member.guid)
                        result.items.append(member)
                elif isinstance(member, Group):
                    if member.guid in visited:
                        logger.debug(f"Group {member.distinguished_name} already visited")
                        continue
                    if depth + 1 >= self.max_depth:
                        logger.warning(
                            f"⚠️  Nesting below {member.distinguished_name} exceeds {self.max_depth} levels, not descending"
                        )
                        result.add_error(
                            RecursionError(f"Maximum group depth {self.max_depth} reached")
                        )
                        continue
                    visited.add(member.guid)
                    pending.append((member, depth + 1))
        return result

    def is_member(self, principal: SecurityPrincipal, group: Group, recursive: bool = False) -> bool:
        """
        Check whether ``principal`` belongs to ``group``.

        The direct check compares the group's DN with the principal's
        ``memberOf`` values. The recursive check walks the nested groups of
        ``group`` and terminates on cyclic graphs.
        """
        if principal is None or group is None:
            raise ValueError("Both a principal and a group are required")

        member_of = {codec.normalize_dn(dn) for dn in principal.group_dns}
        if codec.normalize_dn(group.distinguished_name) in member_of:
            return True
        if not recursive:
            return False

        visited = {group.guid}
        pending = deque([(group, 0)])
        incomplete = False
        while pending:
            current, depth = pending.popleft()
            members = self.direct_members(current)
            incomplete = incomplete or not members.complete
            for member in members:
                if member.guid == principal.guid:
                    return True
                if not isinstance(member, Group) or member.guid in visited:
                    continue
                visited.add(member.guid)
                if codec.normalize_dn(member.distinguished_name) in member_of:
                    return True
                if depth + 1 >= self.max_depth:
                    logger.warning(
                        f"⚠️  Nesting below {member.distinguished_name} exceeds {self.max_depth} levels, not descending"
                    )
                    incomplete = True
                    continue
                pending.append((member, depth + 1))

        if incomplete:
            logger.warning(
                f"Membership of {principal.distinguished_name} in {group.distinguished_name} "
                f"was decided on an incomplete walk"
            )
        return False

    # ----- Writing -----

    @staticmethod
    def _member_dns(members: Iterable[Any]) -> List[str]:
        dns = []
        for member in members or []:
            if isinstance(member, (User, Group)) and member.distinguished_name:
                dns.append(member.distinguished_name)
            else:
                logger.debug(f"Skipping {member!r}: only users and groups can be members")
        return dns

    def add_members(self, group: Group, members: Iterable[Any]) -> MutationResult:
        """Add users and groups to ``group`` in a single write. Existing members are left alone."""
        dns = self._member_dns(members)
        if not dns:
            return MutationResult(False, error=ValueError("No users or groups to add"))
        return group.add_multi_value("member", dns)

    def remove_members(self, group: Group, members: Iterable[Any]) -> MutationResult:
        dns = self._member_dns(members)
        if not dns:
            return MutationResult(False, error=ValueError("No users or groups to remove"))
        return group.delete_attribute("member", dns)

    def clear_membership(self, group: Group) -> MutationResult:
        """Remove every member of ``group``."""
        if not group.get_strings("member"):
            return MutationResult(True, group.snapshot)
        return group.delete_attribute("member")
