import unittest

from active_directory.facade.active_directory_client import ActiveDirectoryClient
from active_directory.membership import GroupMembershipEngine, TraversalResult
from active_directory.models.group import Group
from active_directory.models.user import User

from fake_directory import DOMAIN_DN, FakeDirectory

USERS = f"CN=Users,{DOMAIN_DN}"


def dn(name):
    return f"CN={name},{USERS}"


class TestGroupMembershipEngine(unittest.TestCase):
    """Test cases for walking and changing group membership."""

    def setUp(self):
        self.directory = FakeDirectory()
        self.client = ActiveDirectoryClient(connection=self.directory)
        self.engine = self.client.membership

        self.alice = self.directory.add_user("alice")
        self.bob = self.directory.add_user("bob")
        self.carol = self.directory.add_user("carol")
        self.directory.add_contact("vendor")

    def group(self, guid):
        return Group(self.client, guid=guid)

    def user(self, guid):
        return User(self.client, guid=guid)

    # ----- Test direct members -----

    def test_direct_members_skip_non_principals(self):
        guid = self.directory.add_group("staff", member=[dn("alice"), dn("vendor")])
        result = self.engine.direct_members(self.group(guid))

        self.assertTrue(result.complete)
        self.assertEqual([member.sam_account_name for member in result], ["alice"])

    def test_direct_members_include_nested_groups(self):
        inner = self.directory.add_group("inner", member=[dn("bob")])
        outer = self.directory.add_group("outer", member=[dn("alice"), dn("inner")])
        members = self.engine.direct_members(self.group(outer)).items

        self.assertEqual(len(members), 2)
        self.assertIsInstance(members[0], User)
        self.assertIsInstance(members[1], Group)
        self.assertEqual(members[1].guid, inner)

    def test_direct_members_of_large_group_follow_ranges(self):
        self.directory.max_values = 2
        guid = self.directory.add_group(
            "big", member=[dn("alice"), dn("bob"), dn("carol")]
        )
        names = [member.sam_account_name for member in self.engine.direct_members(self.group(guid))]
        self.assertEqual(names, ["alice", "bob", "carol"])

    # ----- Test recursive user members -----

    def test_all_user_members_lists_each_user_once(self):
        self.directory.add_group("inner", member=[dn("bob"), dn("alice")])
        outer = self.directory.add_group("outer", member=[dn("alice"), dn("inner")])
        result = self.engine.all_user_members(self.group(outer))

        self.assertTrue(result.complete)
        self.assertEqual(sorted(user.sam_account_name for user in result), ["alice", "bob"])

    def test_all_user_members_terminates_on_cycle(self):
        # A contains B and B contains A
        self.directory.add_group("group-a", member=[dn("alice")])
        self.directory.add_group("group-b", member=[dn("bob"), dn("group-a")])
        self.directory.modify(dn("group-a"), "member", "add", [dn("group-b")])

        group_a = self.group(self.client.get_guid_by_sam_account_name("group-a"))
        result = self.engine.all_user_members(group_a)

        self.assertTrue(result.complete)
        self.assertEqual(sorted(user.sam_account_name for user in result), ["alice", "bob"])

    def test_all_user_members_stops_at_max_depth(self):
        self.directory.add_group("level2", member=[dn("carol")])
        self.directory.add_group("level1", member=[dn("bob"), dn("level2")])
        top = self.directory.add_group("level0", member=[dn("alice"), dn("level1")])

        engine = GroupMembershipEngine(self.client, max_depth=2)
        result = engine.all_user_members(self.group(top))

        self.assertFalse(result.complete)
        self.assertIsInstance(result.errors[0], RecursionError)
        self.assertEqual(sorted(user.sam_account_name for user in result), ["alice", "bob"])

    def test_all_user_members_reports_unreadable_member_list(self):
        guid = self.directory.add_group("staff", member=[dn("alice")])
        group = self.group(guid)
        self.directory.failing_requests.add("member")

        result = self.engine.all_user_members(group)
        self.assertFalse(result.complete)

    def test_invalid_max_depth(self):
        with self.assertRaises(ValueError):
            GroupMembershipEngine(self.client, max_depth=0)

    # ----- Test is_member -----

    def test_direct_membership(self):
        guid = self.directory.add_group("staff", member=[dn("alice")])
        group = self.group(guid)

        self.assertTrue(self.engine.is_member(self.user(self.alice), group))
        self.assertFalse(self.engine.is_member(self.user(self.bob), group))

    def test_direct_membership_ignores_dn_case(self):
        guid = self.directory.add_group("staff")
        self.directory.modify(
            self.directory.dn_of(self.alice), "memberOf", "replace", ["cn=STAFF, cn=users, dc=EXAMPLE, dc=edu"]
        )
        self.assertTrue(self.engine.is_member(self.user(self.alice), self.group(guid)))

    def test_recursive_membership(self):
        self.directory.add_group("inner", member=[dn("bob")])
        outer = self.directory.add_group("outer", member=[dn("inner")])
        group = self.group(outer)
        bob = self.user(self.bob)

        self.assertFalse(self.engine.is_member(bob, group))
        self.assertTrue(self.engine.is_member(bob, group, recursive=True))
        self.assertFalse(self.engine.is_member(self.user(self.carol), group, recursive=True))

    def test_recursive_membership_terminates_on_cycle(self):
        self.directory.add_group("group-a")
        self.directory.add_group("group-b", member=[dn("group-a")])
        self.directory.modify(dn("group-a"), "member", "add", [dn("group-b")])
        group_a = self.group(self.client.get_guid_by_sam_account_name("group-a"))

        self.assertFalse(self.engine.is_member(self.user(self.carol), group_a, recursive=True))

    def test_recursive_membership_in_cycle_finds_reachable_member(self):
        self.directory.add_group("group-a", member=[dn("carol")])
        self.directory.add_group("group-b", member=[dn("group-a")])
        self.directory.modify(dn("group-a"), "member", "add", [dn("group-b")])
        group_b = self.group(self.client.get_guid_by_sam_account_name("group-b"))
        carol = self.user(self.carol)

        self.assertFalse(self.engine.is_member(carol, group_b))
        self.assertTrue(self.engine.is_member(carol, group_b, recursive=True))

    def test_is_member_requires_arguments(self):
        with self.assertRaises(ValueError):
            self.engine.is_member(None, None)

    # ----- Test changes -----

    def test_add_members_is_idempotent(self):
        guid = self.directory.add_group("staff", member=[dn("alice")])
        group = self.group(guid)

        first = self.engine.add_members(group, [self.user(self.alice), self.user(self.bob)])
        second = self.engine.add_members(group, [self.user(self.alice), self.user(self.bob)])

        self.assertTrue(first)
        self.assertTrue(second)
        self.assertEqual(self.directory.values(dn("staff"), "member"), [dn("alice"), dn("bob")])
        self.assertEqual(group.member_count, 2)
        self.assertIn(dn("staff"), self.directory.values(dn("bob"), "memberOf"))

    def test_add_members_without_principals_fails(self):
        guid = self.directory.add_group("staff")
        result = self.engine.add_members(self.group(guid), ["alice", None])
        self.assertFalse(result)
        self.assertIsInstance(result.error, ValueError)

    def test_remove_members(self):
        guid = self.directory.add_group("staff", member=[dn("alice"), dn("bob")])
        group = self.group(guid)

        self.assertTrue(self.engine.remove_members(group, [self.user(self.alice)]))
        self.assertEqual(group.member_dns, [dn("bob")])
        self.assertEqual(self.directory.values(dn("alice"), "memberOf"), [])

    def test_clear_membership(self):
        guid = self.directory.add_group("staff", member=[dn("alice"), dn("bob")])
        group = self.group(guid)

        self.assertTrue(self.engine.clear_membership(group))
        self.assertEqual(group.member_dns, [])
        # Clearing an empty group writes nothing.
        self.directory.modify_calls.clear()
        self.assertTrue(self.engine.clear_membership(group))
        self.assertEqual(self.directory.modify_calls, [])

    def test_principal_group_helpers(self):
        guid = self.directory.add_group("staff")
        group = self.group(guid)
        alice = self.user(self.alice)

        self.assertTrue(alice.add_to_group(group))
        self.assertTrue(alice.member_of_group(group))
        self.assertEqual([g.guid for g in alice.groups], [guid])
        self.assertTrue(alice.remove_from_group(group))
        self.assertFalse(alice.member_of_group(group))


class TestTraversalResult(unittest.TestCase):
    def test_add_error_marks_incomplete(self):
        result = TraversalResult(items=["a"])
        self.assertTrue(result.complete)
        result.add_error(RuntimeError("boom"))
        self.assertFalse(result.complete)
        self.assertEqual(len(result), 1)


if __name__ == "__main__":
    unittest.main()
