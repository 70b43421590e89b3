import unittest

from active_directory.facade.active_directory_client import ActiveDirectoryClient
from active_directory.models.directory_object import ActiveDirectoryObject
from active_directory.models.user import User
from identity.exceptions import DirectoryOperationError, ObjectNotFoundError

from fake_directory import FakeDirectory


class TestActiveDirectoryObject(unittest.TestCase):
    """Test cases for the snapshot cache and refresh behavior of directory objects."""

    def setUp(self):
        self.directory = FakeDirectory()
        self.client = ActiveDirectoryClient(connection=self.directory)
        self.guid = self.directory.add_user(
            "jsmith", displayName="Jane Smith", description="Staff", extensionAttribute1="A-1"
        )
        self.dn = self.directory.dn_of(self.guid)

    # ----- Test loading -----

    def test_load_by_guid(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        self.assertEqual(obj.guid, self.guid)
        self.assertEqual(obj.unique_id, str(self.guid))
        self.assertEqual(obj.distinguished_name, self.dn)
        self.assertEqual(obj.display_name, "Jane Smith")
        self.assertEqual(obj.organizational_unit, "CN=Users,DC=example,DC=edu")

    def test_load_missing_guid_raises(self):
        with self.assertRaises(ObjectNotFoundError):
            ActiveDirectoryObject(self.client, guid="00000000-0000-0000-0000-000000000001")

    def test_requires_guid_or_entry(self):
        with self.assertRaises(ValueError):
            ActiveDirectoryObject(self.client)

    def test_default_attributes_are_fetched_in_one_query(self):
        self.directory.search_calls.clear()
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        obj.description
        obj.display_name
        obj.common_name
        self.assertEqual(len(self.directory.search_calls), 1)

    # ----- Test widening -----

    def test_unfetched_attribute_widens_snapshot_once(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        self.assertFalse(obj.snapshot.has_fetched("extensionAttribute1"))

        self.directory.search_calls.clear()
        self.assertEqual(obj.get_string("extensionAttribute1"), "A-1")
        self.assertEqual(obj.get_string("extensionAttribute1"), "A-1")

        self.assertEqual(len(self.directory.search_calls), 1)
        self.assertIn("extensionAttribute1", obj.attribute_names)

    def test_absent_attribute_is_not_fetched_again(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        self.assertIsNone(obj.get_string("department"))
        self.directory.search_calls.clear()
        self.assertIsNone(obj.get_string("department"))
        self.assertEqual(self.directory.search_calls, [])

    def test_additional_attributes_are_fetched_up_front(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid, additional_attributes=["extensionAttribute1"])
        self.assertTrue(obj.snapshot.has_fetched("extensionattribute1"))

    # ----- Test writes and refresh -----

    def test_write_rebinds_to_refreshed_snapshot(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        old_snapshot = obj.snapshot
        obj.description = "Faculty"
        self.assertIsNot(obj.snapshot, old_snapshot)
        self.assertEqual(obj.description, "Faculty")
        self.assertEqual(old_snapshot.values("description"), [b"Staff"])

    def test_failed_write_keeps_snapshot(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        old_snapshot = obj.snapshot
        result = obj.delete_attribute("department")
        self.assertFalse(result)
        self.assertIs(obj.snapshot, old_snapshot)

    def test_partial_multi_value_write_rebinds_snapshot(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        obj.get_strings("otherTelephone")
        original_modify = self.directory.modify

        def modify(dn, name, operation, values=None):
            if values == ["555-0199"]:
                raise DirectoryOperationError("constraintViolation", dn=dn, result_code=19)
            return original_modify(dn, name, operation, values)

        self.directory.modify = modify
        self.directory.modify(self.dn, "otherTelephone", "add", ["555-0100"])
        result = obj.add_multi_value("otherTelephone", ["555-0100", "555-0101", "555-0199"])

        self.assertFalse(result)
        self.assertEqual(obj.get_strings("otherTelephone"), ["555-0100", "555-0101"])

    def test_refresh_failure_keeps_previous_snapshot(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        old_snapshot = obj.snapshot
        self.directory.failing_requests.add("objectguid")
        self.assertFalse(obj.refresh())
        self.assertIs(obj.snapshot, old_snapshot)

    def test_external_change_seen_after_refresh(self):
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        self.directory.modify(self.dn, "description", "replace", ["Changed elsewhere"])
        self.assertEqual(obj.description, "Staff")
        self.assertTrue(obj.refresh())
        self.assertEqual(obj.description, "Changed elsewhere")

    # ----- Test identity -----

    def test_equality_and_hash_use_guid(self):
        first = ActiveDirectoryObject(self.client, guid=self.guid)
        second = User(self.client, guid=str(self.guid))
        self.assertEqual(first, second)
        self.assertEqual(hash(first), hash(second))

    def test_move_rename_updates_distinguished_name(self):
        staff_guid = self.client.get_guid_by_distinguished_name("OU=Staff,DC=example,DC=edu")
        obj = ActiveDirectoryObject(self.client, guid=self.guid)
        self.assertTrue(obj.move_rename(staff_guid, "Jane Smith"))
        self.assertEqual(obj.distinguished_name, "CN=Jane Smith,OU=Staff,DC=example,DC=edu")
        self.assertEqual(obj.guid, self.guid)


if __name__ == "__main__":
    unittest.main()
