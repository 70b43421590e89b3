import datetime
import unittest
from unittest.mock import MagicMock, patch

from active_directory.facade.active_directory_client import ActiveDirectoryClient
from active_directory.models.flags import GroupType
from active_directory.models.group import Group
from active_directory.models.user import User
from identity.exceptions import DirectoryOperationError

from fake_directory import DOMAIN_DN, FakeDirectory

USERS = f"CN=Users,{DOMAIN_DN}"
STAFF = f"OU=Staff,{DOMAIN_DN}"


class TestActiveDirectoryClient(unittest.TestCase):
    """Test cases for the ActiveDirectoryClient facade."""

    def setUp(self):
        self.directory = FakeDirectory()
        self.client = ActiveDirectoryClient(connection=self.directory)

    def tearDown(self):
        patch.stopall()

    # ----- Test construction -----

    def test_requires_config_or_connection(self):
        with self.assertRaises(ValueError):
            ActiveDirectoryClient()

    def test_builds_adapter_from_config(self):
        adapter_cls = patch("active_directory.facade.active_directory_client.LDAPAdapter").start()
        config = {
            "server": "dc1.example.edu",
            "search_base": DOMAIN_DN,
            "user": "svc",
            "keyring_service": "ad",
            "range_page_size": 500,
        }

        client = ActiveDirectoryClient(config)

        adapter_cls.assert_called_once()
        self.assertEqual(adapter_cls.call_args[0][0]["server"], "dc1.example.edu")
        self.assertIs(client.connection, adapter_cls.return_value)
        self.assertEqual(client.ranged_reader.page_size, 500)

    def test_site_discovery_supplies_servers(self):
        adapter_cls = patch("active_directory.facade.active_directory_client.LDAPAdapter").start()
        locate = patch(
            "active_directory.facade.active_directory_client.get_site_domain_controllers",
            return_value=["dc2.example.edu", "dc3.example.edu"],
        ).start()

        ActiveDirectoryClient({"domain": "example.edu", "site": "Campus", "search_base": DOMAIN_DN})

        locate.assert_called_once_with("example.edu", "Campus")
        config = adapter_cls.call_args[0][0]
        self.assertEqual(config["server"], "dc2.example.edu")
        self.assertEqual(config["servers"], ["dc2.example.edu", "dc3.example.edu"])

    def test_explicit_server_skips_site_discovery(self):
        patch("active_directory.facade.active_directory_client.LDAPAdapter").start()
        locate = patch(
            "active_directory.facade.active_directory_client.get_site_domain_controllers"
        ).start()

        ActiveDirectoryClient({"server": "dc1.example.edu", "domain": "example.edu", "site": "Campus"})
        locate.assert_not_called()

    def test_domain_used_when_site_has_no_controllers(self):
        adapter_cls = patch("active_directory.facade.active_directory_client.LDAPAdapter").start()
        patch(
            "active_directory.facade.active_directory_client.get_site_domain_controllers",
            return_value=[],
        ).start()

        ActiveDirectoryClient({"domain": "example.edu", "site": "Nowhere"})
        self.assertEqual(adapter_cls.call_args[0][0]["server"], "example.edu")

    def test_context_manager_closes_connection(self):
        with ActiveDirectoryClient(connection=self.directory):
            pass
        self.assertTrue(self.directory.closed)

    # ----- Test domain information -----

    def test_domain_names(self):
        self.assertEqual(self.client.distinguished_name, DOMAIN_DN)
        self.assertEqual(self.client.name, "example.edu")
        self.assertEqual(self.client.nt_name, "EXAMPLE")

    def test_well_known_group_dns(self):
        self.assertEqual(self.client.domain_admins_group_dn, f"CN=Domain Admins,CN=Users,{DOMAIN_DN}")
        self.assertEqual(self.client.administrators_group_dn, f"CN=Administrators,CN=Builtin,{DOMAIN_DN}")

    def test_append_distinguished_name(self):
        self.assertEqual(self.client.append_distinguished_name("OU=Staff"), STAFF)
        self.assertEqual(self.client.append_distinguished_name(" "), DOMAIN_DN)
        self.assertIsNone(self.client.append_distinguished_name(None))

    def test_set_search_base(self):
        self.assertFalse(self.client.set_search_base(""))
        self.assertTrue(self.client.set_search_base(STAFF))
        self.directory.add_user("outside")
        self.directory.add_user("inside", container=STAFF)

        self.assertIsNone(self.client.get_guid_by_sam_account_name("outside"))
        self.assertIsNotNone(self.client.get_guid_by_sam_account_name("inside"))

    # ----- Test lookups -----

    def test_get_entry_by_sam_account_name_escapes_value(self):
        self.directory.add_user("abc")

        entry = self.client.get_entry_by_sam_account_name("a(b")
        self.assertIsNone(entry)
        self.assertIn("a\\28b", self.directory.search_calls[-1]["filter"])

    def test_trailing_star_is_prefix_search(self):
        self.directory.add_user("jsmith")
        self.directory.add_user("jsmythe")
        self.directory.add_user("ajones")

        entries = self.client.get_entries_by_sam_account_name("js*")
        self.assertEqual(len(entries), 2)

    def test_get_entries_logs_and_returns_empty_on_failure(self):
        self.directory.failing_requests.add("cn")
        with self.assertLogs("active_directory.facade.active_directory_client", level="ERROR"):
            self.assertEqual(self.client.get_entries("(cn=x)", ["cn"]), [])

    def test_fetch_entries_raises_on_failure(self):
        self.directory.failing_requests.add("cn")
        with self.assertRaises(DirectoryOperationError):
            self.client.fetch_entries("(cn=x)", ["cn"])

    def test_email_lookup_matches_proxy_address(self):
        self.directory.add_user("primary", proxyAddresses=["SMTP:jane@example.edu", "smtp:js@example.edu"])

        entry = self.client.get_entry_by_email_address("js@example.edu", ["sAMAccountName"])
        self.assertEqual(entry.get("sAMAccountName"), [b"primary"])
        self.assertIn("(proxyAddresses=SMTP:js@example.edu)", self.directory.search_calls[0]["filter"])

    def test_email_lookup_falls_back_to_mail(self):
        self.directory.add_user("mailonly", mail="mailonly@example.edu")
        entry = self.client.get_entry_by_email_address("mailonly@example.edu", ["sAMAccountName"])
        self.assertEqual(entry.get("sAMAccountName"), [b"mailonly"])
        self.assertIsNone(self.client.get_entry_by_email_address(" "))

    def test_guid_lookups(self):
        guid = self.directory.add_user("jsmith", employeeNumber="12345")
        self.assertEqual(self.client.get_guid_by_sam_account_name("jsmith"), guid)
        self.assertEqual(self.client.get_guid_by_employee_number("12345"), guid)
        self.assertEqual(self.client.get_guid_by_common_name("jsmith"), guid)
        self.assertEqual(self.client.get_guid_by_distinguished_name(f"CN=jsmith,{USERS}"), guid)
        self.assertIsNone(self.client.get_guid_by_sam_account_name("nobody"))

    # ----- Test principals -----

    def test_get_user_and_group(self):
        user_guid = self.directory.add_user("jsmith")
        group_guid = self.directory.add_group("staff")

        self.assertIsInstance(self.client.get_user(user_guid), User)
        self.assertIsNone(self.client.get_user(group_guid))
        self.assertIsInstance(self.client.get_group(group_guid), Group)
        self.assertIsNone(self.client.get_group(user_guid))

    def test_get_by_sam_account_name_filters_by_type(self):
        self.directory.add_user("shared")
        self.directory.add_group("shared-group", sAMAccountName="shared-group")

        self.assertEqual(self.client.get_user_by_sam_account_name("shared").sam_account_name, "shared")
        self.assertIsNone(self.client.get_group_by_sam_account_name("shared"))
        self.assertIsNotNone(self.client.get_group_by_sam_account_name("shared-group"))

    def test_get_all_users_and_groups(self):
        self.directory.add_user("one")
        self.directory.add_user("two")
        self.directory.add_group("staff")
        self.directory.add_contact("vendor")

        self.assertEqual(sorted(user.sam_account_name for user in self.client.get_all_users()), ["one", "two"])
        self.assertEqual([group.sam_account_name for group in self.client.get_all_groups()], ["staff"])

    def test_get_users_by_attribute_is_prefix_search(self):
        self.directory.add_user("jsmith", department="Engineering")
        self.directory.add_user("ajones", department="English")
        self.directory.add_user("bbrown", department="History")
        self.directory.add_group("eng", department="Engineering")

        users = self.client.get_users_by_attribute("department", "Eng")
        groups = self.client.get_groups_by_attribute("department", "Eng")

        self.assertEqual(sorted(user.sam_account_name for user in users), ["ajones", "jsmith"])
        self.assertEqual([group.sam_account_name for group in groups], ["eng"])

    def test_get_users_by_attribute_requires_name(self):
        with self.assertRaises(ValueError):
            self.client.get_users_by_attribute("", "x")

    def test_get_modified_users(self):
        self.directory.add_user("old", whenChanged="20230105120000.0Z")
        self.directory.add_user("recent", whenChanged="20240115120000.0Z")

        users = self.client.get_modified_users(
            datetime.datetime(2024, 1, 1), datetime.datetime(2024, 2, 1)
        )

        self.assertEqual([user.sam_account_name for user in users], ["recent"])
        self.assertIn("(whenChanged>=20240101000000.0Z)", self.directory.search_calls[-1]["filter"])

    def test_get_modified_users_requires_dates(self):
        with self.assertRaises(ValueError):
            self.client.get_modified_users(None, datetime.datetime(2024, 1, 1))

    def test_is_group_name_valid(self):
        self.assertTrue(ActiveDirectoryClient.is_group_name_valid("engineers"))
        self.assertTrue(ActiveDirectoryClient.is_group_name_valid("a" * 63))
        self.assertFalse(ActiveDirectoryClient.is_group_name_valid("a" * 64))
        self.assertFalse(ActiveDirectoryClient.is_group_name_valid(" engineers"))
        self.assertFalse(ActiveDirectoryClient.is_group_name_valid(".engineers"))
        self.assertFalse(ActiveDirectoryClient.is_group_name_valid("12345"))
        self.assertFalse(ActiveDirectoryClient.is_group_name_valid(""))

    def test_get_group_types(self):
        self.assertEqual(
            self.client.get_group_types(), ["Universal", "DomainLocal", "Global", "Security"]
        )

    # ----- Test creation -----

    def test_create_security_group(self):
        group = self.client.create_group("engineers", "Security")

        self.assertIsNotNone(group)
        self.assertEqual(group.sam_account_name, "engineers")
        self.assertEqual(group.distinguished_name, f"CN=engineers,{USERS}")
        self.assertTrue(group.group_type & GroupType.SECURITY)
        self.assertTrue(group.group_type & GroupType.GLOBAL)
        self.assertEqual(self.directory.values(group.distinguished_name, "groupType"), ["-2147483646"])

    def test_create_group_in_parent_container(self):
        staff_guid = self.client.get_guid_by_distinguished_name(STAFF)
        group = self.client.create_group("staff-all", "Universal", str(staff_guid))
        self.assertEqual(group.organizational_unit, STAFF)
        self.assertEqual(group.group_type, GroupType.UNIVERSAL)

    def test_create_group_unknown_parent_uses_default(self):
        group = self.client.create_group(
            "engineers", "Global", "00000000-0000-0000-0000-000000000001"
        )
        self.assertEqual(group.organizational_unit, USERS)

    def test_create_group_invalid_arguments(self):
        with self.assertRaises(ValueError):
            self.client.create_group("engineers", "Distribution")
        with self.assertRaises(ValueError):
            self.client.create_group("", "Security")
        with self.assertRaises(ValueError):
            self.client.create_group("engineers", "")
        with self.assertRaises(ValueError):
            self.client.create_group(".hidden", "Security")

    def test_create_existing_group_returns_none(self):
        self.directory.add_group("engineers")
        self.assertIsNone(self.client.create_group("engineers", "Security"))

    def test_create_user(self):
        user = self.client.create_user("jdoe", additional_attributes={"givenName": "Jane"})

        self.assertEqual(user.user_principal_name, "jdoe@example.edu")
        self.assertEqual(user.distinguished_name, f"CN=jdoe,{USERS}")
        self.assertEqual(user.first_name, "Jane")

    def test_create_user_requires_login(self):
        with self.assertRaises(ValueError):
            self.client.create_user(" ")

    # ----- Test delete and move -----

    def test_delete_group(self):
        guid = self.directory.add_group("staff")
        self.assertTrue(self.client.delete_group(str(guid)))
        self.assertIsNone(self.client.get_group(guid))
        self.assertFalse(self.client.delete_group(str(guid)))

    def test_delete_malformed_guid(self):
        with self.assertRaises(ValueError):
            self.client.delete_user("not-a-guid")

    def test_move_rename_object(self):
        guid = self.directory.add_user("jsmith")
        staff_guid = self.client.get_guid_by_distinguished_name(STAFF)

        self.assertTrue(self.client.move_rename_object(guid, staff_guid, "Jane Smith"))
        self.assertEqual(self.directory.dn_of(guid), f"CN=Jane Smith,{STAFF}")

    def test_move_rename_escapes_common_name(self):
        guid = self.directory.add_user("jsmith")
        self.assertTrue(self.client.move_rename_object(guid, new_common_name="Smith, Jane"))
        self.assertEqual(self.directory.dn_of(guid), f"CN=Smith\\, Jane,{USERS}")

    def test_move_rename_missing_object(self):
        self.assertFalse(self.client.move_rename_object("00000000-0000-0000-0000-000000000001", None, "x"))

    def test_close(self):
        connection = MagicMock()
        ActiveDirectoryClient(connection=connection).close()
        connection.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
