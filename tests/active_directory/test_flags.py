import unittest

from active_directory.models.flags import (
    GroupType,
    UserAccountControl,
    group_type_from_attribute,
    group_type_name,
    group_type_to_attribute,
    parse_group_type,
    user_account_control_names,
)


class TestGroupTypeFlags(unittest.TestCase):
    # ----- Test parse_group_type -----

    def test_security_is_global_security(self):
        self.assertEqual(parse_group_type("Security"), GroupType.SECURITY | GroupType.GLOBAL)

    def test_names_are_case_insensitive(self):
        self.assertEqual(parse_group_type("domainlocal"), GroupType.DOMAIN_LOCAL)
        self.assertEqual(parse_group_type("Domain Local"), GroupType.DOMAIN_LOCAL)
        self.assertEqual(parse_group_type("UNIVERSAL"), GroupType.UNIVERSAL)

    def test_unknown_type_raises(self):
        with self.assertRaises(ValueError):
            parse_group_type("Distribution")
        with self.assertRaises(ValueError):
            parse_group_type("")

    # ----- Test attribute encoding -----

    def test_security_flag_is_written_signed(self):
        self.assertEqual(group_type_to_attribute(GroupType.SECURITY | GroupType.GLOBAL), "-2147483646")
        self.assertEqual(group_type_to_attribute(GroupType.UNIVERSAL), "8")

    def test_signed_value_decodes(self):
        flags = group_type_from_attribute(-2147483640)
        self.assertEqual(flags, GroupType.SECURITY | GroupType.UNIVERSAL)
        self.assertIsNone(group_type_from_attribute(None))

    def test_unknown_bits_are_dropped(self):
        self.assertEqual(group_type_from_attribute(0x00000001 | 0x00000002), GroupType.GLOBAL)

    # ----- Test names -----

    def test_group_type_name_order(self):
        self.assertEqual(group_type_name(GroupType.DOMAIN_LOCAL | GroupType.SECURITY), "DomainLocal")
        self.assertEqual(group_type_name(GroupType.GLOBAL | GroupType.SECURITY), "Global")
        self.assertEqual(group_type_name(GroupType.SECURITY), "Security")
        self.assertEqual(group_type_name(GroupType.UNIVERSAL), "Universal")
        self.assertIsNone(group_type_name(None))


class TestUserAccountControl(unittest.TestCase):
    def test_flag_names(self):
        value = UserAccountControl.NORMAL_ACCOUNT | UserAccountControl.ACCOUNTDISABLE
        self.assertEqual(user_account_control_names(int(value)), ["ACCOUNTDISABLE", "NORMAL_ACCOUNT"])
        self.assertEqual(user_account_control_names(None), [])


if __name__ == "__main__":
    unittest.main()
