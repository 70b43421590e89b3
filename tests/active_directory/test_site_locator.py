import unittest
from unittest.mock import MagicMock

import dns.exception
import dns.name

from active_directory.adapters.site_locator import get_site_domain_controllers, site_srv_name


def srv(target, priority=0, weight=100):
    record = MagicMock()
    record.priority = priority
    record.weight = weight
    record.target = dns.name.from_text(target)
    return record


class TestSiteLocator(unittest.TestCase):
    """Test cases for SRV based domain controller discovery."""

    def setUp(self):
        self.resolver = MagicMock()

    def test_srv_name(self):
        self.assertEqual(
            site_srv_name("example.edu", "Campus"), "_ldap._tcp.Campus._sites.dc._msdcs.example.edu"
        )

    def test_controllers_sorted_by_priority_and_weight(self):
        self.resolver.resolve.return_value = [
            srv("dc3.example.edu.", priority=10),
            srv("dc2.example.edu.", priority=0, weight=50),
            srv("dc1.example.edu.", priority=0, weight=100),
        ]

        controllers = get_site_domain_controllers("example.edu", "Campus", resolver=self.resolver)

        self.resolver.resolve.assert_called_once_with(
            "_ldap._tcp.Campus._sites.dc._msdcs.example.edu", "SRV"
        )
        self.assertEqual(controllers, ["dc1.example.edu", "dc2.example.edu", "dc3.example.edu"])

    def test_lookup_failure_returns_empty(self):
        self.resolver.resolve.side_effect = dns.exception.Timeout()
        with self.assertLogs("active_directory.adapters.site_locator", level="WARNING"):
            self.assertEqual(
                get_site_domain_controllers("example.edu", "Campus", resolver=self.resolver), []
            )

    def test_blank_arguments(self):
        self.assertEqual(get_site_domain_controllers("", "Campus", resolver=self.resolver), [])
        self.assertEqual(get_site_domain_controllers("example.edu", " ", resolver=self.resolver), [])
        self.resolver.resolve.assert_not_called()


if __name__ == "__main__":
    unittest.main()
