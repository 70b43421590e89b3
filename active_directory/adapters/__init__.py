from .ldap_adapter import LDAPAdapter
from .site_locator import get_site_domain_controllers

__all__ = ['LDAPAdapter', 'get_site_domain_controllers']
