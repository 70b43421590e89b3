"""
Directory Identity Hub
======================

A set of Python modules to read and manage users and groups across directory
services through one common abstraction.

This package provides adapters, facades, and services for working with:
- Active Directory (LDAP)
- Okta
- Role-style group lookups built on top of either

For more information, see the README.md file.
"""

__version__ = "0.1.0"
