import getpass
import logging
from typing import Any, Dict, List, Optional

import keyring
from keyring.errors import KeyringError
from ldap3 import (
    ALL,
    BASE,
    FIRST,
    LEVEL,
    MODIFY_ADD,
    MODIFY_DELETE,
    MODIFY_REPLACE,
    SUBTREE,
    Connection,
    Server,
    ServerPool,
)
from ldap3.core.exceptions import LDAPException

from identity.exceptions import DirectoryOperationError

from ..attributes.snapshot import DirectoryEntry

logger = logging.getLogger(__name__)

_SCOPES = {"base": BASE, "level": LEVEL, "subtree": SUBTREE}
_MODIFY_OPERATIONS = {
    "add": MODIFY_ADD,
    "replace": MODIFY_REPLACE,
    "delete": MODIFY_DELETE,
}


class LDAPAdapter:
    """
    LDAP connection adapter for Active Directory.

    This class owns one authenticated session and exposes the handful of
    operations the directory model needs: search, add, modify, delete and
    rename. Search results come back as ``DirectoryEntry`` objects holding the
    raw attribute values. Failed operations raise ``DirectoryOperationError``
    with the LDAP result code preserved.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize LDAP adapter with configuration settings.

        Args:
            config: Dictionary containing LDAP connection settings.
                   Required keys:
                   - 'server': LDAP server hostname
                   - 'search_base': Base DN for searches
                   - 'user': Username for authentication
                   - 'keyring_service': Keyring service name for password

                   Optional keys with defaults:
                   - 'servers': Additional domain controllers tried in order (default: none)
                   - 'password': Bind password, skips keyring and prompt (default: none)
                   - 'port': LDAP port (default: 636 for SSL, 389 for non-SSL)
                   - 'use_ssl': Enable SSL/TLS (default: True)
                   - 'timeout': Connection timeout in seconds (default: 30)
                   - 'auto_bind': Auto-bind on connection (default: True)
                   - 'get_info': Server info level (default: ALL)
                   - 'default_page_size': Page size for paged searches (default: 1000)

        Raises:
            ValueError: If required configuration keys are missing
            TypeError: If configuration is not a dictionary
        """
        if not isinstance(config, dict):
            raise TypeError("Configuration must be a dictionary")

        required_keys = ["server", "search_base", "user", "keyring_service"]
        missing_keys = [key for key in required_keys if config.get(key) is None]
        if missing_keys:
            raise ValueError(f"Missing required configuration keys: {missing_keys}")

        self.server_hostname = config["server"]
        self.search_base = config["search_base"]
        self.user = config["user"]
        self.keyring_service = config["keyring_service"]

        self.servers = [self.server_hostname] + [
            server
            for server in config.get("servers") or []
            if server and server != self.server_hostname
        ]
        self.use_ssl = config.get("use_ssl", True)
        self.port = config.get("port", 636 if self.use_ssl else 389)
        self.timeout = config.get("timeout", 30)
        self.auto_bind = config.get("auto_bind", True)
        self.get_info = config.get("get_info", ALL)
        self.default_page_size = config.get("default_page_size", 1000)

        self._server = None
        self._connection = None
        self._password = config.get("password")

        logger.debug(f"LDAP adapter initialized for server: {self.server_hostname}")

    # Session management

    def _get_password(self) -> str:
        """
        Retrieve password from config, keyring or an interactive prompt.

        Returns:
            str: The password for LDAP authentication

        Raises:
            KeyboardInterrupt: If user cancels password prompt
        """
        if self._password:
            return self._password

        try:
            password = keyring.get_password(self.keyring_service, self.user)
            if password:
                logger.debug("Using password from keyring")
                self._password = password
                return password
        except KeyringError as e:
            logger.warning(f"Could not retrieve password from keyring: {e}")

        try:
            password = getpass.getpass(f"Enter LDAP password for {self.user}: ")
            self._password = password

            try:
                save_password = (
                    input("Save password to keyring? (y/n): ").lower().strip()
                )
                if save_password == "y":
                    keyring.set_password(self.keyring_service, self.user, password)
                    logger.info("Password saved to keyring")
            except (KeyringError, EOFError) as e:
                logger.warning(f"Could not save password to keyring: {e}")

            return password

        except KeyboardInterrupt:
            logger.info("Password prompt cancelled by user")
            raise

    def _create_server(self):
        """
        Create the ldap3 server object, or a pool when several controllers are configured.

        Raises:
            DirectoryOperationError: If server creation fails
        """
        if not self._server:
            try:
                servers = [
                    Server(
                        hostname,
                        use_ssl=self.use_ssl,
                        port=self.port,
                        get_info=self.get_info,
                        connect_timeout=self.timeout,
                    )
                    for hostname in self.servers
                ]
                if len(servers) == 1:
                    self._server = servers[0]
                else:
                    self._server = ServerPool(
                        servers, pool_strategy=FIRST, active=True, exhaust=False
                    )
                logger.debug(
                    f"LDAP server object created: {', '.join(self.servers)}:{self.port}"
                )
            except LDAPException as e:
                logger.error(f"Failed to create LDAP server object: {e}")
                raise DirectoryOperationError(
                    f"Server creation failed: {e}", operation="connect"
                ) from e

        return self._server

    def _create_connection(self) -> Connection:
        """
        Create and bind the LDAP connection.

        Range retrieval is left to ``RangedAttributeReader``, so ldap3's own
        automatic ranging is turned off.

        Raises:
            DirectoryOperationError: If connection or authentication fails
        """
        try:
            server = self._create_server()
            password = self._get_password()

            connection = Connection(
                server,
                user=self.user,
                password=password,
                auto_bind=self.auto_bind,
                auto_range=False,
                receive_timeout=self.timeout,
            )

            if connection.bound:
                logger.info(f"Successfully connected to {self.server_hostname}")
                return connection
            raise DirectoryOperationError(
                "Failed to bind to LDAP server", operation="bind"
            )

        except LDAPException as e:
            logger.error(f"LDAP connection failed: {e}")
            raise DirectoryOperationError(
                f"Connection failed: {e}", operation="bind"
            ) from e

    @property
    def connection(self) -> Connection:
        """The bound session, created on first use and re-created once closed."""
        if self._connection is None or self._connection.closed:
            self._connection = self._create_connection()
        return self._connection

    def close(self):
        if self._connection is not None:
            try:
                self._connection.unbind()
                logger.debug("LDAP connection closed")
            except LDAPException as e:
                logger.warning(f"Error while closing LDAP connection: {e}")
            finally:
                self._connection = None

    def __enter__(self) -> "LDAPAdapter":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def test_connection(self) -> bool:
        """
        Bind and run a minimal search to verify the configuration.

        Returns:
            bool: True if connection test succeeds, False otherwise
        """
        try:
            entries = self.search(
                "(objectClass=*)",
                attributes=["objectClass"],
                search_base=self.search_base,
                scope="base",
            )
            logger.info(f"Connection test successful: {len(entries)} entries at search base")
            return True
        except DirectoryOperationError as e:
            logger.error(f"LDAP connection test failed: {e}")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """
        Get information about the current LDAP configuration.

        Returns:
            Dict[str, Any]: Configuration information (passwords excluded)
        """
        return {
            "server": self.server_hostname,
            "servers": list(self.servers),
            "port": self.port,
            "use_ssl": self.use_ssl,
            "search_base": self.search_base,
            "user": self.user,
            "keyring_service": self.keyring_service,
            "timeout": self.timeout,
            "default_page_size": self.default_page_size,
        }

    def __str__(self) -> str:
        ssl_status = "SSL" if self.use_ssl else "non-SSL"
        return f"LDAPAdapter({self.server_hostname}:{self.port}, {ssl_status}, user={self.user})"

    def __repr__(self) -> str:
        return (
            f"LDAPAdapter(server='{self.server_hostname}', port={self.port}, "
            f"use_ssl={self.use_ssl}, search_base='{self.search_base}', "
            f"user='{self.user}', keyring_service='{self.keyring_service}')"
        )

    # Core operations

    def search(
        self,
        search_filter: str,
        attributes: Optional[List[str]] = None,
        search_base: Optional[str] = None,
        scope: str = "subtree",
        page_size: Optional[int] = None,
        types_only: bool = False,
    ) -> List[DirectoryEntry]:
        """
        Search the directory and return every matching entry.

        Subtree and one-level searches use the simple paged results control
        so result sets larger than the server's size limit come back complete.

        Args:
            search_filter: LDAP filter string (e.g., '(objectClass=user)')
            attributes: Attributes to retrieve (None for all user attributes)
            search_base: Base DN for search (defaults to adapter's search_base)
            scope: Search scope - 'base', 'level', or 'subtree' (default: 'subtree')
            page_size: Page size for pagination (defaults to adapter's configured size)
            types_only: Return attribute names without values

        Returns:
            List[DirectoryEntry]: Matching entries with raw attribute values

        Raises:
            DirectoryOperationError: If the search fails
            ValueError: If parameters are invalid
        """
        if not search_filter or not isinstance(search_filter, str):
            raise ValueError("search_filter must be a non-empty string")
        if scope.lower() not in _SCOPES:
            raise ValueError(f"scope must be one of: {list(_SCOPES.keys())}")

        base_dn = search_base if search_base is not None else self.search_base
        search_attributes = list(attributes) if attributes else ["*"]
        ldap_scope = _SCOPES[scope.lower()]

        logger.debug(
            f"Executing search: filter='{search_filter}', base='{base_dn}', "
            f"scope='{scope}', attributes={search_attributes}"
        )

        try:
            conn = self.connection
            if ldap_scope == BASE:
                conn.search(
                    search_base=base_dn,
                    search_filter=search_filter,
                    search_scope=ldap_scope,
                    attributes=search_attributes,
                    types_only=types_only,
                )
                responses = conn.response or []
                self._check_result(conn, "search", base_dn, allowed=(0, 32))
            else:
                responses = conn.extend.standard.paged_search(
                    search_base=base_dn,
                    search_filter=search_filter,
                    search_scope=ldap_scope,
                    attributes=search_attributes,
                    types_only=types_only,
                    paged_size=page_size or self.default_page_size,
                    generator=False,
                )
                self._check_result(conn, "search", base_dn, allowed=(0, 32))
        except LDAPException as e:
            logger.error(f"LDAP search failed: {e}")
            raise DirectoryOperationError(
                f"Search operation failed: {e}", operation="search", dn=base_dn
            ) from e

        entries = [
            DirectoryEntry(response.get("dn"), response.get("raw_attributes") or {})
            for response in responses or []
            if isinstance(response, dict) and response.get("type") == "searchResEntry"
        ]
        logger.debug(f"Search completed successfully: {len(entries)} results returned")
        return entries

    def get_root_dse_attribute(self, name: str) -> Optional[str]:
        """Read one attribute of the root DSE, e.g. ``defaultNamingContext``."""
        entries = self.search(
            "(objectClass=*)", attributes=[name], search_base="", scope="base"
        )
        if not entries:
            return None
        values = entries[0].get(name)
        if not values:
            return None
        value = values[0]
        return value.decode("utf-8") if isinstance(value, bytes) else str(value)

    def add(self, dn: str, attributes: Dict[str, Any]) -> bool:
        """
        Create an entry.

        Raises:
            DirectoryOperationError: If the server rejects the entry
        """
        if not dn:
            raise ValueError("dn is required")
        try:
            self.connection.add(dn, attributes=attributes)
        except LDAPException as e:
            raise DirectoryOperationError(
                f"Add of {dn} failed: {e}", operation="add", dn=dn
            ) from e
        self._check_result(self.connection, "add", dn)
        logger.info(f"Added entry {dn}")
        return True

    def modify(
        self,
        dn: str,
        attribute_name: str,
        operation: str,
        values: Optional[List[Any]] = None,
    ) -> bool:
        """
        Apply one add, replace or delete to an attribute of an entry.

        A delete without values removes the whole attribute.

        Raises:
            DirectoryOperationError: If the server rejects the change
            ValueError: If the operation is unknown
        """
        if operation not in _MODIFY_OPERATIONS:
            raise ValueError(f"operation must be one of: {list(_MODIFY_OPERATIONS.keys())}")
        changes = {attribute_name: [(_MODIFY_OPERATIONS[operation], list(values or []))]}
        try:
            self.connection.modify(dn, changes)
        except LDAPException as e:
            raise DirectoryOperationError(
                f"Modify of {attribute_name} on {dn} failed: {e}",
                operation=operation,
                dn=dn,
            ) from e
        self._check_result(self.connection, operation, dn)
        return True

    def delete(self, dn: str) -> bool:
        try:
            self.connection.delete(dn)
        except LDAPException as e:
            raise DirectoryOperationError(
                f"Delete of {dn} failed: {e}", operation="delete", dn=dn
            ) from e
        self._check_result(self.connection, "delete", dn)
        logger.info(f"Deleted entry {dn}")
        return True

    def rename(self, dn: str, new_parent_dn: Optional[str], new_relative_name: str) -> bool:
        """
        Move and/or rename an entry.

        Args:
            dn: Current distinguished name
            new_parent_dn: New container, or None to stay in place
            new_relative_name: New relative name, e.g. ``CN=jsmith2``
        """
        try:
            self.connection.modify_dn(
                dn, new_relative_name, delete_old_dn=True, new_superior=new_parent_dn
            )
        except LDAPException as e:
            raise DirectoryOperationError(
                f"Rename of {dn} failed: {e}", operation="rename", dn=dn
            ) from e
        self._check_result(self.connection, "rename", dn)
        logger.info(f"Renamed {dn} to {new_relative_name} under {new_parent_dn or 'same parent'}")
        return True

    @staticmethod
    def _check_result(conn: Connection, operation: str, dn: str, allowed=(0,)):
        result = conn.result or {}
        code = result.get("result", 0)
        if code in allowed:
            return
        description = result.get("description")
        message = result.get("message")
        logger.error(f"LDAP {operation} on {dn} failed: {code} {description} {message}")
        raise DirectoryOperationError(
            f"LDAP {operation} on {dn} failed: {description} ({code}) {message}".strip(),
            operation=operation,
            dn=dn,
            result_code=code,
            description=description,
        )
