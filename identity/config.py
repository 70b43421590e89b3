import os
from typing import Any, Dict, List

from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "y")


class IdentityConfig:
    """Centralized directory and identity provider configuration management."""

    @staticmethod
    def get_active_directory_config() -> Dict[str, Any]:
        """
        Get Active Directory connection settings from environment variables.

        The returned dictionary is accepted as is by ``LDAPAdapter`` and
        ``ActiveDirectoryClient``.
        """
        use_ssl = _get_bool("AD_USE_SSL", "true")
        servers: List[str] = [
            server.strip()
            for server in os.getenv("AD_SERVER", "").split(",")
            if server.strip()
        ]

        config = {
            "server": servers[0] if servers else None,
            "servers": servers,
            "domain": os.getenv("AD_DOMAIN"),
            "site": os.getenv("AD_SITE"),
            "search_base": os.getenv("AD_SEARCH_BASE", ""),
            "user": os.getenv("AD_USER"),
            "keyring_service": os.getenv("AD_KEYRING_SERVICE", "directory_identity_hub"),
            "use_ssl": use_ssl,
            "port": int(os.getenv("AD_PORT", "636" if use_ssl else "389")),
            "timeout": int(os.getenv("AD_TIMEOUT", "30")),
            "default_page_size": int(os.getenv("AD_PAGE_SIZE", "1000")),
            "max_group_depth": int(os.getenv("AD_MAX_GROUP_DEPTH", "32")),
        }
        return config

    @staticmethod
    def get_okta_config() -> Dict[str, Any]:
        """Get Okta tenant settings from environment variables."""
        return {
            "tenant": os.getenv("OKTA_TENANT"),
            "api_token": os.getenv("OKTA_API_TOKEN"),
            "preview": _get_bool("OKTA_PREVIEW", "false"),
        }

    @staticmethod
    def get_example_environment() -> Dict[str, Dict[str, str]]:
        """Get example .env settings for each backend."""
        return {
            "active_directory": {
                "AD_SERVER": "dc1.example.edu,dc2.example.edu",
                "AD_DOMAIN": "example.edu",
                "AD_SITE": "Default-First-Site-Name",
                "AD_SEARCH_BASE": "DC=example,DC=edu",
                "AD_USER": "EXAMPLE\\svc-identity",
                "AD_KEYRING_SERVICE": "directory_identity_hub",
                "AD_USE_SSL": "true",
                "AD_TIMEOUT": "30",
            },
            "okta": {
                "OKTA_TENANT": "example",
                "OKTA_API_TOKEN": "your_okta_api_token_here",
                "OKTA_PREVIEW": "false",
            },
        }
