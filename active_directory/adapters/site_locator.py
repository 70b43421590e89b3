import logging
from typing import List, Optional

import dns.exception
import dns.resolver

logger = logging.getLogger(__name__)


def site_srv_name(domain_name: str, site_name: str) -> str:
    return f"_ldap._tcp.{site_name}._sites.dc._msdcs.{domain_name}"


def get_site_domain_controllers(
    domain_name: str, site_name: str, resolver: Optional[dns.resolver.Resolver] = None
) -> List[str]:
    """
    Look up the domain controllers registered for an Active Directory site.

    Args:
        domain_name: DNS name of the domain, e.g. ``example.edu``
        site_name: Active Directory site name
        resolver: Resolver to use (defaults to the system resolver)

    Returns:
        List[str]: Controller host names ordered by SRV priority and weight,
        or an empty list when the lookup fails.
    """
    if not domain_name or not domain_name.strip() or not site_name or not site_name.strip():
        return []

    query = site_srv_name(domain_name.strip(), site_name.strip())
    resolver = resolver or dns.resolver.Resolver()

    try:
        answer = resolver.resolve(query, "SRV")
    except dns.exception.DNSException as e:
        logger.warning(f"⚠️  SRV lookup for {query} failed: {e}")
        return []

    records = sorted(answer, key=lambda record: (record.priority, -record.weight))
    controllers = [record.target.to_text(omit_final_dot=True) for record in records]
    logger.debug(f"Found {len(controllers)} domain controllers for site {site_name}")
    return controllers
