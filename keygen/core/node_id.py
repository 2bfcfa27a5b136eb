#!/usr/bin/env python3
"""
Node identity resolution for the Snowflake key generator.

The node id disambiguates ids minted by different hosts. It is derived from
the host's network hardware addresses, falling back to a cryptographically
strong random value when no address can be read. An explicit override
(the NODE_ID setting) takes precedence over both.
"""

import hashlib
import secrets
from typing import List, Optional

import psutil
from loguru import logger

from keygen.core.const import MAXIMUM_NODE_ID


def _normalize_address(address: str) -> str:
    return "".join(ch for ch in address if ch.isalnum()).upper()


def hardware_addresses() -> List[str]:
    """
    Enumerate network hardware addresses in interface enumeration order.

    Returns:
        Addresses as uppercase hex digits without separators. All-zero
        (loopback) addresses are skipped.
    """
    addresses = []
    for snics in psutil.net_if_addrs().values():
        for snic in snics:
            if snic.family != psutil.AF_LINK or not snic.address:
                continue
            address = _normalize_address(snic.address)
            if not address or set(address) == {"0"}:
                continue
            addresses.append(address)
    return addresses


def node_id_from_addresses(addresses: List[str]) -> Optional[int]:
    """
    Hash the concatenated hardware addresses down to a node id.

    Args:
        addresses: Hex-encoded hardware addresses

    Returns:
        Node id in [0, MAXIMUM_NODE_ID], or None if no address was given
    """
    if not addresses:
        return None
    digest = hashlib.sha256("".join(addresses).encode("ascii")).digest()
    return int.from_bytes(digest, "big") & MAXIMUM_NODE_ID


def random_node_id() -> int:
    """Random node id from the system CSPRNG."""
    return secrets.randbits(64) & MAXIMUM_NODE_ID


def resolve_node_id(override: Optional[int] = None) -> int:
    """
    Resolve the node id for this process.

    Hardware enumeration failures are logged and absorbed; they never
    reach the caller.

    Args:
        override: Explicit node id. Returned as-is so the generator can
            reject an out-of-range value.

    Returns:
        Node id
    """
    if override is not None:
        logger.info(f"Using configured node id {override}")
        return override

    logger.info("Creation of node id starts...")
    try:
        addresses = hardware_addresses()
    except (OSError, RuntimeError, psutil.Error) as e:
        logger.error(f"Could not get network interfaces: {str(e)}. Creating node id randomly")
        addresses = []
    else:
        if not addresses:
            logger.warning("No network hardware address found. Creating node id randomly")

    node_id = node_id_from_addresses(addresses)
    if node_id is None:
        node_id = random_node_id()
        logger.info(f"Resolved random node id {node_id}")
    else:
        logger.info(f"Resolved node id {node_id} from {len(addresses)} hardware address(es)")

    return node_id
