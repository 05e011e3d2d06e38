"""LifeOS server entry point — ``python -m lifeos.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from lifeos.core.config.settings import Settings, get_settings
from lifeos.core.server.app import SERVER_NAME, create_app

logger = logging.getLogger(__name__)

_LOOPBACK_NAMES = frozenset({"localhost", "ip6-localhost"})
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _is_loopback_host(host: str) -> bool:
    name = host.strip().strip("[]").lower()
    if name in _LOOPBACK_NAMES:
        return True
    try:
        return ip_address(name).is_loopback
    except ValueError:
        return False


def check_bind_address(settings: Settings) -> None:
    """Refuse a public bind: the XP ledger and its reset/delete tools have no auth.

    Raises:
        RuntimeError: If the host is not loopback and
            LIFEOS_ALLOW_INSECURE_BIND is not set.
    """
    if _is_loopback_host(settings.lifeos_host):
        return
    if not settings.lifeos_allow_insecure_bind:
        raise RuntimeError(
            f"{settings.lifeos_host} is not a loopback address. The profile strength "
            "server has no auth layer; set LIFEOS_ALLOW_INSECURE_BIND=true to bind it anyway."
        )
    logger.warning("Binding to %s without an auth layer", settings.lifeos_host)


def run() -> None:
    """Start the profile strength MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.lifeos_log_level.upper(), logging.INFO),
        format=_LOG_FORMAT,
    )
    check_bind_address(settings)

    server = create_app()
    logger.info(
        "%s listening on http://%s:%d (data source: %s)",
        SERVER_NAME,
        settings.lifeos_host,
        settings.lifeos_port,
        settings.data_source,
    )
    server.run(transport="streamable-http", host=settings.lifeos_host, port=settings.lifeos_port)


if __name__ == "__main__":
    run()
