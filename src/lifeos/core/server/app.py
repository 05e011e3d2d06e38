"""LifeOS Profile Strength MCP Server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from fastmcp import FastMCP

from lifeos.core.audit.logger import AuditLogger
from lifeos.core.config.settings import Settings, get_settings
from lifeos.core.storage.database import ProfileDatabase
from lifeos.core.storage.encryption import FieldEncryptor
from lifeos.core.storage.repository import ProfileStrengthRepository
from lifeos.domains.profile_strength.domain_logic.refresh import ProfileStrengthService
from lifeos.domains.profile_strength.domain_logic.strength_config import (
    StrengthConfig,
    load_strength_config,
)
from lifeos.domains.profile_strength.sources import ProfileDataSource
from lifeos.domains.profile_strength.sources.json_file import JsonFileDataSource
from lifeos.domains.profile_strength.sources.providers import MockProfileDataSource
from lifeos.domains.profile_strength.tools.audit_tools import register_audit_tools
from lifeos.domains.profile_strength.tools.data_management_tools import (
    register_data_management_tools,
)
from lifeos.domains.profile_strength.tools.profile_strength_tools import (
    register_profile_strength_tools,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "LifeOS Profile Strength"
SERVER_VERSION = "0.1.0"


def _build_data_source(settings: Settings) -> ProfileDataSource:
    if settings.data_source == "json_file":
        logger.info("Using JSON export data source: %s", settings.data_file_path)
        return JsonFileDataSource(settings.data_file_path)
    logger.info("Using mock (demo) profile data source")
    return MockProfileDataSource()


def _build_storage(settings: Settings) -> ProfileDatabase:
    """Open the ledger bank; without a key it lives in memory for this process only."""
    if settings.encryption_key:
        database = ProfileDatabase(settings.db_path)
    else:
        logger.warning(
            "No ENCRYPTION_KEY configured: XP ledger is in-memory and lost on restart. "
            "Set ENCRYPTION_KEY to persist it."
        )
        database = ProfileDatabase(":memory:")
    database.initialize()
    return database


def create_app(
    *,
    data_source_override: ProfileDataSource | None = None,
    repository_override: ProfileStrengthRepository | None = None,
    audit_logger_override: AuditLogger | None = None,
    config_override: StrengthConfig | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastMCP:
    """Create and configure the profile strength MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Loads the area weight configuration
    3. Initializes the profile data source (mock or JSON export)
    4. Initializes the encrypted ledger bank and audit trail
    5. Registers all tools

    Raises:
        StrengthConfigError: If the weight document is malformed.
        EncryptionError: If a configured key is not a valid Fernet key.
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "LifeOS profile strength server. Scores how complete a user's goals, "
            "habits, journal, vision board, life wheel and identity profile are, "
            "suggests the next small task per area, and awards one-time XP when "
            "those tasks get done."
        ),
    )

    # --- Scoring configuration ---
    config = config_override or load_strength_config(settings.strength_config_path or None)

    # --- Profile data source ---
    data_source = data_source_override or _build_data_source(settings)

    # --- Ledger bank ---
    database: ProfileDatabase | None = None
    if repository_override is not None:
        repository = repository_override
    else:
        database = _build_storage(settings)
        if settings.encryption_key:
            encryptor = FieldEncryptor(settings.encryption_key, settings.previous_keys())
        else:
            encryptor = FieldEncryptor(FieldEncryptor.generate_key())
        repository = ProfileStrengthRepository(database, encryptor)
        logger.info(
            "Ledger bank initialized: %s (schema v%d)",
            database.db_path,
            database.get_schema_version(),
        )

    if audit_logger_override is not None:
        audit_logger: AuditLogger | None = audit_logger_override
    elif database is not None:
        audit_logger = AuditLogger(database)
    else:
        audit_logger = None

    service_kwargs = {}
    if clock is not None:
        service_kwargs["clock"] = clock
    service = ProfileStrengthService(
        data_source,
        repository,
        config=config,
        audit_logger=audit_logger,
        journal_limit=settings.journal_fetch_limit,
        checkin_limit=settings.checkin_fetch_limit,
        debug=settings.profile_strength_debug,
        **service_kwargs,
    )

    # --- Register tools ---
    @server.tool
    async def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "data_source": data_source.data_source,
            "weights_source": config.source,
            "persistent_storage": bool(settings.encryption_key) or repository_override is not None,
            "audit_enabled": audit_logger is not None,
            "snapshots_stored": repository.count_snapshots(),
        }

    register_profile_strength_tools(server, service, data_source, audit_logger)
    register_data_management_tools(server, repository, audit_logger)
    if audit_logger is not None:
        register_audit_tools(server, audit_logger)
    logger.info("Profile strength tools registered")

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when this module is loaded directly (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
