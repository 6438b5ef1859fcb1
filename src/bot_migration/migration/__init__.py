"""
Import pipeline for Bot Bridge.

This module recreates archived bots, packages and their leaf resources in
a destination store, remapping every reference to the newly assigned ids.
"""

from bot_migration.migration.creator import ResourceCreator
from bot_migration.migration.descriptors import DescriptorMigrator
from bot_migration.migration.models import (
    BotImportResult,
    ImportOutcome,
    ImportReport,
    ImportState,
    ImportStatus,
)
from bot_migration.migration.orchestrator import ImportOrchestrator
from bot_migration.migration.service import ImportService, PendingImport

__all__ = [
    # Models
    "BotImportResult",
    "ImportOutcome",
    "ImportReport",
    "ImportState",
    "ImportStatus",
    # Pipeline
    "ResourceCreator",
    "DescriptorMigrator",
    "ImportOrchestrator",
    # Caller-facing service
    "ImportService",
    "PendingImport",
]
