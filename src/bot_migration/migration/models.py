"""
Result models for bundle imports.

These dataclasses track the progress of each archived bot through the
import pipeline and describe the outcome handed back to the caller.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from bot_migration.references import Reference


class ImportState(str, Enum):
    """Pipeline states of one bot import.

    ``FAILED`` is terminal and reachable from every other state.
    """

    EXTRACTED = "extracted"
    LEAVES_CREATED = "leaves_created"
    MID_LEVEL_REWRITTEN = "mid_level_rewritten"
    MID_LEVEL_CREATED = "mid_level_created"
    TOP_LEVEL_REWRITTEN = "top_level_rewritten"
    TOP_LEVEL_CREATED = "top_level_created"
    DESCRIPTORS_MIGRATED = "descriptors_migrated"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportStatus(str, Enum):
    """Caller-facing outcome of an import request."""

    CREATED = "created"
    FAILED = "failed"
    TIMEOUT = "timeout"


STATUS_CODES = {
    ImportStatus.CREATED: 201,
    ImportStatus.FAILED: 500,
    ImportStatus.TIMEOUT: 504,
}


@dataclass
class BotImportResult:
    """Progress and outcome of importing one archived bot.

    Attributes:
        bot_file: Name of the archived bot file
        state: Last state reached
        old_reference: Reference of the bot in the archive
        new_reference: Reference assigned by the destination, once created
        created: Every reference created for this bot, in creation order
        reached: New references the bot depends on, including ones created
            earlier for another bot
        descriptor_warnings: Descriptor migrations that failed (non-fatal)
        error: Message of the error that abandoned this bot
        error_type: Class name of that error
    """

    bot_file: str
    state: ImportState = ImportState.EXTRACTED
    old_reference: Reference | None = None
    new_reference: Reference | None = None
    created: list[Reference] = field(default_factory=list)
    reached: list[Reference] = field(default_factory=list)
    descriptor_warnings: list[str] = field(default_factory=list)
    error: str | None = None
    error_type: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == ImportState.COMPLETED

    def fail(self, error: Exception) -> None:
        self.state = ImportState.FAILED
        self.error = str(error)
        self.error_type = type(error).__name__


@dataclass
class ImportReport:
    """Results of every bot found in one archive."""

    bundle_root: Path
    results: list[BotImportResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.results) and all(result.succeeded for result in self.results)

    @property
    def locations(self) -> list[str]:
        return [
            result.new_reference.uri
            for result in self.results
            if result.succeeded and result.new_reference is not None
        ]

    @property
    def failures(self) -> list[BotImportResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def orphans(self) -> list[Reference]:
        """Created resources that no successfully created bot depends on.

        Bots share what was created for each other, so a resource created
        for a failed bot is only an orphan if no sibling bot reached it.
        """
        reached = {ref for result in self.results if result.succeeded for ref in result.reached}
        orphans: list[Reference] = []
        for result in self.results:
            for ref in result.created:
                if ref not in reached and ref not in orphans:
                    orphans.append(ref)
        return orphans


@dataclass
class ImportOutcome:
    """What the caller of an import receives.

    ``location`` is the first created bot; ``locations`` lists every bot
    created from the archive.
    """

    status: ImportStatus
    import_id: str
    location: str | None = None
    locations: list[str] = field(default_factory=list)
    error: str | None = None
    report: ImportReport | None = None

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.status]

    @classmethod
    def from_report(cls, import_id: str, report: ImportReport) -> "ImportOutcome":
        locations = report.locations
        if report.succeeded:
            return cls(
                status=ImportStatus.CREATED,
                import_id=import_id,
                location=locations[0],
                locations=locations,
                report=report,
            )

        if not report.results:
            error = "Archive contains no bot"
        else:
            error = "; ".join(
                f"{result.bot_file}: {result.error_type}: {result.error}"
                for result in report.failures
            )
        return cls(
            status=ImportStatus.FAILED,
            import_id=import_id,
            location=locations[0] if locations else None,
            locations=locations,
            error=error,
            report=report,
        )

    @classmethod
    def failed(cls, import_id: str, error: str) -> "ImportOutcome":
        return cls(status=ImportStatus.FAILED, import_id=import_id, error=error)

    @classmethod
    def timed_out(cls, import_id: str, timeout: float) -> "ImportOutcome":
        return cls(
            status=ImportStatus.TIMEOUT,
            import_id=import_id,
            error=f"Import did not finish within {timeout:g} seconds",
        )
