"""Topic synchronization driver.

One :class:`TopicImporter` is bound to one archive source and one target
project. ``import_topics`` walks the states

    IDLE -> ARCHIVE_OPEN -> GATE_EVALUATED -> CACHE_CLEARED -> SYNCHRONIZING -> DONE

and ends in ABORTED on any fatal error. Fatal errors are not logged or
re-raised here: they come back inside :class:`ImportResult` with the archive
name and the stage attached, the original exception untouched. Issues saved
before an abort stay saved.

Individual topics never abort the loop; their validation errors are recorded
in the matching :class:`ImportOutcome`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .archive import ArchiveHandle, ArchiveSource, describe_source, list_topic_entries, open_archive
from .concurrency import PROJECT_LOCKS, ConcurrencyConfig, map_ordered
from .directory import LicenseService, UserDirectory
from .errors import ExtractionFailed
from .extractor import EntryExtractor, MarkupExtractor
from .invitation import InvitationGate
from .logging import StructuredLogger, get_logger
from .models import DirectoryUser, ImportOptions, ImportOutcome, TopicEntry, TopicSummary
from .observability import get_tracer
from .reconcile import ParticipantReconciler
from .tracker import IssueMaterializer


class ImportState(str, Enum):
    IDLE = "idle"
    ARCHIVE_OPEN = "archive_open"
    GATE_EVALUATED = "gate_evaluated"
    CACHE_CLEARED = "cache_cleared"
    SYNCHRONIZING = "synchronizing"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class ImportFailure:
    archive: str
    stage: ImportState
    cause: BaseException

    def __str__(self) -> str:
        return f"Failed to import BCF archive {self.archive} ({self.stage.value}): {self.cause}"


@dataclass
class ImportResult:
    archive: str
    state: ImportState = ImportState.IDLE
    outcomes: list[ImportOutcome] | None = None
    invited: list[DirectoryUser] = field(default_factory=list)
    failure: ImportFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def unwrap(self) -> list[ImportOutcome]:
        """Return the outcomes or re-raise the fatal cause as is."""
        if self.failure is not None:
            raise self.failure.cause
        return list(self.outcomes or [])


class TopicImporter:
    def __init__(
        self,
        source: ArchiveSource,
        project_id: str,
        *,
        actor_id: str,
        directory: UserDirectory,
        licensing: LicenseService,
        materializer: IssueMaterializer,
        extractor: EntryExtractor | None = None,
        concurrency: ConcurrencyConfig | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.source = source
        self.archive_name = describe_source(source)
        self.project_id = project_id
        self.actor_id = actor_id
        self.materializer = materializer
        self.extractor: EntryExtractor = extractor or MarkupExtractor()
        self.concurrency = concurrency or ConcurrencyConfig()
        self.logger = logger or get_logger()
        self.gate = InvitationGate(directory, licensing, self.logger)
        self.reconciler = ParticipantReconciler(self.listing, directory, project_id)
        self.state = ImportState.IDLE
        self._listing: tuple[TopicSummary, ...] | None = None
        self._open_handle: ArchiveHandle | None = None

    # --- listing & derived sets ---------------------------------------------
    def listing(self) -> tuple[TopicSummary, ...]:
        """Extract every topic of the archive once; any bad entry fails the listing."""
        if self._listing is None:
            if self._open_handle is not None:
                self._listing = self._extract_all(self._open_handle)
            else:
                with get_tracer().start_as_current_span("bcf.listing"), open_archive(self.source) as handle:
                    self._listing = self._extract_all(handle)
        return self._listing

    def _extract_all(self, handle: ArchiveHandle) -> tuple[TopicSummary, ...]:
        payloads = [(entry, handle.read(entry)) for entry in list_topic_entries(handle)]
        summaries = map_ordered(self._extract_for_listing, payloads, self.concurrency)
        self.logger.log_operation("listing_complete", archive=self.archive_name, topic_count=len(summaries))
        return tuple(summaries)

    def _extract_for_listing(self, payload: tuple[TopicEntry, bytes]) -> TopicSummary:
        entry, data = payload
        try:
            return self.extractor.extract(entry, data)
        except Exception as exc:
            raise ExtractionFailed(entry.name, exc) from exc

    def all_people(self) -> frozenset[str]:
        return self.reconciler.all_people()

    def all_mails(self) -> frozenset[str]:
        return self.reconciler.all_mails()

    def known_users(self) -> tuple[DirectoryUser, ...]:
        return self.reconciler.known_users()

    def unknown_mails(self) -> frozenset[str]:
        return self.reconciler.unknown_mails()

    def members(self) -> tuple[DirectoryUser, ...]:
        return self.reconciler.members()

    def non_members(self) -> tuple[DirectoryUser, ...]:
        return self.reconciler.non_members()

    def invalid_people(self) -> frozenset[str]:
        return self.reconciler.invalid_people()

    def clear_cache(self) -> None:
        self.reconciler.clear_cache()

    # --- import --------------------------------------------------------------
    def _transition(self, state: ImportState) -> None:
        self.state = state
        self.logger.debug("import state", state=state.value, archive=self.archive_name)

    def import_topics(self, options: ImportOptions | None = None) -> ImportResult:
        options = options or ImportOptions()
        result = ImportResult(archive=self.archive_name)
        self.gate.provisioned = []
        self._transition(ImportState.IDLE)
        try:
            with get_tracer().start_as_current_span("bcf.import") as span, open_archive(self.source) as handle:
                span.set_attribute("bcf.archive", self.archive_name)
                self._open_handle = handle
                self._transition(ImportState.ARCHIVE_OPEN)
                # Derived sets are scoped to a single import.
                self.reconciler.clear_cache()
                if options.invite_requested:
                    result.invited = self.gate.run(
                        self.reconciler,
                        project_id=self.project_id,
                        actor_id=self.actor_id,
                        options=options,
                    )
                self._transition(ImportState.GATE_EVALUATED)
                self.reconciler.clear_cache()
                self._transition(ImportState.CACHE_CLEARED)
                self._transition(ImportState.SYNCHRONIZING)
                result.outcomes = self._synchronize(handle)
                span.set_attribute("bcf.topics", len(result.outcomes))
                self._transition(ImportState.DONE)
        except Exception as exc:
            result.failure = ImportFailure(self.archive_name, self.state, exc)
            result.invited = list(self.gate.provisioned)
            self._transition(ImportState.ABORTED)
        finally:
            self._open_handle = None
        result.state = self.state
        return result

    def _synchronize(self, handle: ArchiveHandle) -> list[ImportOutcome]:
        lock = PROJECT_LOCKS.for_project(self.project_id)
        outcomes: list[ImportOutcome] = []
        for entry in list_topic_entries(handle):
            record = self.extractor.extract(entry, handle.read(entry))
            with lock:
                issue = self.materializer.build(
                    record, project_id=self.project_id, actor_id=self.actor_id
                )
                saved = False
                if not _errors_of(issue):
                    saved = bool(self.materializer.save(issue))
            errors = _errors_of(issue)
            outcome = ImportOutcome(
                entry_name=entry.name,
                uuid=record.uuid,
                issue=issue,
                errors=errors,
                saved=saved and not errors,
            )
            if outcome.ok:
                self.logger.log_topic_action(
                    "saved", record.uuid, issue_number=getattr(issue, "number", None)
                )
            outcomes.append(outcome)
        return outcomes


def _errors_of(issue: Any) -> tuple[str, ...]:
    errors: Sequence[Any] = getattr(issue, "errors", None) or ()
    return tuple(str(e) for e in errors)


__all__ = ["ImportFailure", "ImportResult", "ImportState", "TopicImporter"]
