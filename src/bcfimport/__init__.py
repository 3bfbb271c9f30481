"""bcfimport - import BCF collaboration topics into a project issue tracker.

High-level public API:

from bcfimport import TopicImporter, ImportOptions

importer = TopicImporter(
    "coordination.bcfzip",
    "project-1",
    actor_id="admin",
    directory=directory,
    licensing=licensing,
    materializer=tracker,
)
print(importer.unknown_mails())
result = importer.import_topics(ImportOptions("invite", ("member",)))
outcomes = result.unwrap()

The CLI (``bcfimport list|preview|import``) wires the in-memory reference
backends from a YAML config file.
"""

from __future__ import annotations

from .config import ImportConfig, load_config
from .errors import (
    ArchiveUnreadable,
    BcfImportError,
    ExtractionFailed,
    SeatLimitExceeded,
    Unauthorized,
)
from .importer import ImportFailure, ImportResult, ImportState, TopicImporter
from .models import DirectoryUser, ImportOptions, ImportOutcome, TopicRecord

__version__ = "0.1.0"

__all__ = [
    "ArchiveUnreadable",
    "BcfImportError",
    "DirectoryUser",
    "ExtractionFailed",
    "ImportConfig",
    "ImportFailure",
    "ImportOptions",
    "ImportOutcome",
    "ImportResult",
    "ImportState",
    "SeatLimitExceeded",
    "TopicImporter",
    "TopicRecord",
    "Unauthorized",
    "__version__",
    "load_config",
]
