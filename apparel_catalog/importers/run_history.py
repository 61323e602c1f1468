import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from apparel_catalog.models import ImportRun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportJobResult:
    processed: int
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_messages: tuple = ()
    dry_run: bool = False


@dataclass
class ImportCounters:
    """Mutable tally kept while a job runs; frozen into ImportJobResult at the end."""
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_messages: List[str] = field(default_factory=list)

    def record_error(self, item: str, error: Exception, keep: int = 50) -> None:
        self.errors += 1
        if len(self.error_messages) < keep:
            self.error_messages.append(f"{item}: {error}")

    def freeze(self, dry_run: bool = False) -> ImportJobResult:
        return ImportJobResult(
            processed=self.processed,
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            errors=self.errors,
            error_messages=tuple(self.error_messages),
            dry_run=dry_run,
        )


class ImportRunRecorder:
    """
    Writes one ImportRun row per job: opened as "running", closed as success,
    partial (some items failed), dry_run or fail.
    """

    def __init__(self, session: Session, supplier: str, job_type: str):
        self.session = session
        self.supplier = supplier
        self.job_type = job_type
        self.run: Optional[ImportRun] = None

    def start(self, params: Optional[Dict[str, Any]] = None) -> ImportRun:
        self.run = ImportRun(supplier=self.supplier, job_type=self.job_type, status="running", params=params or {})
        self.session.add(self.run)
        self.session.commit()
        logger.info(f"[IMPORT] Started {self.supplier}:{self.job_type} run {self.run.id}")
        return self.run

    def finish(self, result: ImportJobResult) -> None:
        if self.run is None:
            return
        if result.dry_run:
            status = "dry_run"
        else:
            status = "success" if result.errors == 0 else "partial"
        self._close(status, result.processed, result.created, result.updated, result.skipped, result.errors,
                    result.error_messages[-1] if result.error_messages else None)

    def fail(self, error: Exception) -> None:
        if self.run is None:
            return
        self.session.rollback()
        self._close("fail", self.run.processed, self.run.created, self.run.updated, self.run.skipped,
                    self.run.errors + 1, str(error))

    def _close(self, status, processed, created, updated, skipped, errors, last_error) -> None:
        run = self.run
        run.status = status
        run.processed = processed
        run.created = created
        run.updated = updated
        run.skipped = skipped
        run.errors = errors
        run.last_error = last_error
        run.finished_at = datetime.now(timezone.utc)
        self.session.commit()
        logger.info(
            f"[IMPORT] {self.supplier}:{self.job_type} run {run.id} {status}: "
            f"processed={processed} created={created} updated={updated} skipped={skipped} errors={errors}"
        )
