"""
Tracking reconciliation job.

One pass fetches every pending tracking record, looks each one up at
Correios, stores what changed and notifies the customer when the change is
worth telling.

Failure handling:
- A temporary carrier failure (after retries) skips the record: nothing is
  saved and it does not count towards the failure streak.
- Any other failure counts towards a consecutive-failure streak. Once the
  streak reaches the threshold, the pass pauses between records with a
  wait that grows with the streak (capped at 5x the base wait).
- A failure to load the batch is logged as critical and reported; it never
  propagates to the caller.

Every call to run() is independent; per-pass state lives in the report and
local variables only, so overlapping passes are safe.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, NamedTuple

from tracksync import config
from tracksync.carrier.client import CarrierClient
from tracksync.db import UnitOfWork
from tracksync.db.repositories.tracking import TrackingNotFoundError
from tracksync.models.notification import StatusChangeEvent
from tracksync.models.task import ReconciliationReport, RunWindow
from tracksync.models.tracking import SYNTHETIC_STATUSES, ShipmentRecord
from tracksync.notifications.policy import should_notify
from tracksync.notifications.publisher import EventPublisher
from tracksync.utils.events import has_new_events
from tracksync.utils.retry import ClassifiedError

logger = logging.getLogger(__name__)


class RecordOutcome(NamedTuple):
    updated: bool
    notified: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationJob:
    """
    Reconciles pending tracking records with Correios.

    Usage:
        job = ReconciliationJob(carrier=client, publisher=EmailEventPublisher())
        report = job.run(RunWindow.BASELINE)
    """

    def __init__(
        self,
        carrier: CarrierClient,
        publisher: EventPublisher,
        uow_factory: Callable[[], UnitOfWork] = UnitOfWork,
        max_consecutive_failures: int = config.MAX_CONSECUTIVE_FAILURES,
        failure_wait_seconds: float = config.FAILURE_WAIT_SECONDS,
        max_wait_multiplier: int = config.FAILURE_WAIT_MAX_MULTIPLIER,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.carrier = carrier
        self.publisher = publisher
        self.uow_factory = uow_factory
        self.max_consecutive_failures = max_consecutive_failures
        self.failure_wait_seconds = failure_wait_seconds
        self.max_wait_multiplier = max_wait_multiplier
        self._sleep = sleep
        self._clock = clock

    def run(self, window: RunWindow = RunWindow.MANUAL) -> ReconciliationReport:
        """
        Run one reconciliation pass.

        Args:
            window: Schedule window that triggered the pass

        Returns:
            ReconciliationReport with the pass counts (aborted=True if the
            batch could not be loaded)
        """
        report = ReconciliationReport(window=window, started_at=self._clock())
        logger.info("[%s] Tracking reconciliation started", window.value)

        try:
            records = self.fetch_pending()
            report.attempted = len(records)
            logger.info("[%s] %d pending tracking(s) found", window.value, len(records))

            self._process_batch(records, report)
        except Exception as e:
            report.aborted = True
            report.error = str(e)
            logger.critical(
                "[%s] Tracking reconciliation aborted: %s",
                window.value,
                e,
                exc_info=True,
            )
        finally:
            report.finished_at = self._clock()
            report.duration_seconds = round(
                (report.finished_at - report.started_at).total_seconds(), 2
            )
            logger.info(
                "[%s] Tracking reconciliation finished in %.2fs",
                window.value,
                report.duration_seconds,
                extra={"json_fields": report.model_dump(mode="json")},
            )

        return report

    def fetch_pending(self) -> list[ShipmentRecord]:
        """Load every non-terminal tracking record."""
        with self.uow_factory() as uow:
            return uow.trackings.find_pending()

    def _process_batch(self, records: list[ShipmentRecord], report: ReconciliationReport):
        consecutive_failures = 0

        for record in records:
            try:
                outcome = self.process_record(record)
            except Exception as e:
                if isinstance(e, ClassifiedError) and e.is_temporary:
                    report.temporarily_skipped += 1
                    logger.warning(
                        "%s skipped after temporary error: %s", record.tracking_code, e
                    )
                    continue

                report.permanently_failed += 1
                consecutive_failures += 1
                logger.error(
                    "%s failed: %s",
                    record.tracking_code,
                    e,
                    extra={
                        "json_fields": {
                            "tracking_code": record.tracking_code,
                            "error_type": type(e).__name__,
                            "consecutive_failures": consecutive_failures,
                        }
                    },
                )
                self._backoff(consecutive_failures)
                continue

            consecutive_failures = 0
            report.succeeded += 1
            if outcome.updated:
                report.updated += 1
            if outcome.notified:
                report.notified += 1

    def refresh_record(self, tracking_code: str) -> RecordOutcome:
        """
        Refresh a single record by tracking code, terminal or not.

        Raises:
            TrackingNotFoundError: No record with this tracking code
            ClassifiedError: Temporary carrier failure after retries
        """
        with self.uow_factory() as uow:
            record = uow.trackings.get_by_tracking_code(tracking_code)

        if record is None:
            raise TrackingNotFoundError(tracking_code)

        return self.process_record(record)

    def process_record(self, record: ShipmentRecord) -> RecordOutcome:
        """
        Look up one record and apply any change.

        Args:
            record: Stored tracking record

        Returns:
            RecordOutcome telling whether it was saved and notified

        Raises:
            ClassifiedError: Temporary carrier failure after retries
            CredentialError: No token available
            TrackingNotFoundError: Record vanished before the update
        """
        result = self.carrier.track(record.tracking_code)

        status_changed = result.status != record.status
        if not status_changed and result.status in SYNTHETIC_STATUSES:
            # Synthetic events are rebuilt on every lookup; only the status counts
            events_changed = False
        else:
            events_changed = has_new_events(record.events, result.events)

        # Nothing new: skip the write entirely
        if not status_changed and not events_changed:
            return RecordOutcome(updated=False, notified=False)

        with self.uow_factory() as uow:
            uow.trackings.update_status(
                record.tracking_code,
                result.status,
                result.events,
                result.expected_delivery,
            )
            uow.commit()

        if status_changed:
            logger.info(
                "%s | %s -> %s",
                record.tracking_code,
                record.status.value,
                result.status.value,
            )
        else:
            added = len(result.events) - len(record.events)
            if added > 0:
                logger.info("%s | +%d new event(s)", record.tracking_code, added)
            else:
                latest = result.events[0].description if result.events else "-"
                logger.info("%s | events updated | %s", record.tracking_code, latest)

        if not should_notify(record.delivery_channel, result.status):
            return RecordOutcome(updated=True, notified=False)

        event = StatusChangeEvent.from_record(record, result.status, result.events)
        self.publisher.publish(event)
        return RecordOutcome(updated=True, notified=True)

    def _backoff(self, consecutive_failures: int):
        """Pause the batch once the failure streak reaches the threshold."""
        if consecutive_failures < self.max_consecutive_failures:
            return

        overshoot = consecutive_failures - self.max_consecutive_failures + 1
        wait = self.failure_wait_seconds * min(overshoot, self.max_wait_multiplier)
        logger.warning(
            "Waiting %.0fs after %d consecutive failures", wait, consecutive_failures
        )
        self._sleep(wait)
