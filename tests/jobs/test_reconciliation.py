"""
Tests for the tracking reconciliation job.

The carrier, publisher and unit of work are mocks; sleeps are recorded
instead of waited.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from conftest import BASE_TIME, make_event

from tracksync.carrier.client import (
    CarrierTrackingResponse,
    lookup_error_result,
    normalize_response,
)
from tracksync.carrier.token import CredentialError
from tracksync.db.repositories.tracking import TrackingNotFoundError
from tracksync.jobs.reconciliation import ReconciliationJob
from tracksync.models.notification import StatusChangeEvent
from tracksync.models.task import RunWindow
from tracksync.models.tracking import (
    DeliveryChannel,
    ShipmentRecord,
    TrackingEvent,
    TrackingResult,
    TrackingStatus,
)
from tracksync.utils.retry import ClassifiedError, ErrorType


def records_like(record: ShipmentRecord, count: int) -> list[ShipmentRecord]:
    return [
        record.model_copy(update={"tracking_code": f"AA{n:09d}BR"})
        for n in range(1, count + 1)
    ]


@pytest.fixture
def uow() -> MagicMock:
    uow = MagicMock()
    uow.__enter__.return_value = uow
    uow.__exit__.return_value = False
    uow.trackings.find_pending.return_value = []
    return uow


@pytest.fixture
def carrier() -> MagicMock:
    return MagicMock()


@pytest.fixture
def publisher() -> MagicMock:
    return MagicMock()


@pytest.fixture
def sleep() -> MagicMock:
    return MagicMock()


@pytest.fixture
def job(carrier: MagicMock, publisher: MagicMock, uow: MagicMock, sleep: MagicMock) -> ReconciliationJob:
    clock = MagicMock(side_effect=[BASE_TIME, BASE_TIME + timedelta(seconds=42)])
    return ReconciliationJob(
        carrier=carrier,
        publisher=publisher,
        uow_factory=lambda: uow,
        max_consecutive_failures=3,
        failure_wait_seconds=60,
        max_wait_multiplier=5,
        sleep=sleep,
        clock=clock,
    )


def permanent_error() -> CredentialError:
    return CredentialError("Correios credentials not configured")


def fail_permanently(code: str):
    raise permanent_error()


class TestProcessRecord:
    def test_status_change_updates_and_notifies_once(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        publisher: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
        out_for_delivery_event: TrackingEvent,
    ):
        events = [out_for_delivery_event, *sample_record.events]
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.OUT_FOR_DELIVERY, events=events
        )

        outcome = job.process_record(sample_record)

        assert outcome.updated and outcome.notified
        uow.trackings.update_status.assert_called_once_with(
            "AA123456789BR", TrackingStatus.OUT_FOR_DELIVERY, events, None
        )
        uow.commit.assert_called_once()
        publisher.publish.assert_called_once()

        event: StatusChangeEvent = publisher.publish.call_args.args[0]
        assert event.previous_status == TrackingStatus.IN_TRANSIT
        assert event.new_status == TrackingStatus.OUT_FOR_DELIVERY
        assert event.customer_email == "maria@example.com"

    def test_new_event_with_same_status_updates_and_notifies(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        publisher: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
    ):
        newer = make_event(hours=6, location="Joinville/SC")
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.IN_TRANSIT, events=[newer, *sample_record.events]
        )

        outcome = job.process_record(sample_record)

        assert outcome.updated and outcome.notified
        uow.trackings.update_status.assert_called_once()
        publisher.publish.assert_called_once()

    def test_nothing_new_skips_write(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        publisher: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
    ):
        carrier.track.return_value = TrackingResult(
            status=sample_record.status,
            events=[e.model_copy() for e in sample_record.events],
        )

        outcome = job.process_record(sample_record)

        assert not outcome.updated and not outcome.notified
        uow.trackings.update_status.assert_not_called()
        uow.commit.assert_not_called()
        publisher.publish.assert_not_called()

    def test_silent_status_updates_without_notifying(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        publisher: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
    ):
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.NOT_YET_ARRIVED_AT_UNIT,
            events=[make_event(TrackingStatus.NOT_YET_ARRIVED_AT_UNIT.value, hours=3)],
        )

        outcome = job.process_record(sample_record)

        assert outcome.updated and not outcome.notified
        uow.trackings.update_status.assert_called_once()
        publisher.publish.assert_not_called()

    def test_pickup_in_point_is_never_notified(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        publisher: MagicMock,
        sample_record: ShipmentRecord,
        out_for_delivery_event: TrackingEvent,
    ):
        record = sample_record.model_copy(
            update={"delivery_channel": DeliveryChannel.PICKUP_IN_POINT}
        )
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.OUT_FOR_DELIVERY, events=[out_for_delivery_event]
        )

        assert job.process_record(record).notified is False
        publisher.publish.assert_not_called()

    def test_lookup_error_result_is_stored(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
    ):
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.LOOKUP_ERROR,
            events=[make_event("Erro ao consultar os Correios", location="Sistema")],
        )

        assert job.process_record(sample_record).updated
        assert (
            uow.trackings.update_status.call_args.args[1] == TrackingStatus.LOOKUP_ERROR
        )


class TestSyntheticStatusRepoll:
    """NOT_FOUND and LOOKUP_ERROR records stay pending and are looked up again."""

    @pytest.mark.parametrize(
        "lookup",
        [
            lambda: normalize_response("AA123456789BR", CarrierTrackingResponse(objetos=[])),
            lambda: lookup_error_result("404 - not found"),
        ],
        ids=["not_found", "lookup_error"],
    )
    def test_same_synthetic_status_is_not_rewritten(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        publisher: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
        lookup,
    ):
        stored = lookup()
        record = sample_record.model_copy(
            update={"status": stored.status, "events": stored.events}
        )
        later = lookup()
        later = later.model_copy(
            update={
                "events": [
                    e.model_copy(update={"occurred_at": e.occurred_at + timedelta(minutes=15)})
                    for e in later.events
                ]
            }
        )
        carrier.track.return_value = later

        outcome = job.process_record(record)

        assert not outcome.updated and not outcome.notified
        uow.trackings.update_status.assert_not_called()
        publisher.publish.assert_not_called()

    def test_switch_between_synthetic_statuses_is_saved(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
    ):
        error = lookup_error_result("404 - not found")
        record = sample_record.model_copy(
            update={"status": error.status, "events": error.events}
        )
        carrier.track.return_value = normalize_response(
            "AA123456789BR", CarrierTrackingResponse(objetos=[])
        )

        assert job.process_record(record).updated
        uow.trackings.update_status.assert_called_once()

    def test_recovery_from_synthetic_status_is_saved_and_notified(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        publisher: MagicMock,
        sample_record: ShipmentRecord,
    ):
        missing = normalize_response("AA123456789BR", CarrierTrackingResponse(objetos=[]))
        record = sample_record.model_copy(
            update={"status": missing.status, "events": missing.events}
        )
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.POSTED, events=[make_event("Objeto postado")]
        )

        outcome = job.process_record(record)

        assert outcome.updated and outcome.notified
        publisher.publish.assert_called_once()


class TestRefreshRecord:
    def test_loads_record_by_code_and_processes_it(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
        out_for_delivery_event: TrackingEvent,
    ):
        uow.trackings.get_by_tracking_code.return_value = sample_record
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.OUT_FOR_DELIVERY, events=[out_for_delivery_event]
        )

        outcome = job.refresh_record("aa123456789br")

        assert outcome.updated
        uow.trackings.get_by_tracking_code.assert_called_once_with("aa123456789br")
        carrier.track.assert_called_once_with("AA123456789BR")

    def test_unknown_code_raises(self, job: ReconciliationJob, carrier: MagicMock, uow: MagicMock):
        uow.trackings.get_by_tracking_code.return_value = None

        with pytest.raises(TrackingNotFoundError):
            job.refresh_record("AA000000000BR")

        carrier.track.assert_not_called()


class TestRun:
    def test_report_counts(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
        out_for_delivery_event: TrackingEvent,
    ):
        changed, unchanged = records_like(sample_record, 2)
        uow.trackings.find_pending.return_value = [changed, unchanged]
        carrier.track.side_effect = [
            TrackingResult(status=TrackingStatus.OUT_FOR_DELIVERY, events=[out_for_delivery_event]),
            TrackingResult(status=unchanged.status, events=unchanged.events),
        ]

        report = job.run(RunWindow.BASELINE)

        assert report.window == RunWindow.BASELINE
        assert report.attempted == 2
        assert report.succeeded == 2
        assert report.updated == 1
        assert report.notified == 1
        assert report.permanently_failed == 0
        assert report.aborted is False
        assert report.duration_seconds == 42

    def test_temporary_errors_skip_records_without_backoff(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sleep: MagicMock,
        sample_record: ShipmentRecord,
    ):
        uow.trackings.find_pending.return_value = records_like(sample_record, 5)
        carrier.track.side_effect = ClassifiedError("503", ErrorType.TEMPORARY, status_code=503)

        report = job.run()

        assert report.temporarily_skipped == 5
        assert report.permanently_failed == 0
        uow.trackings.update_status.assert_not_called()
        sleep.assert_not_called()

    def test_pause_after_three_consecutive_failures(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sleep: MagicMock,
        sample_record: ShipmentRecord,
    ):
        records = records_like(sample_record, 4)
        uow.trackings.find_pending.return_value = records
        calls = []

        def track(code):
            calls.append(("track", code))
            raise permanent_error()

        carrier.track.side_effect = track
        sleep.side_effect = lambda seconds: calls.append(("sleep", seconds))

        report = job.run()

        assert report.permanently_failed == 4
        assert calls == [
            ("track", records[0].tracking_code),
            ("track", records[1].tracking_code),
            ("track", records[2].tracking_code),
            ("sleep", 60),
            ("track", records[3].tracking_code),
            ("sleep", 120),
        ]

    def test_backoff_is_capped(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sleep: MagicMock,
        sample_record: ShipmentRecord,
    ):
        uow.trackings.find_pending.return_value = records_like(sample_record, 9)
        carrier.track.side_effect = fail_permanently

        job.run()

        waits = [c.args[0] for c in sleep.call_args_list]
        assert waits == [60, 120, 180, 240, 300, 300, 300]

    def test_success_resets_failure_streak(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sleep: MagicMock,
        sample_record: ShipmentRecord,
    ):
        uow.trackings.find_pending.return_value = records_like(sample_record, 5)
        unchanged = TrackingResult(status=sample_record.status, events=sample_record.events)
        carrier.track.side_effect = [
            permanent_error(),
            permanent_error(),
            unchanged,
            permanent_error(),
            permanent_error(),
        ]

        report = job.run()

        assert report.permanently_failed == 4
        assert report.succeeded == 1
        sleep.assert_not_called()

    def test_temporary_error_does_not_reset_streak(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sleep: MagicMock,
        sample_record: ShipmentRecord,
    ):
        uow.trackings.find_pending.return_value = records_like(sample_record, 4)
        carrier.track.side_effect = [
            permanent_error(),
            permanent_error(),
            ClassifiedError("timeout", ErrorType.TEMPORARY),
            permanent_error(),
        ]

        job.run()

        sleep.assert_called_once_with(60)

    def test_persistence_failure_counts_as_permanent(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
        out_for_delivery_event: TrackingEvent,
    ):
        uow.trackings.find_pending.return_value = [sample_record]
        carrier.track.return_value = TrackingResult(
            status=TrackingStatus.OUT_FOR_DELIVERY, events=[out_for_delivery_event]
        )
        uow.trackings.update_status.side_effect = TrackingNotFoundError("AA123456789BR")

        report = job.run()

        assert report.permanently_failed == 1
        assert report.updated == 0

    def test_fetch_failure_aborts_without_raising(
        self,
        job: ReconciliationJob,
        carrier: MagicMock,
        uow: MagicMock,
        caplog,
    ):
        uow.trackings.find_pending.side_effect = RuntimeError("database unavailable")

        report = job.run(RunWindow.PEAK)

        assert report.aborted is True
        assert report.error == "database unavailable"
        assert report.finished_at is not None
        carrier.track.assert_not_called()
        assert "Tracking reconciliation aborted" in caplog.text

    def test_runs_are_independent(
        self,
        carrier: MagicMock,
        publisher: MagicMock,
        uow: MagicMock,
        sample_record: ShipmentRecord,
    ):
        job = ReconciliationJob(
            carrier=carrier, publisher=publisher, uow_factory=lambda: uow, sleep=MagicMock()
        )
        uow.trackings.find_pending.return_value = [sample_record]
        carrier.track.side_effect = fail_permanently

        first = job.run()
        second = job.run()

        assert first.permanently_failed == 1
        assert second.permanently_failed == 1
        assert first is not second
