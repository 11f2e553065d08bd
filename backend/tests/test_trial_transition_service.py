"""
Tests for the trial transition tick: opening trial access and sending the
start-of-trial notifications.
"""
import pytest

from trial_scheduler.db.models import (
    AdminApprovalStatus,
    AttorneyStatus,
    Case,
    Notification,
    NotificationCategory,
    RecipientType,
)
from trial_scheduler.services.case_store import CaseStore
from trial_scheduler.services.fanout_service import FanoutNotifier
from trial_scheduler.services.notification_service import NotificationService
from trial_scheduler.services.trial_transition_service import (
    TrialTransitionService,
    case_minutes_until_trial,
    jurisdiction_of,
)
from trial_scheduler.utils.exceptions import StoreError

from conftest import RecordingEmailSender


@pytest.fixture
def service(store, fanout):
    return TrialTransitionService(
        store=store,
        fanout=fanout,
        access_window_minutes=30,
        notify_window_minutes=30,
        grace_window_minutes=60,
    )


def _reload(db, case_id) -> Case:
    db.expire_all()
    return db.get(Case, case_id)


class TestOpenTrialAccess:
    @pytest.mark.asyncio
    async def test_case_inside_access_window_moves_to_join_trial(self, db, service, make_case, now):
        """Approved awaiting_trial case 25 minutes out is opened"""
        case = make_case(minutes_ahead=25)
        case_id = case.id

        report = await service.tick(db, now)

        assert report.access.succeeded == [case_id]
        assert _reload(db, case_id).attorney_status == AttorneyStatus.join_trial

    @pytest.mark.asyncio
    @pytest.mark.parametrize("minutes_ahead", [31, -1, -45])
    async def test_case_outside_access_window_is_untouched(self, db, service, make_case, now, minutes_ahead):
        case = make_case(minutes_ahead=minutes_ahead)
        case_id = case.id

        report = await service.tick(db, now)

        assert report.access.results == []
        assert _reload(db, case_id).attorney_status == AttorneyStatus.awaiting_trial

    @pytest.mark.asyncio
    async def test_window_edges_are_inclusive(self, db, service, make_case, now):
        at_start = make_case(minutes_ahead=0).id
        at_edge = make_case(minutes_ahead=30).id

        await service.tick(db, now)

        assert _reload(db, at_start).attorney_status == AttorneyStatus.join_trial
        assert _reload(db, at_edge).attorney_status == AttorneyStatus.join_trial

    @pytest.mark.asyncio
    async def test_unapproved_and_deleted_cases_are_ignored(self, db, service, make_case, now):
        pending = make_case(admin_approval_status=AdminApprovalStatus.pending).id
        deleted = make_case(is_deleted=True).id

        report = await service.tick(db, now)

        assert report.access.results == []
        assert _reload(db, pending).attorney_status == AttorneyStatus.awaiting_trial
        assert _reload(db, deleted).attorney_status == AttorneyStatus.awaiting_trial

    @pytest.mark.asyncio
    async def test_unknown_jurisdiction_uses_utc(self, db, service, make_case, make_attorney, now):
        """A "Mars" case resolves to offset 0 and is scheduled normally"""
        attorney = make_attorney(state=None)
        case = make_case(minutes_ahead=20, offset_minutes=0, state="Mars", attorney=attorney)
        case_id = case.id

        assert case_minutes_until_trial(case, now) == 20
        await service.tick(db, now)

        assert _reload(db, case_id).attorney_status == AttorneyStatus.join_trial

    @pytest.mark.asyncio
    async def test_positive_offset_jurisdiction(self, db, service, make_case, now):
        case = make_case(minutes_ahead=10, offset_minutes=330, state="India")
        case_id = case.id

        await service.tick(db, now)

        assert _reload(db, case_id).attorney_status == AttorneyStatus.join_trial

    def test_falls_back_to_attorney_jurisdiction(self, make_case, make_attorney, now):
        attorney = make_attorney(state="California")
        case = make_case(minutes_ahead=15, offset_minutes=-480, state=None, attorney=attorney)

        assert jurisdiction_of(case) == "California"
        assert case_minutes_until_trial(case, now) == 15

    @pytest.mark.asyncio
    async def test_query_failure_skips_pass_but_still_notifies(self, db, fanout, make_case, now):
        class BrokenAccessStore(CaseStore):
            def find_cases_awaiting_access(self, db, date_from, date_to):
                raise StoreError("find_cases_awaiting_access", "connection reset")

        service = TrialTransitionService(store=BrokenAccessStore(), fanout=fanout)
        pending = make_case(minutes_ahead=10, attorney_status=AttorneyStatus.join_trial).id

        report = await service.tick(db, now)

        assert report.access.failed == ["query"]
        assert report.notifications.succeeded == [pending]


class TestStartNotifications:
    @pytest.mark.asyncio
    async def test_full_audience_is_notified_once(
        self, db, service, make_case, add_jurors, add_admins, email_sender, now
    ):
        """Approved jurors, the attorney and every active admin get one notification each"""
        case = make_case(minutes_ahead=20, attorney_status=AttorneyStatus.join_trial)
        case_id = case.id
        attorney_email = case.attorney.email
        jurors = add_jurors(case, approved=2, rejected=1)
        admins = add_admins(active=2, inactive=1)
        juror_emails = [j.email for j in jurors]
        admin_emails = [a.email for a in admins]

        report = await service.tick(db, now)

        assert report.notifications.succeeded == [case_id]
        assert _reload(db, case_id).notifications_sent is True
        assert sorted(a for a, _ in email_sender.sent) == sorted(juror_emails + [attorney_email] + admin_emails)

        rows = db.query(Notification).filter(Notification.case_id == case_id).all()
        assert len(rows) == 5
        by_type = {}
        for row in rows:
            by_type.setdefault(row.user_type, set()).add(row.type)
        assert by_type[RecipientType.juror] == {NotificationCategory.trial_starting}
        assert by_type[RecipientType.attorney] == {NotificationCategory.trial_starting}
        assert by_type[RecipientType.admin] == {NotificationCategory.trial_started}

        assert email_sender.subjects_for(juror_emails[0]) == ["Trial Starting in 30 Minutes - Join Now!"]
        assert email_sender.subjects_for(attorney_email) == ["Trial Room Ready - You Can Start Now"]
        assert email_sender.subjects_for(admin_emails[0]) == ["Trial Started - Smith v. Jones"]

    @pytest.mark.asyncio
    async def test_second_tick_sends_nothing(self, db, service, make_case, add_jurors, email_sender, now):
        case = make_case(minutes_ahead=20, attorney_status=AttorneyStatus.join_trial)
        add_jurors(case, approved=1)

        await service.tick(db, now)
        sent = len(email_sender.sent)
        report = await service.tick(db, now)

        assert sent == 2
        assert len(email_sender.sent) == sent
        assert report.notifications.results == []

    @pytest.mark.asyncio
    async def test_opened_case_is_notified_in_the_same_tick(self, db, service, make_case, email_sender, now):
        case = make_case(minutes_ahead=25)
        case_id = case.id

        report = await service.tick(db, now)

        assert report.notifications.succeeded == [case_id]
        assert _reload(db, case_id).notifications_sent is True
        assert len(email_sender.sent) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("minutes_ahead,expected", [
        (30, True),
        (31, False),
        (-45, True),
        (-60, True),
        (-61, False),
    ])
    async def test_notify_and_grace_window(self, db, service, make_case, now, minutes_ahead, expected):
        case = make_case(minutes_ahead=minutes_ahead, attorney_status=AttorneyStatus.join_trial)
        case_id = case.id

        await service.tick(db, now)

        assert _reload(db, case_id).notifications_sent is expected

    @pytest.mark.asyncio
    async def test_latched_case_is_not_renotified(self, db, service, make_case, email_sender, now):
        make_case(minutes_ahead=10, attorney_status=AttorneyStatus.join_trial, notifications_sent=True)

        report = await service.tick(db, now)

        assert report.notifications.results == []
        assert email_sender.sent == []

    @pytest.mark.asyncio
    async def test_failed_recipient_does_not_block_the_latch(
        self, db, store, make_case, add_jurors, now
    ):
        case = make_case(minutes_ahead=5, attorney_status=AttorneyStatus.join_trial)
        case_id = case.id
        jurors = add_jurors(case, approved=2)
        sender = RecordingEmailSender(fail_for=[jurors[0].email])
        service = TrialTransitionService(store=store, fanout=FanoutNotifier(NotificationService(), sender))

        report = await service.tick(db, now)

        assert report.notifications.succeeded == [case_id]
        assert _reload(db, case_id).notifications_sent is True
        assert jurors[1].email in [a for a, _ in sender.sent]

    @pytest.mark.asyncio
    async def test_case_failure_is_isolated(self, db, fanout, make_case, email_sender, now):
        first = make_case(minutes_ahead=5, attorney_status=AttorneyStatus.join_trial)
        second = make_case(minutes_ahead=10, attorney_status=AttorneyStatus.join_trial)
        broken_id, ok_id = first.id, second.id

        class FlakyStore(CaseStore):
            def get_approved_jurors(self, db, case_id):
                if case_id == broken_id:
                    raise StoreError("get_approved_jurors", "deadlock")
                return super().get_approved_jurors(db, case_id)

        service = TrialTransitionService(store=FlakyStore(), fanout=fanout)
        report = await service.tick(db, now)

        assert report.notifications.failed == [broken_id]
        assert report.notifications.succeeded == [ok_id]
        assert _reload(db, broken_id).notifications_sent is False
        assert _reload(db, ok_id).notifications_sent is True

    def test_windows_property(self, service):
        assert service.windows == {"access_minutes": 30, "notify_minutes": 30, "grace_minutes": 60}
