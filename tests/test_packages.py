from datetime import timedelta

import pytest

from backend.studio_reports.packages import package_expiration_report, plan_package_maintenance


def _member(member_id, expiry, credits, **fields):
    document = {"id": member_id, "role": "customer", "remainingClasses": credits, "membershipType": "basic"}
    if expiry is not None:
        document["packageExpiryDate"] = expiry.isoformat()
    document.update(fields)
    return document


@pytest.fixture
def classify(make_snapshot, now):
    def _classify(*users, members=()):
        snapshot = make_snapshot(users=list(users), members=list(members))
        return package_expiration_report(snapshot.users, now)

    return _classify


class TestPackageExpirationReport:
    def test_expired_with_unused_credits(self, classify, now):
        report = classify(_member("m-1", now - timedelta(days=10), 3, firstName="Deniz", lastName="Acar"))

        assert len(report.expired_with_credits) == 1
        info = report.expired_with_credits[0]
        assert info.days_expired == 10
        assert info.action_required == "Reset credits to zero"
        assert info.membership_type == "Basic"
        assert info.name == "Deniz Acar"

    def test_expires_today_boundary(self, classify, now):
        report = classify(_member("m-1", now, 1))

        assert [info.id for info in report.expiring_soon] == ["m-1"]
        assert report.expiring_soon[0].action_required == "Expires today"
        assert report.expiring_soon[0].days_until_expiry == 0

    def test_seven_day_boundary(self, classify, now):
        report = classify(
            _member("in-7", now + timedelta(days=7), 2),
            _member("in-8", now + timedelta(days=7, hours=1), 2),
        )

        assert [info.id for info in report.expiring_soon] == ["in-7"]
        assert report.expiring_soon[0].action_required == "Expires in 7 days"

    def test_recently_expired_without_credits(self, classify, now):
        report = classify(_member("m-1", now - timedelta(days=3), 0))

        assert [info.action_required for info in report.recently_expired] == ["Already processed"]
        assert report.recently_expired[0].days_expired == 3

    @pytest.mark.parametrize(
        "fields",
        [
            {"membershipType": "unlimited"},
            {"role": "trainer"},
            {"membershipStatus": "frozen"},
            {"status": "cancelled"},
            {"status": "permanently_deleted"},
            {"isActive": False},
        ],
    )
    def test_ineligible_members_are_excluded(self, classify, now, fields):
        report = classify(_member("m-1", now - timedelta(days=2), 4, **fields))

        assert report.summary == {"expiredWithCredits": 0, "expiringSoon": 0, "recentlyExpired": 0}

    def test_negative_credits_fall_in_no_bucket(self, classify, now):
        report = classify(
            _member("overdrawn", now - timedelta(days=3), -2),
            _member("overdrawn-soon", now + timedelta(days=3), -1),
        )

        assert report.summary == {"expiredWithCredits": 0, "expiringSoon": 0, "recentlyExpired": 0}

    def test_unlabeled_role_is_eligible(self, classify, now):
        report = classify(_member("m-1", now - timedelta(days=2), 4, role=None))

        assert len(report.expired_with_credits) == 1

    def test_missing_expiry_and_distant_expiry_are_excluded(self, classify, now):
        report = classify(_member("none", None, 4), _member("far", now + timedelta(days=30), 4))

        assert report.summary == {"expiredWithCredits": 0, "expiringSoon": 0, "recentlyExpired": 0}

    def test_buckets_are_mutually_exclusive_and_duplicates_processed_once(self, classify, now):
        shared = _member("dup", now - timedelta(days=1), 5)
        report = classify(
            _member("dup", now + timedelta(days=2), 5),
            _member("a", now - timedelta(days=4), 0),
            _member("b", now + timedelta(days=1), 1),
            members=[shared],
        )

        buckets = (report.expired_with_credits, report.expiring_soon, report.recently_expired)
        ids = [info.id for bucket in buckets for info in bucket]
        assert len(ids) == len(set(ids)) == 3
        assert report.expired_with_credits[0].id == "dup"

    def test_as_dict_includes_summary(self, classify, now):
        data = classify(_member("m-1", now - timedelta(days=10), 3)).as_dict()

        assert data["summary"]["expiredWithCredits"] == 1
        assert data["expiredWithCredits"][0]["daysExpired"] == 10
        assert data["expiredWithCredits"][0]["actionRequired"] == "Reset credits to zero"


class TestMaintenancePlan:
    def test_resets_expired_credits_and_lifts_finished_freezes(self, make_snapshot, now):
        snapshot = make_snapshot(
            users=[
                _member("expired", now - timedelta(hours=2), 3),
                _member("unlimited", now - timedelta(days=2), 99, membershipType="unlimited"),
                _member("empty", now - timedelta(days=2), 0),
                _member("thawed", None, 0, membershipStatus="frozen", freezeEndDate="2024-05-14"),
                _member("still-frozen", None, 0, status="frozen", freezeEndDate="2024-05-15"),
            ],
            members=[_member("frozen-member", None, 0, status="frozen", freezeEndDate="2024-05-01")],
        )

        plan = plan_package_maintenance(snapshot.users, now)

        assert [(reset.member_id, reset.previous_credits) for reset in plan.credit_resets] == [("expired", 3)]
        assert [(item.member_id, item.source) for item in plan.unfreezes] == [
            ("frozen-member", "members"),
            ("thawed", "users"),
        ]
        assert not plan.is_empty

    def test_negative_credits_are_not_reset(self, make_snapshot, now):
        snapshot = make_snapshot(users=[_member("overdrawn", now - timedelta(days=3), -2)])

        assert plan_package_maintenance(snapshot.users, now).is_empty

    def test_nothing_to_do(self, make_snapshot, now):
        snapshot = make_snapshot(users=[_member("ok", now + timedelta(days=20), 5)])

        assert plan_package_maintenance(snapshot.users, now).is_empty
