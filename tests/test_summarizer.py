"""Tests for the alert summarizer."""

from repository_tracker.analyzers.summarizer import (
    age_bucket,
    disabled_summary,
    failed_summary,
    round_half_up,
    summarize,
)
from repository_tracker.core.models import AGE_BUCKETS, AlertKind, Severity
from repository_tracker.github.security_alerts import (
    CodeScanningAlert,
    DependabotAlert,
    SecretScanningAlert,
)

from conftest import NOW, days_ago


def code_alert(number=1, state="open", created=0, closed=None, severity=Severity.HIGH, updated=None):
    return CodeScanningAlert(
        number=number,
        state=state,
        created_at=days_ago(created),
        updated_at=days_ago(updated) if updated is not None else None,
        closed_at=days_ago(closed) if closed is not None else None,
        severity=severity,
    )


class TestZeroFill:
    """Empty input yields a complete zero summary."""

    def test_empty_input(self):
        """Test every numeric field is zero and every map fully populated."""
        summary = summarize(AlertKind.CODE_SCANNING, [], NOW)

        assert summary.enabled is True
        assert summary.total == 0
        assert summary.by_severity == {s.value: 0 for s in Severity}
        assert summary.opened_by_severity == {s.value: 0 for s in Severity}
        assert summary.closed_by_severity == {s.value: 0 for s in Severity}
        assert summary.age_buckets == {b: 0 for b in AGE_BUCKETS}
        assert summary.opened_last_30_days == 0
        assert summary.closed_last_30_days == 0
        assert summary.oldest_age == 0
        assert summary.average_age == 0
        assert summary.mttr == 0
        assert summary.last_updated is None

    def test_empty_input_serializes_every_key(self):
        """Test the persisted shape has no missing keys."""
        data = summarize(AlertKind.DEPENDABOT, [], NOW).to_dict()

        for severity in Severity:
            assert data[severity.value] == 0
            assert data["openedLast30DaysBySeverity"][severity.value] == 0
            assert data["closedLast30DaysBySeverity"][severity.value] == 0
        assert data["aging"] == {
            "oldestAge": 0,
            "averageAge": 0,
            "ageBuckets": {"0-7": 0, "8-30": 0, "31-90": 0, "91-180": 0, "180+": 0},
        }
        assert data["ecosystems"] == []
        assert data["enabled"] is True

    def test_disabled_and_failed_summaries(self):
        """Test fallback summaries are zero-filled and disabled."""
        disabled = disabled_summary(AlertKind.SECRET_SCANNING)
        failed = failed_summary(AlertKind.SECRET_SCANNING)

        assert disabled.enabled is False and not disabled.fetch_failed
        assert failed.enabled is False and failed.fetch_failed
        assert disabled.to_dict() == failed.to_dict()
        assert disabled.to_dict()["secretTypes"] == {}


class TestSeverityCounts:
    """Test open severity counts."""

    def test_only_open_alerts_counted(self):
        """Test closed alerts do not contribute to severity counts."""
        alerts = [
            code_alert(1, severity=Severity.CRITICAL),
            code_alert(2, severity=Severity.LOW),
            code_alert(3, state="dismissed", closed=1, severity=Severity.CRITICAL),
        ]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.total == 2
        assert summary.count(Severity.CRITICAL) == 1
        assert summary.count(Severity.LOW) == 1

    def test_secret_alerts_count_toward_total_only(self):
        """Test secret scanning alerts fall into no severity bucket."""
        alerts = [
            SecretScanningAlert(number=1, state="open", created_at=days_ago(3), secret_type="aws"),
            SecretScanningAlert(number=2, state="open", created_at=days_ago(3), secret_type="aws"),
            SecretScanningAlert(number=3, state="open", created_at=days_ago(3), secret_type="slack"),
        ]
        summary = summarize(AlertKind.SECRET_SCANNING, alerts, NOW)

        assert summary.total == 3
        assert all(count == 0 for count in summary.by_severity.values())
        assert all(count == 0 for count in summary.opened_by_severity.values())
        assert summary.opened_last_30_days == 3
        assert summary.secret_types == {"aws": 2, "slack": 1}


class TestRecentDeltas:
    """Test the 30-day opened/closed counters."""

    def test_thirty_day_boundary(self):
        """Test an alert created exactly 30 days ago counts, 31 days does not."""
        alerts = [
            code_alert(1, created=30, severity=Severity.HIGH),
            code_alert(2, created=31, severity=Severity.HIGH),
        ]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.opened_last_30_days == 1
        assert summary.opened_by_severity["high"] == 1

    def test_alert_counts_as_opened_and_closed(self):
        """Test one alert can count in both counters."""
        alerts = [code_alert(1, state="fixed", created=10, closed=2, severity=Severity.CRITICAL)]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.opened_last_30_days == 1
        assert summary.closed_last_30_days == 1
        assert summary.opened_by_severity["critical"] == 1
        assert summary.closed_by_severity["critical"] == 1
        assert summary.total == 0

    def test_old_closure_not_counted(self):
        """Test closures before the window are ignored."""
        alerts = [code_alert(1, state="dismissed", created=100, closed=45)]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.opened_last_30_days == 0
        assert summary.closed_last_30_days == 0


class TestAging:
    """Test the aging histogram over open alerts."""

    def test_bucket_boundaries(self):
        """Test ages on a boundary land in the lower bucket."""
        alerts = [code_alert(i, created=age) for i, age in enumerate([7, 30, 90, 180, 181])]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.age_buckets == {"0-7": 1, "8-30": 1, "31-90": 1, "91-180": 1, "180+": 1}
        assert summary.oldest_age == 181
        # (7 + 30 + 90 + 180 + 181) / 5 = 97.6
        assert summary.average_age == 98

    def test_age_bucket_function(self):
        """Test bucket names around each bound."""
        assert age_bucket(0) == "0-7"
        assert age_bucket(8) == "8-30"
        assert age_bucket(31) == "31-90"
        assert age_bucket(91) == "91-180"
        assert age_bucket(1000) == "180+"

    def test_partial_days_are_floored(self):
        """Test an alert 7.9 days old is 7 days old."""
        summary = summarize(AlertKind.CODE_SCANNING, [code_alert(1, created=7.9)], NOW)

        assert summary.oldest_age == 7
        assert summary.age_buckets["0-7"] == 1

    def test_future_created_at_clamped(self):
        """Test an alert created after ``now`` has age zero."""
        summary = summarize(AlertKind.CODE_SCANNING, [code_alert(1, created=-2)], NOW)

        assert summary.oldest_age == 0
        assert summary.age_buckets["0-7"] == 1

    def test_closed_alerts_not_aged(self):
        """Test closed alerts are excluded from aging."""
        alerts = [code_alert(1, state="fixed", created=400, closed=1)]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.oldest_age == 0
        assert sum(summary.age_buckets.values()) == 0


class TestMTTR:
    """Test mean time to remediate."""

    def test_negative_durations_excluded(self):
        """Test a closure before creation is dropped, not counted as negative."""
        alerts = [
            code_alert(1, state="fixed", created=10, closed=4),
            code_alert(2, state="fixed", created=2, closed=5),
        ]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.mttr == 6

    def test_mean_rounds_half_up(self):
        """Test a mean of 1.5 days rounds to 2."""
        alerts = [
            code_alert(1, state="fixed", created=11, closed=10),
            code_alert(2, state="fixed", created=12, closed=10),
        ]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.mttr == 2

    def test_closed_without_timestamp_ignored(self):
        """Test closed alerts lacking a closing timestamp are skipped."""
        summary = summarize(AlertKind.CODE_SCANNING, [code_alert(1, state="closed", created=5)], NOW)

        assert summary.mttr == 0

    def test_round_half_up(self):
        """Test halves round up rather than to even."""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2


class TestKindExtras:
    """Test per-kind extras and the freshness indicator."""

    def test_last_updated_from_first_alert(self):
        """Test lastUpdated comes from the first alert, not the newest."""
        alerts = [code_alert(1, created=20, updated=10), code_alert(2, created=1, updated=0)]
        summary = summarize(AlertKind.CODE_SCANNING, alerts, NOW)

        assert summary.last_updated == "2024-05-22T12:00:00Z"

    def test_last_updated_falls_back_to_created(self):
        """Test created_at is used when updated_at is missing."""
        summary = summarize(AlertKind.CODE_SCANNING, [code_alert(1, created=1)], NOW)

        assert summary.last_updated == "2024-05-31T12:00:00Z"

    def test_dependabot_ecosystems(self):
        """Test ecosystems are the sorted distinct ecosystems of open alerts."""
        alerts = [
            DependabotAlert(number=1, state="open", created_at=days_ago(1), ecosystem="pip"),
            DependabotAlert(number=2, state="open", created_at=days_ago(1), ecosystem="npm"),
            DependabotAlert(number=3, state="open", created_at=days_ago(1), ecosystem="pip"),
            DependabotAlert(
                number=4, state="fixed", created_at=days_ago(9), closed_at=days_ago(1), ecosystem="maven"
            ),
        ]
        summary = summarize(AlertKind.DEPENDABOT, alerts, NOW)

        assert summary.ecosystems == ("npm", "pip")
        assert summary.to_dict()["ecosystems"] == ["npm", "pip"]
        assert "secretTypes" not in summary.to_dict()

    def test_missing_severity_counts_as_medium(self):
        """Test a severity-bearing alert without severity lands in medium."""
        alert = DependabotAlert(number=1, state="open", created_at=days_ago(1))
        alert.severity = None
        summary = summarize(AlertKind.DEPENDABOT, [alert], NOW)

        assert summary.count(Severity.MEDIUM) == 1
