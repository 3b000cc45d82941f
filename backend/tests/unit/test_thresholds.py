"""
Tests for threshold loading from tracking_settings.
"""
import pytest
from pydantic import ValidationError

from transitops.core.thresholds import (
    AlertThresholds,
    ComplianceThresholds,
    build_thresholds,
    load_alert_thresholds,
    load_compliance_thresholds,
    load_geofence_settings,
    parse_threshold,
)
from tests.factories import create_test_tracking_setting


class TestParseThreshold:

    @pytest.mark.parametrize("raw,expected", [
        ("750", 750),
        (" 45 ", 45),
        (None, 30),
        ("", 30),
        ("abc", 30),
        ("12.5", 30),
        ("0", 30),
        ("-5", 30),
    ])
    def test_values(self, raw, expected):
        assert parse_threshold("stoppage_threshold_minutes", raw, 30) == expected

    def test_bad_value_is_logged(self, caplog):
        parse_threshold("delay_threshold_minutes", "soon", 60)
        assert "delay_threshold_minutes" in caplog.text


class TestBuildThresholds:

    def test_defaults(self):
        thresholds = build_thresholds(AlertThresholds, {})
        assert thresholds == AlertThresholds()
        assert thresholds.route_deviation_threshold_meters == 500
        assert thresholds.idle_threshold_minutes == 120

    def test_partial_override(self):
        thresholds = build_thresholds(ComplianceThresholds, {"compliance_warning_days": "45"})
        assert thresholds.compliance_warning_days == 45
        assert thresholds.compliance_critical_days == 7

    def test_frozen(self):
        thresholds = AlertThresholds()
        with pytest.raises(ValidationError):
            thresholds.delay_threshold_minutes = 5


class TestLoadFromDatabase:

    def test_empty_table_gives_defaults(self, db_session):
        assert load_alert_thresholds(db_session) == AlertThresholds()
        assert load_compliance_thresholds(db_session) == ComplianceThresholds()
        assert load_geofence_settings(db_session).geofence_default_radius_meters == 500

    def test_stored_values_used(self, db_session):
        create_test_tracking_setting(db_session, "route_deviation_threshold_meters", "800")
        create_test_tracking_setting(db_session, "stoppage_threshold_minutes", "not-a-number")
        create_test_tracking_setting(db_session, "geofence_stale_location_minutes", "15")
        db_session.commit()

        alert = load_alert_thresholds(db_session)
        assert alert.route_deviation_threshold_meters == 800
        assert alert.stoppage_threshold_minutes == 30
        assert load_geofence_settings(db_session).geofence_stale_location_minutes == 15
