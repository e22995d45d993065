"""
Alert ledger: deduplication per sensor key and the operator lifecycle.
"""

from __future__ import annotations

import pytest

from app.domain.exceptions import ConflictError, NotFoundError, ValidationError
from app.domain.sensor_key import SensorKey
from app.domain.thresholds import SensorThreshold
from app.enums import AlertSeverity, TelemetrySource, WebSocketEvent

TEMP = SensorThreshold("temperature", "°C", 20, 75, critical_max=90)
VIB = SensorThreshold("vibration", "mm/s", 0, 5, critical_max=10)


@pytest.fixture()
def machine(seed):
    return seed.create_machine(machine_code="CNC-01")


def _temp_key(machine, source=TelemetrySource.TELEMETRY):
    return SensorKey(machine["machine_id"], "temperature", source)


# ========================== Deduplication ==================================


def test_alert_dedupe_db(alert_service, machine, seed):
    first = alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.WARNING, 80, threshold=TEMP)
    assert first.created
    assert first.alert["status"] == "active"
    assert first.alert["sensor_key"] == f"TEL-TEMPERATURE-{machine['machine_id']}"
    assert first.alert["alert_code"].startswith("#AL-CNC-01-TEM-")
    assert first.alert["title"] == "WARNING: Temperature Anomaly - CNC Lathe 1"

    # Same condition again: refreshed in place, severity follows the latest reading
    second = alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.CRITICAL, 95, threshold=TEMP)
    assert not second.created
    assert second.alert_id == first.alert_id
    assert second.alert["severity"] == "CRITICAL"
    assert "Immediate inspection" in second.alert["description"]

    assert seed.count("Alert") == 1


def test_emits_created_then_updated(alert_service, machine, mock_emitter):
    alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.WARNING, 80, threshold=TEMP)
    alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.WARNING, 81, threshold=TEMP)

    events = [call.args[0] for call in mock_emitter.emit_alert.call_args_list]
    assert events == [WebSocketEvent.ALERT_CREATED, WebSocketEvent.ALERT_UPDATED]


def test_estimates_are_attached(alert_service, machine):
    alert = alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.CRITICAL, 200, threshold=TEMP).alert
    assert alert["production_impact"] == -30.0
    assert alert["confidence"] == 99


def test_sources_and_sensors_are_independent(alert_service, machine, seed):
    alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.WARNING, 80, threshold=TEMP)
    alert_service.record_anomaly(
        machine, _temp_key(machine, TelemetrySource.SIMULATOR), AlertSeverity.WARNING, 80, threshold=TEMP
    )
    alert_service.record_anomaly(
        machine, SensorKey(machine["machine_id"], "vibration"), AlertSeverity.WARNING, 6, threshold=VIB
    )
    assert seed.count("Alert", "status = 'active'") == 3


def test_same_millisecond_code_collision_gets_suffix(alert_service, machine):
    first = alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.WARNING, 80, threshold=TEMP)
    twin = alert_service.record_anomaly(
        machine, _temp_key(machine, TelemetrySource.SIMULATOR), AlertSeverity.WARNING, 80, threshold=TEMP
    )
    assert twin.alert["alert_code"] == f"{first.alert['alert_code']}-1"


def test_reading_is_linked_to_alert(alert_service, telemetry_repo, machine, db_connection):
    reading_id = telemetry_repo.append(
        machine["machine_id"], "temperature", 95.0, "°C", "telemetry", True, "CRITICAL", "2025-06-02T08:00:00.000000+00:00"
    )
    outcome = alert_service.record_anomaly(
        machine, _temp_key(machine), AlertSeverity.CRITICAL, 95, threshold=TEMP, reading_id=reading_id
    )
    row = db_connection.execute(
        "SELECT triggered_alert_id FROM TelemetryEvent WHERE event_id = ?", (reading_id,)
    ).fetchone()
    assert row["triggered_alert_id"] == outcome.alert_id


def test_non_sensor_severity_is_rejected(alert_service, machine, seed):
    with pytest.raises(ValidationError):
        alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.INFO, 80)
    assert seed.count("Alert") == 0


# ========================== Lifecycle ======================================


class TestLifecycle:
    @pytest.fixture()
    def alert_id(self, alert_service, machine):
        return alert_service.record_anomaly(
            machine, _temp_key(machine), AlertSeverity.CRITICAL, 95, threshold=TEMP
        ).alert_id

    def test_acknowledge_then_resolve(self, alert_service, alert_id, mock_audit_logger):
        acked = alert_service.acknowledge_alert(alert_id, actor="shift-lead")
        assert acked["status"] == "acknowledged"
        assert acked["acknowledged_at"]

        resolved = alert_service.resolve_alert(alert_id)
        assert resolved["status"] == "resolved"
        assert resolved["resolved_at"]

        actions = [call.args[1] for call in mock_audit_logger.log_event.call_args_list]
        assert actions == ["alert_acknowledged", "alert_resolved"]
        assert mock_audit_logger.log_event.call_args_list[0].args[0] == "shift-lead"

    def test_double_acknowledge_conflicts(self, alert_service, alert_id):
        alert_service.acknowledge_alert(alert_id)
        with pytest.raises(ConflictError) as exc_info:
            alert_service.acknowledge_alert(alert_id)
        assert exc_info.value.detail["status"] == "acknowledged"

    def test_terminal_states_cannot_move(self, alert_service, alert_id):
        alert_service.dismiss_alert(alert_id)
        for action in (alert_service.acknowledge_alert, alert_service.resolve_alert, alert_service.dismiss_alert):
            with pytest.raises(ConflictError):
                action(alert_id)

    def test_unknown_alert(self, alert_service):
        with pytest.raises(NotFoundError):
            alert_service.resolve_alert(9999)

    def test_acknowledged_alert_frees_the_dedupe_slot(self, alert_service, alert_id, machine, seed):
        alert_service.acknowledge_alert(alert_id)
        again = alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.CRITICAL, 96, threshold=TEMP)
        assert again.created
        assert again.alert_id != alert_id
        assert seed.count("Alert") == 2

    def test_transition_recomputes_plant_health(self, alert_service, alert_id, seed):
        alert_service.acknowledge_alert(alert_id)
        plant = seed.plant()
        assert plant["overall_health"] == 100
        assert plant["last_health_sync"]


# ========================== Bulk resolve and queries =======================


def test_resolve_active_for_machine_filters(alert_service, machine):
    tel = alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.WARNING, 80, threshold=TEMP)
    sim = alert_service.record_anomaly(
        machine, _temp_key(machine, TelemetrySource.SIMULATOR), AlertSeverity.WARNING, 80, threshold=TEMP
    )
    vib = alert_service.record_anomaly(
        machine, SensorKey(machine["machine_id"], "vibration"), AlertSeverity.WARNING, 6, threshold=VIB
    )

    assert alert_service.resolve_active_for_machine(machine["machine_id"], source=TelemetrySource.SIMULATOR) == [
        sim.alert_id
    ]
    assert alert_service.resolve_active_for_machine(machine["machine_id"], sensor_types={"vibration"}) == [
        vib.alert_id
    ]
    assert alert_service.resolve_active_for_machine(machine["machine_id"]) == [tel.alert_id]
    assert alert_service.resolve_active_for_machine(machine["machine_id"]) == []


def test_active_alerts_most_severe_first(alert_service, machine, seed):
    alert_service.record_anomaly(
        machine, SensorKey(machine["machine_id"], "vibration"), AlertSeverity.WARNING, 6, threshold=VIB
    )
    alert_service.record_anomaly(machine, _temp_key(machine), AlertSeverity.CRITICAL, 95, threshold=TEMP)

    alerts = alert_service.list_active_alerts(seed.plant_id)
    assert [a["severity"] for a in alerts] == ["CRITICAL", "WARNING"]
    assert alerts[0]["machine_name"] == "CNC Lathe 1"

    summary = alert_service.get_alert_summary(seed.plant_id)
    assert summary["active"] == 2
    assert summary["active_by_severity"] == {"CRITICAL": 1, "WARNING": 1}
