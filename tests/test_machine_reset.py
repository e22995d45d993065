"""Simulator updates and machine resets."""

from __future__ import annotations

import pytest

from app.domain.exceptions import NotFoundError, ValidationError
from app.enums import MachineStatus


def temp(value):
    return {"sensor_type": "temperature", "value": value}


@pytest.fixture()
def machine(seed):
    return seed.create_machine()


def test_reset_with_normal_reading_resolves_real_alert(engine, simulator_service, machine, seed):
    incident = engine.ingest(machine["machine_id"], [temp(95)])
    alert_id = incident.anomalies[0].alert_id

    outcome = simulator_service.reset_machine(machine["machine_id"], [temp(50)])

    assert outcome["status"] == "ACTIVE"
    assert outcome["resolved_alert_ids"] == [alert_id]
    assert engine.alert_service.get_alert(alert_id)["status"] == "resolved"

    # Downtime only closes through a repair; the DOWN penalty is gone with the status
    assert engine.downtime_service.get_ongoing(machine["machine_id"])["event_id"] == incident.downtime_event_id
    assert outcome["plant_health"] == 100
    assert outcome["plant_status"] == "stable"

    stored = seed.machine(machine["machine_id"])
    assert stored["status"] == "ACTIVE"
    assert stored["temperature"] == 50.0
    assert stored["load_percentage"] == 50.0
    assert seed.count("TelemetryEvent", "source = 'simulator'") == 1


def test_reset_keeps_alerts_for_sensors_still_out_of_band(engine, simulator_service, machine):
    incident = engine.ingest(machine["machine_id"], [temp(95), {"sensor_type": "vibration", "value": 12}])
    temp_alert, vib_alert = (a.alert_id for a in incident.anomalies)

    outcome = simulator_service.reset_machine(
        machine["machine_id"], [temp(50), {"sensor_type": "vibration", "value": 12}]
    )

    assert outcome["resolved_alert_ids"] == [temp_alert]
    assert outcome["status"] == "DOWN"
    assert engine.alert_service.get_alert(vib_alert)["status"] == "active"


def test_reset_without_readings_clears_everything(engine, simulator_service, machine, seed):
    engine.ingest(machine["machine_id"], [temp(95)])
    simulator_service.update_machine(machine["machine_id"], temperature=96)
    assert seed.count("Alert", "status = 'active'") == 2

    outcome = simulator_service.reset_machine(machine["machine_id"])

    assert len(outcome["resolved_alert_ids"]) == 2
    assert outcome["status"] == "ACTIVE"
    stored = seed.machine(machine["machine_id"])
    assert stored["temperature"] is None
    assert stored["vibration_level"] is None
    assert seed.count("DowntimeEvent", "status = 'ongoing'") == 1


def test_reset_does_not_touch_alerts_on_other_machines(engine, simulator_service, machine, seed):
    other = seed.create_machine("Press 2", "Hydraulic Press")
    engine.ingest(other["machine_id"], [temp(95)])

    outcome = simulator_service.reset_machine(machine["machine_id"])

    assert outcome["resolved_alert_ids"] == []
    assert seed.count("Alert", "status = 'active'") == 1


def test_reset_unknown_machine(simulator_service):
    with pytest.raises(NotFoundError):
        simulator_service.reset_machine(4242)


def test_reset_all_resolves_only_simulator_alerts(engine, simulator_service, machine, seed):
    other = seed.create_machine("Press 2", "Hydraulic Press")
    real = engine.ingest(machine["machine_id"], [temp(95)])
    simulated = simulator_service.update_machine(other["machine_id"], temperature=80)

    outcome = simulator_service.reset_all(seed.plant_id)

    assert outcome["machines_reset"] == 2
    assert outcome["resolved_alert_ids"] == [simulated.anomalies[0].alert_id]
    assert engine.alert_service.get_alert(real.anomalies[0].alert_id)["status"] == "active"
    assert seed.count("Alert", "status = 'active' AND sensor_key LIKE 'TEL-%'") == 1
    assert seed.machine(machine["machine_id"])["status"] == "ACTIVE"
    assert seed.machine(other["machine_id"])["status"] == "ACTIVE"
    # Both machines ACTIVE; the surviving CRITICAL alert still costs 10
    assert outcome["plant_health"] == 90


# ========================== Simulated updates ==============================


def test_simulated_readings_use_their_own_sensor_key(simulator_service, machine):
    result = simulator_service.update_machine(machine["machine_id"], temperature=95, load=40)

    assert result.machine_status is MachineStatus.DOWN
    alert = simulator_service.alert_service.get_alert(result.anomalies[0].alert_id)
    assert alert["sensor_key"] == f"SIM-TEMPERATURE-{machine['machine_id']}"


def test_simulated_and_real_alerts_coexist(engine, simulator_service, machine, seed):
    simulator_service.update_machine(machine["machine_id"], temperature=95)
    engine.ingest(machine["machine_id"], [temp(95)])
    assert seed.count("Alert", "status = 'active'") == 2


def test_update_requires_a_reading(simulator_service, machine):
    with pytest.raises(ValidationError):
        simulator_service.update_machine(machine["machine_id"])
