"""
HTTP surface under /api/v1, driven through the Flask test client.

Every response uses the envelope ``{"ok", "data", "error"}``; domain errors
map to 400 / 404 / 409 and never leak internals.
"""

from __future__ import annotations

import pytest

V1 = "/api/v1"


@pytest.fixture()
def machine(client):
    response = client.post(
        f"{V1}/machines",
        json={
            "machine_code": "CNC-01",
            "name": "CNC Lathe 1",
            "machine_type": "CNC Lathe",
            "department": "Machining",
            "hourly_downtime_cost": 5000,
            "sensor_configs": [
                {"sensor_type": "temperature", "unit": "°C", "normal_min": 20, "normal_max": 75, "critical_max": 90}
            ],
        },
    )
    assert response.status_code == 201
    return response.get_json()["data"]


def ingest(client, machine_id, value, sensor="temperature"):
    return client.post(
        f"{V1}/telemetry/ingest",
        json={"machine_id": machine_id, "readings": [{"sensor_type": sensor, "value": value}]},
    )


# ========================== Telemetry ======================================


def test_ingest_critical_reading(client, machine):
    response = ingest(client, machine["machine_id"], 95)
    body = response.get_json()

    assert response.status_code == 201
    assert body["ok"] is True
    assert body["error"] is None
    assert body["data"]["machine_status"] == "DOWN"
    assert body["data"]["downtime_triggered"] is True
    assert body["data"]["plant_health"] == 75
    assert body["data"]["anomalies"][0]["severity"] == "CRITICAL"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"machine_id": 1, "readings": []},
        {"machine_id": 1, "readings": [{"sensor_type": "temperature", "value": "hot"}]},
        {"machine_id": 1, "readings": [{"sensor_type": "temperature", "value": True}]},
        {"machine_id": 0, "readings": [{"sensor_type": "temperature", "value": 50}]},
    ],
)
def test_ingest_rejects_bad_payload(client, machine, payload):
    response = client.post(f"{V1}/telemetry/ingest", json=payload)
    body = response.get_json()
    assert response.status_code == 400
    assert body["ok"] is False
    assert body["data"] is None
    assert body["error"]["message"]


def test_ingest_unknown_machine(client):
    response = ingest(client, 4242, 50)
    assert response.status_code == 404
    assert response.get_json()["ok"] is False


def test_latest_and_history(client, machine):
    ingest(client, machine["machine_id"], 60)
    latest = client.get(f"{V1}/telemetry/{machine['machine_id']}/latest").get_json()["data"]
    assert latest["readings"][0]["value"] == 60.0

    history = client.get(f"{V1}/telemetry/{machine['machine_id']}/history?sensor=temperature&hours=1")
    assert history.status_code == 200
    assert len(history.get_json()["data"]["readings"]) == 1

    assert client.get(f"{V1}/telemetry/{machine['machine_id']}/history?hours=0").status_code == 400


# ========================== Alerts =========================================


def test_alert_lifecycle(client, machine):
    alert_id = ingest(client, machine["machine_id"], 95).get_json()["data"]["anomalies"][0]["alert_id"]

    active = client.get(f"{V1}/alerts/active").get_json()["data"]
    assert active["count"] == 1
    assert active["summary"]["active_by_severity"] == {"CRITICAL": 1}

    acked = client.post(f"{V1}/alerts/{alert_id}/acknowledge", json={"actor": "shift-lead"})
    assert acked.status_code == 200
    assert acked.get_json()["data"]["status"] == "acknowledged"

    again = client.post(f"{V1}/alerts/{alert_id}/acknowledge", json={})
    assert again.status_code == 409
    assert again.get_json()["error"]["message"]

    assert client.post(f"{V1}/alerts/{alert_id}/resolve", json={}).status_code == 200
    assert client.post(f"{V1}/alerts/{alert_id}/dismiss", json={}).status_code == 409

    listed = client.get(f"{V1}/alerts?status=resolved").get_json()["data"]
    assert [a["alert_id"] for a in listed["alerts"]] == [alert_id]


def test_alert_not_found(client):
    assert client.get(f"{V1}/alerts/9999").status_code == 404
    assert client.post(f"{V1}/alerts/9999/resolve", json={}).status_code == 404


def test_alert_list_rejects_bad_filter(client):
    assert client.get(f"{V1}/alerts?limit=0").status_code == 400


# ========================== Downtime =======================================


def test_repair_fires_scheme_trigger(client, machine, app_matcher):
    event_id = ingest(client, machine["machine_id"], 95).get_json()["data"]["downtime_event_id"]

    active = client.get(f"{V1}/downtime/active").get_json()["data"]
    assert [e["event_id"] for e in active["events"]] == [event_id]

    response = client.patch(
        f"{V1}/downtime/{event_id}/repair",
        json={"repair_cost": 60000, "repair_description": "Rewound spindle motor", "estimated_repair_hours": 4},
    )
    body = response.get_json()["data"]

    assert response.status_code == 200
    assert body["event"]["status"] == "resolved"
    assert body["scheme_triggered"] is True
    assert body["cost_analysis"]["total_loss"] >= 60000
    assert body["estimated_repair_hours"] == 4
    assert len(app_matcher.calls) == 1

    second = client.patch(f"{V1}/downtime/{event_id}/repair", json={"repair_cost": 60000})
    assert second.status_code == 409
    assert len(app_matcher.calls) == 1

    detail = client.get(f"{V1}/downtime/{event_id}").get_json()["data"]
    assert detail["event"]["scheme_triggered"] == 1
    assert detail["cost_analysis"]["repair_cost"] == 60000


@pytest.mark.parametrize("payload", [{}, {"repair_cost": -5}, {"repair_cost": "lots"}])
def test_repair_validation(client, machine, payload):
    event_id = ingest(client, machine["machine_id"], 95).get_json()["data"]["downtime_event_id"]
    assert client.patch(f"{V1}/downtime/{event_id}/repair", json=payload).status_code == 400
    assert client.get(f"{V1}/downtime/{event_id}").get_json()["data"]["event"]["status"] == "ongoing"


def test_manual_downtime(client, machine):
    response = client.post(f"{V1}/downtime", json={"machine_id": machine["machine_id"], "cause": "Belt snapped"})
    assert response.status_code == 201
    assert client.post(f"{V1}/downtime", json={"machine_id": machine["machine_id"]}).status_code == 409
    assert client.get(f"{V1}/downtime/history?limit=1000").status_code == 400


# ========================== Machines / dashboard / simulator ===============


def test_machine_registry(client, machine):
    duplicate = client.post(
        f"{V1}/machines", json={"machine_code": "CNC-01", "name": "Clone", "machine_type": "CNC Lathe"}
    )
    assert duplicate.status_code == 409

    listing = client.get(f"{V1}/machines").get_json()["data"]
    assert listing["total"] == 1

    status = client.put(f"{V1}/machines/{machine['machine_id']}/status", json={"status": "maintenance"})
    assert status.get_json()["data"]["status"] == "MAINTENANCE"
    assert client.put(f"{V1}/machines/{machine['machine_id']}/status", json={"status": "exploded"}).status_code == 400
    assert client.get(f"{V1}/machines/4242").status_code == 404


def test_dashboard_overview(client, machine):
    ingest(client, machine["machine_id"], 95)
    overview = client.get(f"{V1}/dashboard/overview").get_json()["data"]
    assert overview["health"] == 75
    assert overview["status"] == "warning"
    assert overview["pulse"] == "Elevated"
    assert overview["machines"]["by_status"]["DOWN"] == 1

    diagnostics = client.post(f"{V1}/dashboard/diagnostics")
    assert diagnostics.status_code == 200
    assert diagnostics.get_json()["data"]["health"] == 75


def test_dashboard_bad_plant_id(client):
    assert client.get(f"{V1}/dashboard/overview?plant_id=abc").status_code == 400
    assert client.get(f"{V1}/dashboard/overview?plant_id=999").status_code == 404


def test_simulator_round_trip(client, machine):
    update = client.post(f"{V1}/simulator/update-machine", json={"machine_id": machine["machine_id"], "temperature": 95})
    assert update.get_json()["data"]["machine_status"] == "DOWN"

    reset = client.post(f"{V1}/simulator/reset-machine", json={"machine_id": machine["machine_id"]})
    data = reset.get_json()["data"]
    assert data["status"] == "ACTIVE"
    assert len(data["resolved_alert_ids"]) == 1

    assert client.post(f"{V1}/simulator/reset-all", json={}).get_json()["data"]["machines_reset"] == 1
    assert client.post(f"{V1}/simulator/update-machine", json={"machine_id": machine["machine_id"]}).status_code == 400


def test_unknown_route_returns_json(client):
    response = client.get(f"{V1}/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["ok"] is False


def test_sensor_config_update_changes_classification(client, machine):
    machine_id = machine["machine_id"]
    response = client.put(
        f"{V1}/machines/{machine_id}/sensors",
        json={"sensor_configs": [{"sensor_type": "temperature", "normal_min": 20, "normal_max": 70, "critical_max": 85}]},
    )
    assert response.status_code == 200

    body = ingest(client, machine_id, 72).get_json()["data"]
    assert body["anomalies"][0]["severity"] == "WARNING"

    assert client.put(f"{V1}/machines/{machine_id}/sensors", json={}).status_code == 400
