"""
Downtime lifecycle and the one-time scheme trigger.

The reference incident: a CNC lathe costing 5000/h goes DOWN, is repaired
three hours later for 40000, so the total loss is 40000 + 3 x 5000 = 55000,
above the 50000 trigger.
"""

from __future__ import annotations

import pytest

from app.domain.exceptions import ConflictError, NotFoundError, ValidationError
from app.enums import WebSocketEvent
from app.services.application.cost_threshold_service import CostThresholdService, build_issue_description


def temp(value):
    return {"sensor_type": "temperature", "value": value}


@pytest.fixture()
def machine(seed):
    return seed.create_machine(hourly_downtime_cost=5000)


@pytest.fixture()
def event_id(engine, machine):
    return engine.ingest(machine["machine_id"], [temp(95)]).downtime_event_id


# ========================== Repair + scheme trigger ========================


def test_repair_over_threshold_fires_scheme_once(engine, event_id, machine, clock, scheme_matcher, seed):
    clock.advance(hours=3)
    result = engine.submit_repair(event_id, 40000, description="Replaced spindle bearing")

    assert result.event["status"] == "resolved"
    assert result.event["duration_hours"] == 3.0
    assert result.event["repair_description"] == "Replaced spindle bearing"
    assert result.cost_analysis.production_loss == 15000
    assert result.cost_analysis.total_loss == 55000
    assert result.scheme_triggered
    assert result.scheme_result.total_potential_benefit == 1_500_000

    assert len(scheme_matcher.calls) == 1
    profile, issue = scheme_matcher.calls[0]
    assert profile.state == "Maharashtra"
    assert "Total Financial Impact: ₹55,000" in issue

    stored = engine.downtime_service.get_event(event_id)
    assert stored["scheme_triggered"] == 1
    assert stored["total_loss"] == 55000
    assert stored["scheme_triggered_at"]
    assert seed.machine(machine["machine_id"])["status"] == "ACTIVE"

    with pytest.raises(ConflictError):
        engine.submit_repair(event_id, 40000)
    assert engine.cost_service.trigger_if_needed(event_id) is None
    assert len(scheme_matcher.calls) == 1


def test_repair_below_threshold_does_not_fire(engine, event_id, clock, scheme_matcher):
    clock.advance(hours=1)
    result = engine.submit_repair(event_id, 1000)

    assert not result.scheme_triggered
    assert result.cost_analysis.total_loss == 6000
    assert scheme_matcher.calls == []
    assert engine.downtime_service.get_event(event_id)["total_loss"] is None


def test_repair_payload(engine, event_id, clock):
    clock.advance(hours=3)
    payload = engine.submit_repair(event_id, 40000, estimated_repair_hours=2.5).to_dict()

    assert payload["scheme_triggered"] is True
    assert payload["estimated_repair_hours"] == 2.5
    # the estimate never replaces the measured duration
    assert payload["event"]["duration_hours"] == 3.0
    assert payload["cost_analysis"]["threshold_breached"] is True
    assert [s["name"] for s in payload["scheme_result"]["schemes"]] == ["Credit Linked Capital Subsidy Scheme"]


def test_repair_emits_close_and_scheme_events(engine, event_id, clock, mock_emitter):
    clock.advance(hours=3)
    engine.submit_repair(event_id, 40000)
    events = [call.args[0] for call in mock_emitter.emit_downtime.call_args_list]
    assert events == [WebSocketEvent.DOWNTIME_OPENED, WebSocketEvent.DOWNTIME_CLOSED, WebSocketEvent.SCHEME_TRIGGERED]


def test_repair_recomputes_plant_health(engine, event_id, seed):
    engine.submit_repair(event_id, 100)
    # machine back to ACTIVE; the critical alert is still active (-10)
    assert seed.plant()["overall_health"] == 90


@pytest.mark.parametrize("cost", [None, -1, "abc", True, float("nan")])
def test_invalid_repair_cost_changes_nothing(engine, event_id, cost):
    with pytest.raises(ValidationError):
        engine.submit_repair(event_id, cost)
    assert engine.downtime_service.get_event(event_id)["status"] == "ongoing"


def test_repair_unknown_event(engine):
    with pytest.raises(NotFoundError):
        engine.submit_repair(4242, 100)


# ========================== Matcher failure ================================


def test_matcher_failure_leaves_event_eligible(
    engine, event_id, clock, downtime_repo, plant_repo, mock_audit_logger, matcher_factory
):
    clock.advance(hours=3)
    failing = CostThresholdService(
        downtime_repo, plant_repo, matcher_factory(error=RuntimeError("LLM down")),
        audit_logger=mock_audit_logger, clock=clock,
    )
    engine.cost_service = failing

    result = engine.submit_repair(event_id, 40000)

    assert result.event["status"] == "resolved"
    assert not result.scheme_triggered
    assert result.cost_analysis.total_loss == 55000
    stored = downtime_repo.get(event_id)
    assert stored["scheme_triggered"] == 0
    assert stored["scheme_lock_until"] is None

    retry_matcher = matcher_factory()
    retry = CostThresholdService(downtime_repo, plant_repo, retry_matcher, clock=clock)
    assert retry.trigger_if_needed(event_id) is not None
    assert len(retry_matcher.calls) == 1


def test_live_claim_blocks_a_second_trigger(event_id, downtime_repo, plant_repo, clock, engine, matcher_factory):
    clock.advance(hours=3)
    engine.downtime_service.on_repair_logged(event_id, 40000)

    assert downtime_repo.claim_scheme_trigger(event_id, 120, clock())
    matcher = matcher_factory()
    service = CostThresholdService(downtime_repo, plant_repo, matcher, clock=clock)
    assert service.trigger_if_needed(event_id) is None
    assert matcher.calls == []

    # an expired claim no longer blocks
    clock.advance(seconds=121)
    assert service.trigger_if_needed(event_id) is not None


def test_issue_description_mentions_machine(engine, event_id, clock):
    clock.advance(hours=3)
    engine.downtime_service.on_repair_logged(event_id, 40000)
    event = engine.downtime_service.get_event(event_id)
    text = build_issue_description(event, engine.cost_service.evaluate(event_id))
    assert text.startswith("Machine: CNC Lathe 1 (CNC Lathe, Machining)")
    assert "Downtime Duration: 3.0 hours" in text


# ========================== Opening ========================================


def test_manual_open_marks_machine_down(downtime_service, machine, seed, mock_audit_logger):
    event = downtime_service.open_manual(machine["machine_id"], cause="Coolant leak", actor="maint")

    assert event["status"] == "ongoing"
    assert event["cause"] == "Coolant leak"
    assert seed.machine(machine["machine_id"])["status"] == "DOWN"
    assert seed.plant()["overall_health"] == 85
    mock_audit_logger.log_event.assert_called_once()

    with pytest.raises(ConflictError):
        downtime_service.open_manual(machine["machine_id"])


def test_manual_open_unknown_machine(downtime_service):
    with pytest.raises(NotFoundError):
        downtime_service.open_manual(4242)


def test_critical_transition_reuses_ongoing_event(downtime_service, machine, seed):
    first, opened = downtime_service.on_critical_transition(machine, None, "first")
    again, reopened = downtime_service.on_critical_transition(machine, None, "second")
    assert opened and not reopened
    assert again["event_id"] == first["event_id"]
    assert seed.count("DowntimeEvent") == 1


def test_new_event_after_repair(engine, event_id, machine, clock):
    clock.advance(hours=1)
    engine.submit_repair(event_id, 100)
    clock.advance(hours=1)
    second = engine.ingest(machine["machine_id"], [temp(95)])
    assert second.downtime_triggered
    assert second.downtime_event_id != event_id


def test_active_and_history_listing(engine, event_id, machine, seed, clock):
    assert [e["event_id"] for e in engine.downtime_service.list_active(seed.plant_id)] == [event_id]
    clock.advance(hours=1)
    engine.submit_repair(event_id, 100)
    assert engine.downtime_service.list_active(seed.plant_id) == []
    history = engine.downtime_service.list_history(seed.plant_id)
    assert history[0]["machine_name"] == "CNC Lathe 1"
