from dispatch_sim.settings import Settings
from dispatch_sim.sim.engine import DispatchEngine
from dispatch_sim.sim.world import IncidentTemplate


KITCHEN_FIRE = IncidentTemplate("Small kitchen fire", {"LF": 1, "RTW": 1})
DOUBLE_ENGINE = IncidentTemplate("Two engines", {"LF": 2})


def _engine(template: IncidentTemplate = KITCHEN_FIRE, **overrides) -> DispatchEngine:
    params = {"spawn_every_ms": 10**9, "deadline_jitter_ms": 0}
    params.update(overrides)
    return DispatchEngine(Settings(**params), templates=[template])


def test_two_unit_incident_starts_on_arrival_and_resolves_on_time():
    engine = _engine()
    incident = engine.spawn_incident()
    assert incident is not None
    assert incident.deadline == 18000

    assert engine.assign(incident.id, "LF")
    assert engine.assign(incident.id, "RTW")
    assert engine.score.total == 10
    assert engine.state.units["LF-1"].status == "traveling_to_scene"
    assert engine.state.units["RTW-1"].status == "traveling_to_scene"
    assert engine.state.units["LF-1"].commit_until == 3500

    engine.step(3499)
    inc = engine.state.incidents[incident.id]
    assert inc.status == "open"
    assert inc.assigned_counts() == {"LF": 0, "RTW": 0}
    assert engine.state.units["LF-1"].status == "traveling_to_scene"

    engine.step(1)
    inc = engine.state.incidents[incident.id]
    assert inc.status == "in_progress"
    assert inc.started_at == 3500
    assert inc.assigned == {"LF": ("LF-1",), "RTW": ("RTW-1",)}
    assert engine.state.units["LF-1"].status == "on_scene"
    assert engine.state.units["LF-1"].commit_until == 3500 + 8000 + 3500

    engine.step(8000)
    inc = engine.state.incidents[incident.id]
    assert inc.status == "resolved"
    assert inc.progress == 1.0
    assert inc.outcome == "on_time"
    assert inc.resolved_at == 11500
    assert sorted(inc.served_by) == ["LF-1", "RTW-1"]
    assert engine.score.total == 10 + 120


def test_in_progress_incident_past_deadline_resolves_late_instead_of_escalating():
    engine = _engine(deadline_grace_ms=0)
    incident = engine.spawn_incident()
    assert incident.deadline == 8000

    engine.assign(incident.id, "LF")
    engine.assign(incident.id, "RTW")
    engine.step(3500)
    engine.step(4600)

    inc = engine.state.incidents[incident.id]
    assert engine.state.now > inc.deadline
    assert inc.status == "in_progress"

    engine.step(3400)
    inc = engine.state.incidents[incident.id]
    assert inc.status == "resolved"
    assert inc.outcome == "late"
    assert engine.score.total == 10 - 80


def test_assign_without_idle_unit_is_noop():
    engine = _engine(DOUBLE_ENGINE)
    first = engine.spawn_incident()
    second = engine.spawn_incident()

    assert engine.assign(first.id, "LF")
    assert engine.assign(first.id, "LF")
    assert not engine.assign(second.id, "LF")
    assert engine.score.total == 10
    assert [e.incident_id for e in engine.score.events] == [first.id, first.id]


def test_assign_to_unknown_or_terminal_incident_is_noop():
    engine = _engine(deadline_grace_ms=0)
    incident = engine.spawn_incident()

    assert not engine.assign("INC-9999", "LF")
    engine.step(8001)
    assert engine.state.incidents[incident.id].status == "escalated"
    score = engine.score.total

    assert not engine.assign(incident.id, "LF")
    assert engine.score.total == score
    assert all(unit.is_idle for unit in engine.state.units.values())


def test_unassign_on_in_progress_incident_is_noop():
    engine = _engine()
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.assign(incident.id, "RTW")
    engine.step(3500)

    before = engine.state.incidents[incident.id]
    assert before.status == "in_progress"
    assert not engine.unassign(incident.id, "LF", "LF-1")
    assert engine.state.incidents[incident.id] == before


def test_unassign_on_open_incident_detaches_but_keeps_unit_committed():
    engine = _engine(DOUBLE_ENGINE)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.step(3500)
    assert engine.state.incidents[incident.id].assigned["LF"] == ("LF-1",)

    assert engine.unassign(incident.id, "LF", "LF-1")
    inc = engine.state.incidents[incident.id]
    assert inc.assigned["LF"] == ()
    assert inc.last_message == "LF-1 withdrawn."
    unit = engine.state.units["LF-1"]
    assert unit.status == "on_scene"
    assert unit.commit_until == 3500 + 8000 + 3500


def test_unassign_before_arrival_does_not_cancel_travel():
    engine = _engine(DOUBLE_ENGINE)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")

    assert not engine.unassign(incident.id, "LF", "LF-1")
    engine.step(3500)
    assert engine.state.incidents[incident.id].assigned["LF"] == ("LF-1",)


def test_arrival_at_escalated_incident_does_not_attach():
    engine = _engine(deadline_grace_ms=0, travel_ms=20000)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")

    engine.step(8001)
    assert engine.state.incidents[incident.id].status == "escalated"
    frozen = engine.state.incidents[incident.id]

    engine.step(11999)
    assert engine.state.incidents[incident.id] == frozen
    unit = engine.state.units["LF-1"]
    assert unit.status == "on_scene"
    assert unit.current_assignment is None
    assert unit.commit_until == 20000 + 8000 + 20000


def test_deadline_passing_before_arrival_escalates_within_one_long_step():
    engine = _engine(deadline_grace_ms=0, travel_ms=20000)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.assign(incident.id, "RTW")

    engine.step(25000)
    inc = engine.state.incidents[incident.id]
    assert inc.status == "escalated"
    assert inc.served_by == ()
    assert engine.score.total == 10 - 150


def test_units_return_then_release_and_become_assignable():
    engine = _engine()
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.assign(incident.id, "RTW")
    engine.step(3500)
    engine.step(8000)

    assert engine.state.units["LF-1"].status == "traveling_back"
    assert engine.state.units["LF-1"].current_assignment.phase == "returning"

    engine.step(3499)
    assert engine.state.units["LF-1"].status == "traveling_back"
    engine.step(1)
    unit = engine.state.units["LF-1"]
    assert unit.status == "idle"
    assert unit.commit_until is None
    assert unit.current_assignment is None

    follow_up = engine.spawn_incident()
    assert engine.assign(follow_up.id, "LF")
    assert engine.state.units["LF-1"].current_assignment.incident_id == follow_up.id


def test_early_arrival_is_held_on_scene_until_work_ends():
    engine = _engine(DOUBLE_ENGINE, deadline_grace_ms=30000)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.step(5000)
    engine.assign(incident.id, "LF")
    engine.step(3500)

    inc = engine.state.incidents[incident.id]
    assert inc.status == "in_progress"
    assert inc.started_at == 8500
    assert engine.state.units["LF-1"].commit_until == 8500 + 8000 + 3500
    assert engine.state.units["LF-2"].commit_until == 8500 + 8000 + 3500


def test_unit_leaving_open_incident_is_detached_from_roster():
    engine = _engine(DOUBLE_ENGINE, deadline_grace_ms=30000)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.step(3500)
    assert engine.state.incidents[incident.id].assigned["LF"] == ("LF-1",)

    engine.step(11500)
    inc = engine.state.incidents[incident.id]
    assert inc.status == "open"
    assert inc.assigned["LF"] == ()
    assert inc.last_message == "LF-1 left the scene (commitment ended)."
    assert engine.state.units["LF-1"].is_idle


def test_unassign_on_terminal_incident_is_noop():
    engine = _engine(deadline_grace_ms=0)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.step(3500)
    engine.step(4501)

    before = engine.state.incidents[incident.id]
    assert before.status == "escalated"
    assert before.served_by == ("LF-1",)
    assert not engine.unassign(incident.id, "LF", "LF-1")
    assert engine.state.incidents[incident.id] == before


def _stale_unit_scenario(steps: list[float]) -> tuple:
    # LF-1 is committed until 15000; LF-2 is sent at 11600 and arrives at 15100.
    engine = _engine(DOUBLE_ENGINE, deadline_grace_ms=30000)
    incident = engine.spawn_incident()
    engine.assign(incident.id, "LF")
    engine.step(3500)
    engine.step(8100)
    assert engine.assign(incident.id, "LF")
    assert engine.state.units["LF-2"].commit_until == 15100

    for elapsed in steps:
        engine.step(elapsed)
    inc = engine.state.incidents[incident.id]
    lf1 = engine.state.units["LF-1"]
    return inc.status, inc.assigned, lf1.status, lf1.commit_until


def test_arrival_does_not_count_unit_released_earlier_in_same_tick():
    fine = _stale_unit_scenario([100.0] * 44)
    coarse = _stale_unit_scenario([4400.0])

    assert fine == ("open", {"LF": ("LF-2",)}, "idle", None)
    assert coarse == fine
