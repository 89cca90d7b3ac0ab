from scheduler import Scheduler


def test_runs_callbacks_in_due_order():
    scheduler = Scheduler()
    calls = []
    scheduler.schedule(0, 1.0, lambda: calls.append("late"))
    scheduler.schedule(0, 0.5, lambda: calls.append("early"))

    assert scheduler.run_due(0.4) == 0
    assert scheduler.run_due(1.0) == 2
    assert calls == ["early", "late"]
    assert scheduler.next_due() is None


def test_callbacks_scheduled_while_running_are_picked_up():
    scheduler = Scheduler()
    calls = []

    def first():
        calls.append("first")
        scheduler.schedule(0.5, 0.5, lambda: calls.append("second"))

    scheduler.schedule(0, 0.5, first)
    scheduler.run_due(2.0)
    assert calls == ["first", "second"]


def test_invalidated_callbacks_are_dropped_when_due():
    scheduler = Scheduler()
    calls = []
    scheduler.schedule(0, 0.5, lambda: calls.append("stale"))
    generation = scheduler.invalidate()
    scheduler.schedule(0, 0.5, lambda: calls.append("fresh"))

    assert generation == 1
    assert scheduler.pending() == 2
    scheduler.run_due(1.0)
    assert calls == ["fresh"]
    assert scheduler.pending() == 0
