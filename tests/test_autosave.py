from batisync.core.autosave import AutoSaveController


def test_debounce_restarts_and_emits_once(qapp, pump) -> None:
    controller = AutoSaveController(debounce_ms=80, periodic_ms=60_000)
    reasons: list[str] = []
    controller.save_requested.connect(reasons.append)

    for _ in range(4):
        controller.mark_dirty()
        pump(20)
    assert reasons == []

    pump(200)
    assert reasons == ["debounce"]
    assert controller.last_reason == "debounce"
    assert controller.periodic_active is True


def test_periodic_fires_while_debounce_is_starved(qapp, pump) -> None:
    controller = AutoSaveController(debounce_ms=5_000, periodic_ms=60)
    reasons: list[str] = []
    controller.save_requested.connect(reasons.append)

    for _ in range(8):
        controller.mark_dirty()
        pump(20)

    assert "periodic" in reasons
    assert "debounce" not in reasons


def test_clear_dirty_stops_timers_and_notifies(qapp, pump) -> None:
    controller = AutoSaveController(debounce_ms=40, periodic_ms=40)
    reasons: list[str] = []
    states: list[bool] = []
    controller.save_requested.connect(reasons.append)
    controller.dirty_changed.connect(states.append)

    controller.mark_dirty()
    controller.mark_dirty()
    controller.clear_dirty()
    pump(120)

    assert reasons == []
    assert controller.periodic_active is False
    assert states == [True, False]
    assert controller.dirty is False


def test_stop_keeps_dirty_flag(qapp, pump) -> None:
    controller = AutoSaveController(debounce_ms=30, periodic_ms=30)
    reasons: list[str] = []
    controller.save_requested.connect(reasons.append)

    controller.mark_dirty()
    controller.stop()
    pump(100)

    assert reasons == []
    assert controller.dirty is True


def test_flush_now_only_when_dirty(qapp) -> None:
    controller = AutoSaveController()
    reasons: list[str] = []
    controller.save_requested.connect(reasons.append)

    controller.flush_now()
    controller.mark_dirty()
    controller.flush_now("navigation")
    controller.stop()

    assert reasons == ["navigation"]
    assert controller.last_reason == "navigation"
