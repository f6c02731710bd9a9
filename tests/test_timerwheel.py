import pytest

from reactornet.timerwheel import WHEEL_CAPACITY, TimerTask, TimerWheel


def test_task_fires_after_its_delay():
    wheel = TimerWheel()
    fired = []
    wheel.add_task(1, 3, lambda: fired.append(1))
    wheel.tick(3)
    assert fired == []
    assert wheel.has_timer(1)
    wheel.tick()
    assert fired == [1]
    assert not wheel.has_timer(1)


def test_task_fires_only_once():
    wheel = TimerWheel()
    fired = []
    wheel.add_task(7, 2, lambda: fired.append(7))
    wheel.tick(WHEEL_CAPACITY * 2)
    assert fired == [7]


def test_cancelled_task_does_not_run_but_is_released():
    wheel = TimerWheel()
    fired = []
    wheel.add_task(2, 1, lambda: fired.append(2))
    wheel.cancel_task(2)
    assert wheel.has_timer(2)
    wheel.tick(5)
    assert fired == []
    assert not wheel.has_timer(2)


def test_delay_task_postpones_expiry():
    wheel = TimerWheel()
    fired = []
    wheel.add_task(3, 3, lambda: fired.append(3))
    wheel.tick(2)
    wheel.delay_task(3)
    wheel.tick(3)
    assert fired == []
    wheel.tick()
    assert fired == [3]


def test_unknown_ids_are_ignored():
    wheel = TimerWheel()
    wheel.cancel_task(99)
    wheel.delay_task(99)
    assert not wheel.has_timer(99)


def test_tasks_in_same_slot_fire_in_insertion_order():
    wheel = TimerWheel()
    order = []
    for task_id in (10, 11, 12):
        wheel.add_task(task_id, 4, lambda task_id=task_id: order.append(task_id))
    wheel.tick(WHEEL_CAPACITY)
    assert order == [10, 11, 12]


def test_longest_delay_wraps_around_wheel():
    wheel = TimerWheel()
    fired = []
    wheel.tick(10)
    wheel.add_task(5, WHEEL_CAPACITY - 1, lambda: fired.append(5))
    wheel.tick(WHEEL_CAPACITY - 1)
    assert fired == []
    wheel.tick()
    assert fired == [5]


@pytest.mark.parametrize("delay", [WHEEL_CAPACITY, -1])
def test_invalid_delay_rejected(delay):
    with pytest.raises(ValueError):
        TimerWheel().add_task(1, delay, lambda: None)


def test_negative_tick_rejected():
    with pytest.raises(ValueError):
        TimerWheel().tick(-1)


def test_timer_task_fire_and_release():
    calls = []
    released = []
    task = TimerTask(4, 5, lambda: calls.append("run"), released.append)
    task.fire()
    task.fire()
    assert calls == ["run"]
    assert released == [4]


def test_cancelled_timer_task_skips_callback():
    calls = []
    released = []
    task = TimerTask(6, 1, lambda: calls.append("run"), released.append)
    task.cancel()
    task.fire()
    assert calls == []
    assert released == [6]
    assert task.fired


def test_readding_same_id_keeps_newer_task_registered():
    wheel = TimerWheel()
    fired = []
    wheel.add_task(8, 1, lambda: fired.append("old"))
    wheel.add_task(8, 5, lambda: fired.append("new"))
    wheel.tick(2)
    assert fired == ["old"]
    assert wheel.has_timer(8)
    wheel.tick(WHEEL_CAPACITY)
    assert fired == ["old", "new"]
    assert not wheel.has_timer(8)