import threading

import pytest

from flute.event_loop_group import EventLoopGroup


@pytest.mark.timeout(10)
def test_child_loop_size_and_selection():
    with EventLoopGroup(2) as group:
        assert group.child_loop_size() == 2
        first = group.choose_slave_event_loop(0)
        second = group.choose_slave_event_loop(1)
        assert first is not second
        assert group.choose_slave_event_loop(2) is first
        assert group.choose_slave_event_loop(3) is second
        assert first is not group.master_event_loop()


@pytest.mark.timeout(10)
def test_non_power_of_two_selection_wraps():
    with EventLoopGroup(3) as group:
        loops = [group.choose_slave_event_loop(index) for index in range(3)]
        assert len({id(loop) for loop in loops}) == 3
        assert group.choose_slave_event_loop(4) is loops[1]


def test_no_children_falls_back_to_master():
    with EventLoopGroup(0) as group:
        assert group.child_loop_size() == 0
        assert group.choose_slave_event_loop(7) is group.master_event_loop()
        assert group.master_event_loop().is_in_loop_thread()


@pytest.mark.timeout(10)
def test_slave_runs_tasks_on_its_own_thread():
    with EventLoopGroup(1) as group:
        loop = group.choose_slave_event_loop(0)
        done = threading.Event()
        seen = []

        def task():
            seen.append(loop.is_in_loop_thread())
            done.set()

        assert not loop.is_in_loop_thread()
        loop.queue_in_loop(task)
        assert done.wait(5)
        assert seen == [True]


@pytest.mark.timeout(10)
def test_dispatch_returns_after_shutdown():
    with EventLoopGroup(1) as group:
        events = []

        def stop():
            events.append("fired")
            group.shutdown()

        timer_id = group.master_event_loop().schedule(stop, 10, 1)
        group.dispatch()
        assert timer_id > 0
        assert events == ["fired"]
        assert group.master_event_loop().is_in_loop_thread() is True