import pytest

from keepalive_core.elevation import ensure_converged, run_elevated_mode
from keepalive_core.errors import ConvergenceError, ConvergenceTimeout
from keepalive_core.registry import CCM_KEY_SET, is_converged

from conftest import FakeClock, FakeRegistry


class Counter:
    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.results.pop(0) if self.results else False


def test_already_converged_skips_elevation():
    launched = []
    clock = FakeClock()

    ensure_converged(lambda: True, lambda: launched.append(1), clock=clock)

    assert launched == []
    assert clock.sleeps == []


def test_converges_after_a_few_polls():
    check = Counter([False, False, False, True])
    launched = []
    clock = FakeClock()

    ensure_converged(check, lambda: launched.append(1),
                     max_wait=60, poll_interval=5, clock=clock)

    assert launched == [1]
    assert check.calls == 4
    assert clock.sleeps == [5, 5]


def test_times_out_after_max_wait():
    check = Counter([])
    launched = []
    clock = FakeClock()

    with pytest.raises(ConvergenceTimeout) as excinfo:
        ensure_converged(check, lambda: launched.append(1),
                         max_wait=60, poll_interval=5, clock=clock)

    assert isinstance(excinfo.value, ConvergenceError)
    assert launched == [1]
    assert sum(clock.sleeps) == 60
    assert max(clock.sleeps) <= 5
    # Initial check plus one poll at t=0,5,...,60
    assert check.calls == 14


def test_last_sleep_is_clipped_to_deadline():
    clock = FakeClock()
    with pytest.raises(ConvergenceTimeout):
        ensure_converged(lambda: False, lambda: None,
                         max_wait=12, poll_interval=5, clock=clock)
    assert clock.sleeps == [5, 5, 2]


def test_helper_launch_failure_still_polls():
    def launch():
        raise OSError("ShellExecuteEx failed")

    registry = FakeRegistry({CCM_KEY_SET.base_paths[1]: {}})

    def fix_registry(clock):
        registry.keys[CCM_KEY_SET.container_path(CCM_KEY_SET.base_paths[1])] = dict(CCM_KEY_SET.values)

    clock = FakeClock(on_sleep=fix_registry)
    ensure_converged(lambda: is_converged(registry), launch, clock=clock)
    assert len(clock.sleeps) == 1


def test_elevated_mode_exit_codes():
    base = CCM_KEY_SET.base_paths[1]
    assert run_elevated_mode(FakeRegistry({base: {}})) == 0

    failing = FakeRegistry({base: {}})
    failing.fail_writes.add("AllowLiveMonitoring")
    assert run_elevated_mode(failing) == 1


def test_helper_wait_counts_against_max_wait():
    check = Counter([])
    clock = FakeClock()

    def slow_helper():
        clock.now += 20

    with pytest.raises(ConvergenceTimeout):
        ensure_converged(check, slow_helper, max_wait=60, poll_interval=5, clock=clock)

    assert clock.now == 60
    assert sum(clock.sleeps) == 40


def test_helper_using_whole_budget_still_gets_one_check():
    # The helper's own wait is bounded; it returns when the budget is gone
    check = Counter([False, True])
    clock = FakeClock()

    def helper_times_out():
        clock.now += 60

    ensure_converged(check, helper_times_out, max_wait=60, poll_interval=5, clock=clock)

    assert check.calls == 2
    assert clock.sleeps == []


def test_helper_timeout_without_convergence_raises_immediately():
    clock = FakeClock()

    def helper_times_out():
        clock.now += 60

    with pytest.raises(ConvergenceTimeout):
        ensure_converged(lambda: False, helper_times_out,
                         max_wait=60, poll_interval=5, clock=clock)

    assert clock.sleeps == []
    assert clock.now == 60
