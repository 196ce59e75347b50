import threading

from room_gateway.coordinator import CompletionCoordinator
from room_gateway.models import IntegrationType, Result

HUE = IntegrationType.PHILLIPS_HUE
LEAF = IntegrationType.NANOLEAF


def _recorder():
    calls: list[Result] = []
    return calls, calls.append


def test_empty_participants_complete_immediately_with_success():
    calls, on_done = _recorder()
    handle = CompletionCoordinator().begin(set(), on_done)
    assert len(calls) == 1
    assert calls[0].ok is True
    assert handle.done is True


def test_completion_fires_once_after_last_report():
    coordinator = CompletionCoordinator()
    calls, on_done = _recorder()
    handle = coordinator.begin({HUE, LEAF}, on_done)

    coordinator.report(handle, LEAF, Result.success())
    assert calls == []
    assert handle.outstanding == frozenset({HUE})

    coordinator.report(handle, HUE, Result.success())
    assert len(calls) == 1
    assert calls[0].ok is True
    assert handle.outstanding == frozenset()


def test_duplicate_and_unknown_reports_are_ignored():
    coordinator = CompletionCoordinator()
    calls, on_done = _recorder()
    handle = coordinator.begin({HUE, LEAF}, on_done)

    coordinator.report(handle, HUE, Result.success())
    coordinator.report(handle, HUE, Result.failure("late duplicate"))
    assert calls == []
    assert handle.outstanding == frozenset({LEAF})

    coordinator.report(handle, LEAF, Result.success())
    coordinator.report(handle, LEAF, Result.success())
    assert len(calls) == 1
    assert calls[0].ok is True


def test_report_for_non_participant_is_a_noop():
    coordinator = CompletionCoordinator()
    calls, on_done = _recorder()
    handle = coordinator.begin({HUE}, on_done)

    coordinator.report(handle, LEAF, Result.failure("not part of this operation"))
    assert calls == []
    coordinator.report(handle, HUE, Result.success())
    assert calls[0].ok is True


def test_first_failure_wins():
    coordinator = CompletionCoordinator()
    calls, on_done = _recorder()
    handle = coordinator.begin({HUE, LEAF}, on_done)

    coordinator.report(handle, LEAF, Result.failure("panel 2 unreachable"))
    coordinator.report(handle, HUE, Result.failure("bridge said no"))
    assert len(calls) == 1
    assert calls[0].ok is False
    assert calls[0].message == "panel 2 unreachable"


def test_later_success_does_not_clear_failure():
    coordinator = CompletionCoordinator()
    calls, on_done = _recorder()
    handle = coordinator.begin({HUE, LEAF}, on_done)

    coordinator.report(handle, HUE, Result.failure("bridge said no"))
    coordinator.report(handle, LEAF, Result.success())
    assert calls[0].ok is False
    assert calls[0].message == "bridge said no"


def test_handles_do_not_share_tracking_state():
    coordinator = CompletionCoordinator()
    first_calls, first_done = _recorder()
    second_calls, second_done = _recorder()
    first = coordinator.begin({HUE, LEAF}, first_done)
    second = coordinator.begin({HUE, LEAF}, second_done)

    coordinator.report(first, HUE, Result.success())
    coordinator.report(first, LEAF, Result.success())
    assert len(first_calls) == 1
    assert second_calls == []
    assert second.outstanding == frozenset({HUE, LEAF})


def test_concurrent_reports_fire_exactly_once():
    coordinator = CompletionCoordinator()
    for _ in range(200):
        calls, on_done = _recorder()
        handle = coordinator.begin({HUE, LEAF}, on_done)
        barrier = threading.Barrier(4)

        def _report(integration: IntegrationType) -> None:
            barrier.wait()
            coordinator.report(handle, integration, Result.success())

        threads = [threading.Thread(target=_report, args=(i,)) for i in (HUE, LEAF, HUE, LEAF)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(calls) == 1
        assert calls[0].ok is True


def test_expire_fails_outstanding_and_fires_once():
    coordinator = CompletionCoordinator()
    calls, on_done = _recorder()
    handle = coordinator.begin({HUE, LEAF}, on_done)

    coordinator.report(handle, HUE, Result.success())
    coordinator.expire(handle, "deadline exceeded")
    assert len(calls) == 1
    assert calls[0].ok is False
    assert calls[0].message == "deadline exceeded"

    coordinator.report(handle, LEAF, Result.success())
    coordinator.expire(handle, "again")
    assert len(calls) == 1
