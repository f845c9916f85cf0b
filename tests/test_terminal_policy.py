import pytest

from scriptrunner.catalog import ExitSettings, TerminalSettings
from scriptrunner.execution import SlotState, TerminalSessionPolicy


@pytest.fixture
def policy(terminals):
    return TerminalSessionPolicy(terminals, close_delay=0)


def test_reuses_most_recent_session(policy, terminals):
    first = policy.acquire(TerminalSettings(), "a")
    second = policy.acquire(TerminalSettings(), "b")

    assert first.created is True
    assert second.created is False
    assert second.session is first.session
    assert len(terminals.created) == 1
    assert policy.state == SlotState.ACTIVE


def test_new_flag_always_creates(policy, terminals):
    policy.acquire(TerminalSettings(), "a")
    lease = policy.acquire(TerminalSettings(new=True), "b")

    assert lease.created is True
    assert len(terminals.created) == 2
    # The newest session becomes the reuse target
    assert policy.acquire(TerminalSettings(), "c").session is lease.session


@pytest.mark.asyncio
async def test_close_only_tears_down_fresh_sessions(policy, terminals):
    close = ExitSettings(close=True)
    fresh = policy.acquire(TerminalSettings(), "a")
    await policy.complete(fresh, close)
    assert fresh.session.disposed is True
    assert policy.state == SlotState.IDLE

    keep = policy.acquire(TerminalSettings(), "b")
    await policy.complete(keep, ExitSettings())
    reused = policy.acquire(TerminalSettings(), "c")
    await policy.complete(reused, close)

    assert reused.created is False
    assert reused.session.disposed is False
    assert policy.active_sessions == (keep.session,)


def test_cancel_disposes_only_created_sessions(policy):
    created = policy.acquire(TerminalSettings(), "a")
    policy.cancel(created)
    assert created.session.disposed is True

    existing = policy.acquire(TerminalSettings(), "b")
    reused = policy.acquire(TerminalSettings(), "c")
    policy.cancel(reused)
    assert existing.session.disposed is False


def test_externally_closed_sessions_are_pruned(policy, terminals):
    lease = policy.acquire(TerminalSettings(), "a")
    lease.session.closed_by_user = True

    assert policy.state == SlotState.IDLE
    assert policy.acquire(TerminalSettings(), "b").created is True
    assert len(terminals.created) == 2


def test_forget_and_dispose_all(policy):
    a = policy.acquire(TerminalSettings(new=True), "a").session
    b = policy.acquire(TerminalSettings(new=True), "b").session

    policy.forget(a)
    assert policy.active_sessions == (b,)
    assert a.disposed is False

    policy.dispose_all()
    assert b.disposed is True
    assert policy.state == SlotState.IDLE
