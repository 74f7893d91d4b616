import pytest

from fanout import DefaultObserver, Subject

FLUSH_TIMEOUT = 2.0


@pytest.fixture
def subject():
    s = Subject("test-subject", history_size=10)
    yield s
    s.close()


@pytest.fixture
def make_observer():
    """Factory for started DefaultObservers; all are stopped at teardown."""
    created = []

    def _make(observer_id: str, **kwargs) -> DefaultObserver:
        observer = DefaultObserver(observer_id, **kwargs).start()
        created.append(observer)
        return observer

    yield _make
    for observer in created:
        observer.stop(timeout=FLUSH_TIMEOUT)


def flush(*observers, timeout: float = FLUSH_TIMEOUT) -> None:
    for observer in observers:
        assert observer.flush(timeout), f"{observer!r} did not drain"
