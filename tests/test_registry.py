import gc

import pytest

from fanout import ALL, AlreadyRegistered, DefaultObserver, NotFound, Registry


def test_register_and_lookup():
    registry = Registry()
    a, b = DefaultObserver("a"), DefaultObserver("b")
    registry.register("x", a)
    registry.register("x", b)
    registry.register(ALL, b)

    assert registry.lookup("x") == {a, b}
    assert registry.lookup("y") == set()
    assert registry.lookup_all() == {b}
    assert registry.topics() == ["x"]
    assert registry.subscriber_count() == 2
    assert registry.subscriber_count("x") == 2


def test_duplicate_register_raises_and_keeps_one_entry():
    registry = Registry()
    a = DefaultObserver("a")
    registry.register("x", a)

    with pytest.raises(AlreadyRegistered) as exc_info:
        registry.register("x", a)

    assert exc_info.value.handle_id == "a"
    assert exc_info.value.topics == ("x",)
    assert registry.subscriber_count("x") == 1


def test_unregister_missing_raises_and_leaves_state():
    registry = Registry()
    a, b = DefaultObserver("a"), DefaultObserver("b")
    registry.register("x", a)

    with pytest.raises(NotFound):
        registry.unregister("x", b)
    with pytest.raises(NotFound):
        registry.unregister("y", a)

    assert registry.lookup("x") == {a}


def test_unregister_drops_empty_bucket():
    registry = Registry()
    a = DefaultObserver("a")
    registry.register("x", a)
    registry.unregister("x", a)

    assert registry.topics() == []
    assert not registry.contains("x", a)


def test_lookup_returns_snapshot():
    registry = Registry()
    a, b = DefaultObserver("a"), DefaultObserver("b")
    registry.register("x", a)
    snapshot = registry.lookup("x")
    registry.register("x", b)

    assert snapshot == {a}


def test_topics_for_lists_every_bucket():
    registry = Registry()
    a = DefaultObserver("a")
    registry.register("x", a)
    registry.register("y", a)
    registry.register(ALL, a)

    assert registry.topics_for(a) == {"x", "y", ALL}


def test_registry_does_not_keep_observers_alive():
    registry = Registry()
    registry.register("x", DefaultObserver("ephemeral"))
    gc.collect()

    assert registry.lookup("x") == set()
    assert registry.subscriber_count() == 0
