import threading
import time
import unittest
from typing import Protocol

from wirebind import ContainerBuilder, Scope, inject


class Wheel: ...


class Engine:
    created = 0

    @inject()
    def __init__(self, wheel: Wheel):
        type(self).created += 1
        self.wheel = wheel


class TestScopeControl(unittest.TestCase):
    builder: ContainerBuilder

    def setUp(self):
        Engine.created = 0
        self.wheel = Wheel()
        self.builder = ContainerBuilder().constant(Wheel, self.wheel)

    def test_default_scope_returns_new_instances(self):
        c = self.builder.factory(Engine, scope=Scope.DEFAULT).create()
        e1 = c.get_instance(Engine)
        e2 = c.get_instance(Engine)
        assert e2 is not e1, "DEFAULT should construct on every call"
        assert e1.wheel is self.wheel

    def test_singleton_scope_returns_same_instance(self):
        c = self.builder.factory(Engine, scope=Scope.SINGLETON).create()
        e1 = c.get_instance(Engine)
        e2 = c.get_instance(Engine)
        assert e2 is e1, "SINGLETON should return the cached instance"
        assert Engine.created == 1

    def test_singleton_is_shared_across_threads(self):
        c = self.builder.factory(Engine, scope=Scope.SINGLETON).create()
        seen = []

        def worker():
            seen.append(c.get_instance(Engine))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(e) for e in seen}) == 1
        assert Engine.created == 1

    def test_thread_scope_returns_one_instance_per_thread(self):
        c = self.builder.factory(Engine, scope=Scope.THREAD).create()
        main = c.get_instance(Engine)
        other = []

        t = threading.Thread(target=lambda: other.extend([c.get_instance(Engine), c.get_instance(Engine)]))
        t.start()
        t.join()

        assert c.get_instance(Engine) is main
        assert other[0] is other[1]
        assert other[0] is not main

    def test_constant_is_always_the_same_object(self):
        c = self.builder.create()
        assert c.get_instance(Wheel) is self.wheel
        assert c.get_instance(Wheel) is self.wheel

    def test_load_singletons_constructs_eagerly(self):
        self.builder.factory(Engine, scope=Scope.SINGLETON)
        c = self.builder.create(load_singletons=True)
        assert Engine.created == 1
        c.get_instance(Engine)
        assert Engine.created == 1

    def test_singletons_are_lazy_by_default(self):
        c = self.builder.factory(Engine, scope=Scope.SINGLETON).create()
        assert Engine.created == 0
        c.get_instance(Engine)
        assert Engine.created == 1


class Delay: ...


class Left(Protocol):
    def side(self) -> str: ...


class Right(Protocol):
    def side(self) -> str: ...


class LeftImpl:
    @inject()
    def __init__(self, delay: Delay, right: Right):
        self.right = right

    def side(self) -> str:
        return "left"


class RightImpl:
    @inject()
    def __init__(self, delay: Delay, left: Left):
        self.left = left

    def side(self) -> str:
        return "right"


class TestSingletonCycleAcrossThreads(unittest.TestCase):
    def _container(self):
        def slow(_):
            time.sleep(0.3)
            return Delay()

        return (
            ContainerBuilder()
            .custom(Delay, slow)
            .factory(Left, LeftImpl, scope=Scope.SINGLETON)
            .factory(Right, RightImpl, scope=Scope.SINGLETON)
            .create()
        )

    def test_singleton_cycle_on_one_thread(self):
        c = self._container()

        left = c.get_instance(Left)

        assert c.get_instance(Right) is left.right
        assert left.right.left.side() == "left"

    def test_singleton_cycle_entered_from_both_ends_does_not_deadlock(self):
        c = self._container()
        results = {}

        def resolve(tp):
            results[tp] = c.get_instance(tp)

        threads = [threading.Thread(target=resolve, args=(tp,), daemon=True) for tp in (Left, Right)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert not any(t.is_alive() for t in threads), "threads still blocked after 5s"
        assert c.get_instance(Left) is results[Left]
        assert c.get_instance(Right) is results[Right]
        assert results[Left].right.side() == "right"
        assert results[Right].left.side() == "left"
