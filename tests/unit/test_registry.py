"""
Unit Tests for SubscriptionRegistry and Subscription records
============================================================

Test Coverage
-------------
- Validation of records
- Identity removal, removal by target, stale sweep
- Snapshots and introspection
- Subscription normalization (no strong reference to the subscriber)
"""

import gc
import weakref

import pytest

from eventhub.core.event.registry import SubscriptionRegistry
from eventhub.core.event.subscription import Subscription, SubscriptionHandle
from eventhub.core.event.types import SubscriberPriority
from eventhub.core.exceptions import InvalidSubscription
from tests.conftest import Damage, Heal, Recorder


@pytest.fixture
def registry():
    return SubscriptionRegistry()


@pytest.mark.unit
class TestSubscriptionCreate:
    """Subscription.create normalizes handlers."""

    def test_bound_static_method_is_unwrapped(self, log):
        """Test a bound method is stored as its function."""
        # Arrange
        target = Recorder("a", log)

        # Act
        record = Subscription.create(Damage, target, target.on_damage)

        # Assert
        assert record.method is Recorder.on_damage
        assert record.name == "Recorder::on_damage"
        assert record.priority is SubscriberPriority.HIGH

    def test_record_does_not_keep_target_alive(self, log):
        """Test the subscriber can be collected while its record exists."""
        # Arrange
        target = Recorder("a", log)
        probe = weakref.ref(target)
        record = Subscription.create(Damage, target, target.on_damage)

        # Act
        del target
        gc.collect()

        # Assert
        assert probe() is None
        assert record.is_live() is False

    def test_bound_dynamic_callback_held_weakly(self, log):
        """Test a bound method of the target used as a callback does not pin it."""
        # Arrange
        target = Recorder("a", log)
        probe = weakref.ref(target)
        record = Subscription.create(
            Damage, target, is_dynamic=True, callback=target.on_damage
        )

        # Act
        del target
        gc.collect()

        # Assert
        assert probe() is None
        assert record.callback() is None
        assert record.is_live() is False

    def test_unnamed_callback_uses_fallback_name(self, log):
        """Test callables without __name__ get the dynamic fallback name."""
        # Arrange
        class Handler:
            def __call__(self, evt):
                log.append("called")

        target = Recorder("a", log)

        # Act
        record = Subscription.create(Damage, target, is_dynamic=True, callback=Handler())

        # Assert
        assert record.name == "Recorder::DynamicHandler"

    def test_invalid_priority_rejected(self, log):
        """Test an out-of-range priority raises InvalidSubscription."""
        # Arrange
        target = Recorder("a", log)

        # Act & Assert
        with pytest.raises(InvalidSubscription):
            Subscription.create(Damage, target, Recorder.on_damage, priority=9)

    def test_int_priority_is_coerced(self, log):
        """Test a plain int priority becomes a SubscriberPriority."""
        # Arrange
        target = Recorder("a", log)

        # Act
        record = Subscription.create(Damage, target, Recorder.on_damage, priority=4)

        # Assert
        assert record.priority is SubscriberPriority.CLEANUP

    def test_invoke_static_calls_method_with_target(self, log):
        """Test invoke passes the resolved target and the event."""
        # Arrange
        target = Recorder("a", log)
        record = Subscription.create(Damage, target, Recorder.on_damage)

        # Act
        record.invoke(Damage())

        # Assert
        assert log == ["a"]

    def test_invoke_propagates_handler_errors(self, log):
        """Test invoke lets the handler's exception through."""
        # Arrange
        target = Recorder("a", log, fail=True)
        record = Subscription.create(Damage, target, Recorder.on_damage)

        # Act & Assert
        with pytest.raises(RuntimeError):
            record.invoke(Damage())


@pytest.mark.unit
class TestRegistryMutation:
    """Registration and removal."""

    def test_register_and_snapshot(self, registry, log):
        """Test records come back in registration order."""
        # Arrange
        a, b = Recorder("a", log), Recorder("b", log)
        first = Subscription.create(Damage, a, Recorder.on_damage)
        second = Subscription.create(Damage, b, Recorder.on_damage)

        # Act
        registry.register(first)
        registry.register(second)

        # Assert
        assert registry.snapshot_for(Damage) == (first, second)
        assert registry.snapshot_for(Heal) == ()

    def test_snapshot_is_a_copy(self, registry, log):
        """Test later registrations do not change an existing snapshot."""
        # Arrange
        a = Recorder("a", log)
        registry.register(Subscription.create(Damage, a, Recorder.on_damage))
        snapshot = registry.snapshot_for(Damage)

        # Act
        registry.register(Subscription.create(Damage, a, Recorder.on_damage))

        # Assert
        assert len(snapshot) == 1
        assert registry.count(Damage) == 2

    def test_remove_by_identity(self, registry, log):
        """Test remove() removes exactly one record and reports it."""
        # Arrange
        a = Recorder("a", log)
        record = Subscription.create(Damage, a, Recorder.on_damage)
        twin = Subscription.create(Damage, a, Recorder.on_damage)
        registry.register(record)
        registry.register(twin)

        # Act
        removed = registry.remove(record)
        again = registry.remove(record)

        # Assert
        assert (removed, again) == (True, False)
        assert registry.snapshot_for(Damage) == (twin,)

    def test_empty_lists_are_dropped(self, registry, log):
        """Test an event type disappears once its last record is removed."""
        # Arrange
        a = Recorder("a", log)
        record = Subscription.create(Damage, a, Recorder.on_damage)
        registry.register(record)

        # Act
        registry.remove(record)

        # Assert
        assert registry.event_types() == []

    def test_remove_by_target_respects_dynamic_flag(self, registry, log):
        """Test static removal leaves dynamic records and vice versa."""
        # Arrange
        a = Recorder("a", log)
        registry.register(Subscription.create(Damage, a, Recorder.on_damage))
        registry.register(Subscription.create(Heal, a, Recorder.on_heal))
        registry.register(
            Subscription.create(Damage, a, is_dynamic=True, callback=a.on_damage)
        )

        # Act
        static_removed = registry.remove_by_target(a, dynamic_only=False)

        # Assert
        assert static_removed == 2
        assert registry.count() == 1
        assert registry.snapshot_for(Damage)[0].is_dynamic is True

    def test_remove_by_target_ignores_other_targets(self, registry, log):
        """Test only the given subscriber's records are removed."""
        # Arrange
        a, b = Recorder("a", log), Recorder("b", log)
        registry.register(Subscription.create(Damage, a, Recorder.on_damage))
        registry.register(Subscription.create(Damage, b, Recorder.on_damage))

        # Act
        removed = registry.remove_by_target(a, dynamic_only=False)

        # Assert
        assert removed == 1
        assert registry.snapshot_for(Damage)[0].reference.refers_to(b)

    def test_sweep_stale_removes_dead_records(self, registry, log):
        """Test sweep_stale removes invalidated and collected subscribers."""
        # Arrange
        alive = Recorder("alive", log)
        invalid = Recorder("invalid", log)
        collected = Recorder("collected", log)
        registry.register(Subscription.create(Damage, alive, Recorder.on_damage))
        stale = Subscription.create(Damage, invalid, Recorder.on_damage)
        registry.register(stale)
        registry.register(Subscription.create(Heal, collected, Recorder.on_heal))
        stale.reference.invalidate()
        del collected
        gc.collect()

        # Act
        removed = registry.sweep_stale()

        # Assert
        assert removed == 2
        assert registry.count() == 1
        assert registry.event_types() == [Damage]

    def test_clear_returns_previous_count(self, registry, log):
        """Test clear() empties the registry."""
        # Arrange
        a = Recorder("a", log)
        registry.register(Subscription.create(Damage, a, Recorder.on_damage))
        registry.register(Subscription.create(Heal, a, Recorder.on_heal))

        # Act
        total = registry.clear()

        # Assert
        assert total == 2
        assert registry.count() == 0


@pytest.mark.unit
class TestSubscriptionHandle:
    """Handles dispose their record exactly once."""

    def test_handle_dispose(self, registry, log):
        """Test dispose removes the record and reports only the first time."""
        # Arrange
        a = Recorder("a", log)
        record = Subscription.create(Damage, a, is_dynamic=True, callback=a.on_damage)
        registry.register(record)
        handle = SubscriptionHandle(registry, record)

        # Act
        results = [handle.dispose(), handle.dispose()]

        # Assert
        assert results == [True, False]
        assert registry.count() == 0
        assert handle.disposed is True

    def test_handle_after_clear_returns_false(self, registry, log):
        """Test disposing a record that was already cleared is harmless."""
        # Arrange
        a = Recorder("a", log)
        record = Subscription.create(Damage, a, Recorder.on_damage)
        registry.register(record)
        handle = SubscriptionHandle(registry, record)
        registry.clear()

        # Act & Assert
        assert handle() is False
