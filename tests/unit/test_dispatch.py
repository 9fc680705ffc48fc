"""
Unit Tests for EventHub dispatch
================================

Test Coverage
-------------
- Priority ordering and registration-order tie-break
- Cancellation and the ESSENTIAL/CLEANUP exemption
- Handler fault isolation
- Static and dynamic handlers, disposers
- Exact-type matching and re-entrant registration

Testing Strategy
----------------
- AAA pattern (Arrange, Act, Assert)
- Test one behavior per test
"""

import pytest

from eventhub.core.event.types import SubscriberPriority
from eventhub.core.exceptions import InvalidSubscription
from tests.conftest import CriticalDamage, Damage, Heal, Recorder, Spawned


# ============================================================================
# ORDERING
# ============================================================================


@pytest.mark.unit
class TestDispatchOrder:
    """Handlers run in ascending priority, ties in registration order."""

    def test_all_priorities_run_in_order(self, hub, log):
        """Test every level runs once, ESSENTIAL first and CLEANUP last."""
        # Arrange
        subscribers = []
        for priority in (
            SubscriberPriority.LOW,
            SubscriberPriority.CLEANUP,
            SubscriberPriority.ESSENTIAL,
            SubscriberPriority.MEDIUM,
            SubscriberPriority.HIGH,
        ):
            recorder = Recorder(priority.name, log)
            subscribers.append(recorder)
            hub.register(Damage, recorder, Recorder.on_damage, priority)

        # Act
        hub.publish(Damage(amount=3))

        # Assert
        assert log == ["ESSENTIAL", "HIGH", "MEDIUM", "LOW", "CLEANUP"]

    def test_damage_scenario_with_and_without_cancel(self, hub, log):
        """Test ESSENTIAL, HIGH, LOW run in order, then only ESSENTIAL once canceled."""
        # Arrange
        essential = Recorder("essential", log)
        high = Recorder("high", log)
        low = Recorder("low", log)
        hub.register(Damage, essential, essential.on_damage, SubscriberPriority.ESSENTIAL)
        hub.register(Damage, high, high.on_damage, SubscriberPriority.HIGH)
        hub.register(Damage, low, low.on_damage, SubscriberPriority.LOW)

        # Act
        hub.publish(Damage(amount=1))
        first = list(log)
        log.clear()
        essential.cancel = True
        event = Damage(amount=2)
        hub.publish(event)

        # Assert
        assert first == ["essential", "high", "low"]
        assert log == ["essential"]
        assert event.canceled is True

    def test_cleanup_runs_after_cancel(self, hub, log):
        """Test a CLEANUP handler still runs when an earlier handler canceled."""
        # Arrange
        canceller = Recorder("essential", log, cancel=True)
        medium = Recorder("medium", log)
        cleanup = Recorder("cleanup", log)
        hub.register(Damage, cleanup, cleanup.on_damage, SubscriberPriority.CLEANUP)
        hub.register(Damage, medium, medium.on_damage, SubscriberPriority.MEDIUM)
        hub.register(Damage, canceller, canceller.on_damage, SubscriberPriority.ESSENTIAL)

        # Act
        hub.publish(Damage())

        # Assert
        assert log == ["essential", "cleanup"]

    def test_cancel_in_high_skips_same_level_later_handlers(self, hub, log):
        """Test cancellation applies to handlers later in the same priority."""
        # Arrange
        first = Recorder("first", log, cancel=True)
        second = Recorder("second", log)
        hub.register(Damage, first, first.on_damage, SubscriberPriority.HIGH)
        hub.register(Damage, second, second.on_damage, SubscriberPriority.HIGH)

        # Act
        hub.publish(Damage())

        # Assert
        assert log == ["first"]

    def test_duplicate_medium_registrations_both_run(self, hub, log):
        """Test the same handler registered twice runs twice, in order."""
        # Arrange
        target = Recorder("dup", log)
        hub.register(Damage, target, Recorder.on_damage, SubscriberPriority.MEDIUM)
        hub.register(Damage, target, Recorder.on_damage, SubscriberPriority.MEDIUM)

        # Act
        hub.publish(Damage())

        # Assert
        assert log == ["dup", "dup"]
        assert hub.get_subscription_count(Damage) == 2

    def test_ties_follow_registration_order(self, hub, log):
        """Test equal priorities run first-registered-first."""
        # Arrange
        for label in ("a", "b", "c"):
            target = Recorder(label, log)
            hub.listen(Damage, target, target.on_damage)

        # Act
        hub.publish(Damage())

        # Assert
        assert log == ["a", "b", "c"]


# ============================================================================
# FAULT ISOLATION
# ============================================================================


@pytest.mark.unit
class TestFaultIsolation:
    """A failing handler never stops others and never propagates."""

    def test_later_handlers_run_after_failure(self, hub, log):
        """Test a raising HIGH handler does not block the LOW handler."""
        # Arrange
        failing = Recorder("failing", log, fail=True)
        survivor = Recorder("survivor", log)
        hub.register(Damage, failing, failing.on_damage, SubscriberPriority.HIGH)
        hub.register(Damage, survivor, survivor.on_damage, SubscriberPriority.LOW)

        # Act
        hub.publish(Damage())

        # Assert
        assert log == ["failing", "survivor"]

    def test_fault_is_counted(self, hub, log):
        """Test handler faults appear in metrics per event type."""
        # Arrange
        failing = Recorder("failing", log, fail=True)
        hub.register(Damage, failing, failing.on_damage)

        # Act
        hub.publish(Damage())
        hub.publish(Damage())

        # Assert
        metrics = hub.get_metrics()
        assert metrics.handler_errors == {"Damage": 2}
        assert metrics.events_published == {"Damage": 2}

    def test_fault_is_logged_with_context(self, hub, log, caplog):
        """Test the fault is logged at error level with subscriber details."""
        # Arrange
        failing = Recorder("failing", log, fail=True)
        hub.register(Damage, failing, failing.on_damage)

        # Act
        with caplog.at_level("ERROR", logger="eventhub.core.event.hub"):
            hub.publish(Damage())

        # Assert
        records = [r for r in caplog.records if r.getMessage() == "EventHub handler error"]
        assert len(records) == 1
        assert records[0].subscriber == "Recorder::on_damage"
        assert records[0].error_code == "HANDLER_FAULT"
        assert records[0].exc_info is not None

    def test_fault_isolated_without_diagnostics(self, quiet_hub, log):
        """Test isolation holds when the null recorder is in use."""
        # Arrange
        failing = Recorder("failing", log, fail=True)
        survivor = Recorder("survivor", log)
        quiet_hub.register(Damage, failing, failing.on_damage)
        quiet_hub.register(Damage, survivor, survivor.on_damage)

        # Act
        quiet_hub.publish(Damage())

        # Assert
        assert log == ["failing", "survivor"]


# ============================================================================
# DYNAMIC HANDLERS & DISPOSERS
# ============================================================================


@pytest.mark.unit
class TestDynamicSubscriptions:
    """Callback subscriptions and their disposers."""

    def test_disposed_handler_is_not_invoked(self, hub, log):
        """Test disposing a dynamic subscription removes it before the next publish."""
        # Arrange
        owner = Recorder("owner", log)
        handle = hub.listen(Damage, owner, lambda evt: log.append("callback"))

        # Act
        handle.dispose()
        hub.publish(Damage())

        # Assert
        assert log == []
        assert hub.get_subscription_count(Damage) == 0
        assert handle.disposed is True

    def test_dispose_is_idempotent(self, hub, log):
        """Test a second dispose and unregister_one are no-ops."""
        # Arrange
        owner = Recorder("owner", log)
        handle = hub.listen(Damage, owner, owner.on_damage)

        # Act
        first = hub.unregister_one(handle)
        second = hub.unregister_one(handle)
        third = handle()

        # Assert
        assert (first, second, third) == (True, False, False)

    def test_dispose_removes_only_its_own_record(self, hub, log):
        """Test duplicates are removed one at a time."""
        # Arrange
        owner = Recorder("owner", log)
        first = hub.listen(Damage, owner, owner.on_damage)
        hub.listen(Damage, owner, owner.on_damage)

        # Act
        first.dispose()
        hub.publish(Damage())

        # Assert
        assert log == ["owner"]

    def test_default_dynamic_priority_is_medium(self, hub, log):
        """Test listen() defaults to MEDIUM, after HIGH static handlers."""
        # Arrange
        owner = Recorder("dynamic", log)
        static = Recorder("static", log)
        handle = hub.listen(Damage, owner, owner.on_damage)
        hub.register(Damage, static, static.on_damage)

        # Act
        hub.publish(Damage())

        # Assert
        assert handle.subscription.priority is SubscriberPriority.MEDIUM
        assert log == ["static", "dynamic"]

    def test_unregister_callback_removes_dynamic_records(self, hub, log):
        """Test dynamic records of one target can be removed by callback."""
        # Arrange
        owner = Recorder("owner", log)
        callback = owner.on_damage
        hub.listen(Damage, owner, callback)
        hub.listen(Damage, owner, lambda evt: log.append("other"))

        # Act
        removed = hub.unregister_callback(owner, owner.on_damage)
        hub.publish(Damage())

        # Assert
        assert removed == 1
        assert log == ["other"]

    def test_unregister_all_leaves_dynamic_records(self, hub, log):
        """Test unregister_all removes static records only."""
        # Arrange
        owner = Recorder("owner", log)
        hub.register(Damage, owner, Recorder.on_damage)
        hub.listen(Damage, owner, lambda evt: log.append("dynamic"))

        # Act
        removed = hub.unregister_all(owner)
        hub.publish(Damage())

        # Assert
        assert removed == 1
        assert log == ["dynamic"]


# ============================================================================
# MATCHING & EDGE CASES
# ============================================================================


@pytest.mark.unit
class TestDispatchEdgeCases:
    """Type matching, empty hubs and re-entrancy."""

    def test_publish_without_subscribers_is_noop(self, hub):
        """Test publishing an unobserved type does nothing and does not raise."""
        # Arrange & Act
        hub.publish(Spawned())

        # Assert
        assert hub.get_subscription_count() == 0

    def test_subclass_events_are_not_delivered_to_base_handlers(self, hub, log):
        """Test dispatch matches the exact event type only."""
        # Arrange
        target = Recorder("base", log)
        hub.register(Damage, target, Recorder.on_damage)

        # Act
        hub.publish(CriticalDamage(amount=10))

        # Assert
        assert log == []

    def test_frozen_event_can_be_canceled(self, hub, log):
        """Test stop_propagation works on frozen dataclass events."""
        # Arrange
        def cancel(evt):
            log.append("first")
            evt.stop_propagation()

        owner = Recorder("owner", log)
        hub.listen(Heal, owner, cancel, SubscriberPriority.HIGH)
        hub.listen(Heal, owner, owner.on_heal, SubscriberPriority.LOW)
        event = Heal(amount=4)

        # Act
        hub.publish(event)

        # Assert
        assert log == ["first"]
        assert event.canceled is True

    def test_publish_non_event_is_ignored(self, hub, caplog):
        """Test publishing a non-GameEvent logs and returns."""
        # Arrange & Act
        with caplog.at_level("ERROR"):
            hub.publish("not an event")  # type: ignore[arg-type]

        # Assert
        assert any("not a GameEvent" in r.getMessage() for r in caplog.records)

    def test_handler_registering_during_dispatch_does_not_affect_current_pass(self, hub, log):
        """Test records added by a handler only run on the next publish."""
        # Arrange
        owner = Recorder("late", log)

        def register_more(evt):
            log.append("registrar")
            hub.listen(Damage, owner, owner.on_damage)

        hub.listen(Damage, owner, register_more, SubscriberPriority.ESSENTIAL)

        # Act
        hub.publish(Damage())
        first = list(log)
        log.clear()
        hub.publish(Damage())

        # Assert
        assert first == ["registrar"]
        assert log == ["registrar", "late"]

    def test_handler_can_publish_reentrantly(self, hub, log):
        """Test a handler may publish another event synchronously."""
        # Arrange
        owner = Recorder("heal", log)
        hub.listen(Heal, owner, owner.on_heal)
        hub.listen(Damage, owner, lambda evt: hub.publish(Heal(amount=evt.amount)))

        # Act
        hub.publish(Damage(amount=2))

        # Assert
        assert log == ["heal"]


# ============================================================================
# REGISTRATION ERRORS
# ============================================================================


@pytest.mark.unit
class TestRegistrationErrors:
    """Invalid registrations raise InvalidSubscription synchronously."""

    def test_none_target_rejected(self, hub):
        """Test a missing subscriber is rejected."""
        # Arrange & Act & Assert
        with pytest.raises(InvalidSubscription):
            hub.register(Damage, None, Recorder.on_damage)

    def test_non_event_type_rejected(self, hub, log):
        """Test an event type that is not a GameEvent subclass is rejected."""
        # Arrange
        target = Recorder("x", log)

        # Act & Assert
        with pytest.raises(InvalidSubscription) as exc_info:
            hub.register(dict, target, Recorder.on_damage)  # type: ignore[arg-type]

        assert "GameEvent" in str(exc_info.value)

    def test_none_event_type_rejected(self, hub, log):
        """Test a None event type is rejected."""
        # Arrange
        target = Recorder("x", log)

        # Act & Assert
        with pytest.raises(InvalidSubscription):
            hub.register(None, target, Recorder.on_damage)  # type: ignore[arg-type]

    def test_static_without_method_rejected(self, hub, log):
        """Test a static record needs a method."""
        # Arrange
        target = Recorder("x", log)

        # Act & Assert
        with pytest.raises(InvalidSubscription):
            hub.register(Damage, target)

    def test_dynamic_without_callback_rejected(self, hub, log):
        """Test a dynamic record needs a callback."""
        # Arrange
        target = Recorder("x", log)

        # Act & Assert
        with pytest.raises(InvalidSubscription):
            hub.register(Damage, target, is_dynamic=True)

    def test_method_bound_to_other_object_rejected(self, hub, log):
        """Test a static method bound to a different object is rejected."""
        # Arrange
        target = Recorder("x", log)
        other = Recorder("y", log)

        # Act & Assert
        with pytest.raises(InvalidSubscription):
            hub.register(Damage, target, other.on_damage)

    def test_failed_registration_stores_nothing(self, hub, log):
        """Test a rejected registration leaves the registry unchanged."""
        # Arrange
        target = Recorder("x", log)

        # Act
        with pytest.raises(InvalidSubscription):
            hub.register(Damage, target, is_dynamic=True)

        # Assert
        assert hub.get_subscription_count() == 0
