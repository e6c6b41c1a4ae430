import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from factories import machine_payload, rental_payload
from roboshop.core.errors import (
    ConflictError,
    ConsistencyError,
    ExternalEventMissingError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from roboshop.services.guests import known_guest_addresses
from roboshop.services.overlap import machine_booked_days
from roboshop.services.reconciliation import EntityKind, EventAction

JAN_1 = datetime(2024, 1, 1, 10)
JAN_3 = datetime(2024, 1, 3, 10)


@pytest.fixture
async def machine(orchestrator):
    """Calendar-days machine already holding maintenance event evt-1"""
    result = await orchestrator.create_machine(machine_payload())
    return result.entity


@pytest.fixture
async def rental(orchestrator, machine):
    """Three-day rental of ``machine`` holding event evt-2"""
    result = await orchestrator.create_rental(machine.id, rental_payload(JAN_1, JAN_3))
    return result.entity


# ==================== MACHINES ====================

@pytest.mark.asyncio
async def test_create_machine_schedules_maintenance(orchestrator, executor, store):
    result = await orchestrator.create_machine(machine_payload())

    assert result.action == EventAction.CREATE
    assert result.entity.next_maintenance_at == datetime(2024, 1, 31, 9, 0)
    assert result.entity.event_id == "evt-1"
    assert store.tables["machines"][1].event_id == "evt-1"

    _, event = executor.calls[0]
    assert event.calendar_id == "maintenance-cal"
    assert event.summary == "Maintenance Robot mower X1"
    assert event.start == datetime(2024, 1, 31, 9, 0)


@pytest.mark.asyncio
async def test_machine_never_serviced_has_no_event(orchestrator, executor):
    result = await orchestrator.create_machine(machine_payload(last_serviced_at=None))

    assert result.action == EventAction.NONE
    assert result.entity.next_maintenance_at is None
    assert executor.calls == []


@pytest.mark.asyncio
async def test_invalid_maintenance_config_is_rejected(orchestrator, store):
    with pytest.raises(ValidationError):
        await orchestrator.create_machine(machine_payload(interval_days=None))
    assert store.tables["machines"] == {}


@pytest.mark.asyncio
async def test_switching_type_requires_matching_interval(orchestrator, machine):
    with pytest.raises(ValidationError):
        await orchestrator.update_machine(machine.id, {"maintenance_type": "BY_RENTAL_COUNT"})
    assert machine.maintenance_type == "BY_CALENDAR_DAYS"


@pytest.mark.asyncio
async def test_update_without_visible_change_skips_calendar(orchestrator, executor, machine):
    first = await orchestrator.update_machine(machine.id, {"price_per_day": "12.00"})
    again = await orchestrator.update_machine(machine.id, {"price_per_day": "12.00"})

    assert first.action == EventAction.NONE
    assert again.action == EventAction.NONE
    assert executor.actions == ["create"]
    assert machine.price_per_day == Decimal("12.00")


@pytest.mark.asyncio
async def test_rename_updates_existing_event(orchestrator, executor, machine):
    result = await orchestrator.update_machine(machine.id, {"name": "Robot mower X2"})

    assert result.action == EventAction.UPDATE
    action, event_id, event = executor.calls[-1]
    assert (action, event_id) == ("update", "evt-1")
    assert event.summary == "Maintenance Robot mower X2"


@pytest.mark.asyncio
async def test_interval_change_moves_the_event(orchestrator, executor, machine):
    result = await orchestrator.update_machine(machine.id, {"interval_days": 60})

    assert result.action == EventAction.UPDATE
    assert executor.calls[-1][2].start == datetime(2024, 3, 1, 9, 0)
    assert machine.event_id == "evt-1"


@pytest.mark.asyncio
async def test_recorded_service_opens_new_event(orchestrator, executor, machine):
    result = await orchestrator.record_maintenance(machine.id, datetime(2024, 2, 1, 9, 0))

    assert result.action == EventAction.CREATE
    assert machine.next_maintenance_at == datetime(2024, 3, 2, 9, 0)
    assert machine.event_id == "evt-2"
    # the previous cycle's event stays in the calendar
    assert "delete" not in executor.actions


# ==================== MAINTENANCE HISTORY ====================

@pytest.mark.asyncio
async def test_created_machine_records_its_first_service(orchestrator, machine):
    records = await orchestrator.list_maintenance_records(machine.id)

    assert [record.performed_at for record in records] == [datetime(2024, 1, 1, 9, 0)]


@pytest.mark.asyncio
async def test_recorded_service_keeps_notes(orchestrator, machine):
    await orchestrator.record_maintenance(machine.id, datetime(2024, 2, 1, 9, 0), notes="new blades")

    latest = (await orchestrator.list_maintenance_records(machine.id))[0]
    assert latest.performed_at == datetime(2024, 2, 1, 9, 0)
    assert latest.notes == "new blades"


@pytest.mark.asyncio
async def test_deleting_latest_service_moves_cycle_back(orchestrator, executor, machine):
    await orchestrator.record_maintenance(machine.id, datetime(2024, 2, 1, 9, 0))
    latest = (await orchestrator.list_maintenance_records(machine.id))[0]

    result = await orchestrator.delete_maintenance_record(latest.id)

    assert result.action == EventAction.UPDATE
    assert machine.last_serviced_at == datetime(2024, 1, 1, 9, 0)
    assert machine.next_maintenance_at == datetime(2024, 1, 31, 9, 0)
    action, event_id, event = executor.calls[-1]
    assert (action, event_id) == ("update", "evt-2")
    assert event.start == datetime(2024, 1, 31, 9, 0)


@pytest.mark.asyncio
async def test_deleting_only_service_unschedules_maintenance(orchestrator, executor, machine):
    only = (await orchestrator.list_maintenance_records(machine.id))[0]

    result = await orchestrator.delete_maintenance_record(only.id)

    assert result.action == EventAction.DELETE
    assert machine.last_serviced_at is None
    assert machine.next_maintenance_at is None
    assert executor.calls[-1] == ("delete", "evt-1", "maintenance-cal")


@pytest.mark.asyncio
async def test_backfilled_service_keeps_current_cycle(orchestrator, executor, machine):
    result = await orchestrator.record_maintenance(machine.id, datetime(2023, 12, 1, 9, 0))

    assert result.action == EventAction.NONE
    assert machine.last_serviced_at == datetime(2024, 1, 1, 9, 0)
    assert executor.actions == ["create"]
    assert len(await orchestrator.list_maintenance_records(machine.id)) == 2


@pytest.mark.asyncio
async def test_history_replacement_follows_latest_service(orchestrator, executor, machine):
    result = await orchestrator.update_machine(
        machine.id,
        {"maintenance_history": ["2024-02-01T09:00:00Z", "2024-03-01T09:00:00Z"]},
    )

    assert result.action == EventAction.CREATE
    assert machine.last_serviced_at == datetime(2024, 3, 1, 9, 0)
    assert machine.next_maintenance_at == datetime(2024, 3, 31, 9, 0)
    records = await orchestrator.list_maintenance_records(machine.id)
    assert [record.performed_at for record in records] == [
        datetime(2024, 3, 1, 9, 0),
        datetime(2024, 2, 1, 9, 0),
    ]


@pytest.mark.asyncio
async def test_clearing_history_unschedules_maintenance(orchestrator, executor, store, machine):
    result = await orchestrator.update_machine(machine.id, {"maintenance_history": None})

    assert result.action == EventAction.DELETE
    assert machine.last_serviced_at is None
    assert store.tables["maintenance_records"] == {}


@pytest.mark.asyncio
async def test_unknown_maintenance_record(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.delete_maintenance_record(99)


@pytest.mark.asyncio
async def test_delete_machine_removes_event(orchestrator, executor, store, machine):
    result = await orchestrator.delete_machine(machine.id)

    assert result.action == EventAction.DELETE
    assert executor.actions == ["create", "delete"]
    assert executor.calls[-1] == ("delete", "evt-1", "maintenance-cal")
    assert store.tables["machines"] == {}
    assert store.tables["maintenance_records"] == {}


@pytest.mark.asyncio
async def test_delete_machine_removes_its_rentals_first(orchestrator, executor, store, rental):
    await orchestrator.delete_machine(rental.machine_id)

    assert executor.calls[-2:] == [
        ("delete", "evt-2", "rental-cal"),
        ("delete", "evt-1", "maintenance-cal"),
    ]
    assert store.tables["rentals"] == {}


@pytest.mark.asyncio
async def test_unknown_machine(orchestrator):
    with pytest.raises(NotFoundError):
        await orchestrator.update_machine(99, {"name": "ghost"})
    with pytest.raises(NotFoundError):
        await orchestrator.create_rental(99, rental_payload(JAN_1))


# ==================== RENTALS ====================

@pytest.mark.asyncio
async def test_create_rental_prices_and_schedules(orchestrator, executor, machine):
    result = await orchestrator.create_rental(machine.id, rental_payload(JAN_1, JAN_3))

    assert result.action == EventAction.CREATE
    assert result.price == Decimal("30.00")
    assert result.entity.event_id == "evt-2"

    _, event = executor.calls[-1]
    assert event.calendar_id == "rental-cal"
    assert event.summary == "Rental Robot mower X1"
    assert event.end == JAN_3
    assert "Rental price: 30.00 €." in event.description


@pytest.mark.asyncio
async def test_open_rental_is_free_until_returned(orchestrator, executor, machine):
    result = await orchestrator.create_rental(machine.id, rental_payload(JAN_1))

    assert result.price == Decimal("0.00")
    assert executor.calls[-1][1].end == JAN_1


@pytest.mark.asyncio
async def test_shipping_fee_comes_from_settings(orchestrator, store, machine):
    store.config["shipping_price"] = "15,00"
    result = await orchestrator.create_rental(
        machine.id,
        rental_payload(JAN_1, datetime(2024, 1, 2, 10), with_shipping=True, client_city="Lyon"),
    )
    assert result.price == Decimal("35.00")


@pytest.mark.asyncio
async def test_overlapping_rental_is_refused(orchestrator, executor, store, rental):
    calls_before = len(executor.calls)
    with pytest.raises(ConflictError):
        await orchestrator.create_rental(rental.machine_id, rental_payload(JAN_3, datetime(2024, 1, 5)))

    assert list(store.tables["rentals"]) == [rental.id]
    assert len(executor.calls) == calls_before


@pytest.mark.asyncio
async def test_end_before_start_is_refused(orchestrator, store, machine):
    with pytest.raises(ValidationError):
        await orchestrator.create_rental(machine.id, rental_payload(JAN_3, JAN_1))
    assert store.tables["rentals"] == {}


@pytest.mark.asyncio
async def test_concurrent_overlapping_rentals_only_one_wins(orchestrator, store, machine):
    results = await asyncio.gather(
        orchestrator.create_rental(machine.id, rental_payload(datetime(2024, 2, 10), datetime(2024, 2, 12))),
        orchestrator.create_rental(machine.id, rental_payload(datetime(2024, 2, 11), datetime(2024, 2, 13))),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(conflicts) == 1
    assert len(store.tables["rentals"]) == 1


@pytest.mark.asyncio
async def test_move_rental_updates_event(orchestrator, executor, rental):
    result = await orchestrator.update_rental(rental.id, {"end_date": datetime(2024, 1, 4, 10)})

    assert result.action == EventAction.UPDATE
    assert result.price == Decimal("40.00")
    action, event_id, event = executor.calls[-1]
    assert (action, event_id) == ("update", "evt-2")
    assert event.end == datetime(2024, 1, 4, 10)


@pytest.mark.asyncio
async def test_rental_can_keep_its_own_days(orchestrator, rental):
    result = await orchestrator.update_rental(rental.id, {"start_date": datetime(2024, 1, 2, 10)})
    assert result.action == EventAction.UPDATE


@pytest.mark.asyncio
async def test_move_onto_another_rental_is_refused(orchestrator, rental):
    other = await orchestrator.create_rental(
        rental.machine_id, rental_payload(datetime(2024, 1, 10), datetime(2024, 1, 12))
    )
    with pytest.raises(ConflictError):
        await orchestrator.update_rental(other.entity.id, {"start_date": JAN_3})
    assert other.entity.start_date == datetime(2024, 1, 10)


@pytest.mark.asyncio
async def test_payment_status_shows_in_event(orchestrator, executor, rental):
    result = await orchestrator.update_rental(rental.id, {"paid": True})

    assert result.action == EventAction.UPDATE
    assert "Payment already received." in executor.calls[-1][2].description


@pytest.mark.asyncio
async def test_unchanged_rental_is_a_no_op(orchestrator, executor, rental):
    calls_before = len(executor.calls)
    result = await orchestrator.update_rental(rental.id, {"client_phone": "0601020304"})

    assert result.action == EventAction.NONE
    assert len(executor.calls) == calls_before


@pytest.mark.asyncio
async def test_required_rental_fields_cannot_be_cleared(orchestrator, rental):
    with pytest.raises(ValidationError):
        await orchestrator.update_rental(rental.id, {"start_date": None})


@pytest.mark.asyncio
async def test_delete_rental_removes_event(orchestrator, executor, store, rental):
    result = await orchestrator.delete_rental(rental.id)

    assert result.action == EventAction.DELETE
    assert executor.calls[-1] == ("delete", "evt-2", "rental-cal")
    assert store.tables["rentals"] == {}


@pytest.mark.asyncio
async def test_booked_days_for_machine(uow_factory, rental):
    async with uow_factory() as uow:
        days = await machine_booked_days(uow.rentals, rental.machine_id)
    assert days == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]


# ==================== RENTAL-COUNT MAINTENANCE ====================

@pytest.fixture
async def counted_machine(orchestrator):
    """Machine due for service every second rental"""
    result = await orchestrator.create_machine(
        machine_payload(
            maintenance_type="BY_RENTAL_COUNT",
            interval_days=None,
            interval_rental_count=2,
            last_serviced_at=None,
        )
    )
    return result.entity


@pytest.mark.asyncio
async def test_threshold_rental_schedules_maintenance(orchestrator, executor, counted_machine):
    await orchestrator.create_rental(counted_machine.id, rental_payload(JAN_1, JAN_3))
    assert counted_machine.next_maintenance_at is None
    assert executor.actions == ["create"]

    await orchestrator.create_rental(
        counted_machine.id, rental_payload(datetime(2024, 2, 1, 10), datetime(2024, 2, 2, 10))
    )
    assert counted_machine.next_maintenance_at == datetime(2024, 2, 1, 10)
    assert counted_machine.event_id == "evt-3"
    assert executor.calls[-1][1].calendar_id == "maintenance-cal"


@pytest.mark.asyncio
async def test_removing_threshold_rental_unschedules_maintenance(orchestrator, executor, counted_machine):
    await orchestrator.create_rental(counted_machine.id, rental_payload(JAN_1, JAN_3))
    second = await orchestrator.create_rental(
        counted_machine.id, rental_payload(datetime(2024, 2, 1, 10), datetime(2024, 2, 2, 10))
    )

    await orchestrator.delete_rental(second.entity.id)

    assert counted_machine.next_maintenance_at is None
    assert counted_machine.event_id is None
    assert executor.calls[-1] == ("delete", "evt-3", "maintenance-cal")


@pytest.mark.asyncio
async def test_service_resets_rental_count(orchestrator, executor, counted_machine):
    await orchestrator.create_rental(counted_machine.id, rental_payload(JAN_1, JAN_3))
    await orchestrator.create_rental(
        counted_machine.id, rental_payload(datetime(2024, 2, 1, 10), datetime(2024, 2, 2, 10))
    )

    result = await orchestrator.record_maintenance(counted_machine.id, datetime(2024, 3, 1))

    assert result.action == EventAction.DELETE
    assert counted_machine.next_maintenance_at is None
    assert executor.calls[-1] == ("delete", "evt-3", "maintenance-cal")


# ==================== CALENDAR FAILURES ====================

@pytest.mark.asyncio
async def test_calendar_failure_keeps_saved_change(orchestrator, executor, store, calendar_down):
    executor.errors["create"] = calendar_down

    with pytest.raises(ConsistencyError) as exc_info:
        await orchestrator.create_machine(machine_payload())

    error = exc_info.value
    assert (error.kind, error.entity_id, error.action) == ("machine", 1, "create")
    assert error.cause is calendar_down
    saved = store.tables["machines"][1]
    assert saved.event_id is None

    executor.errors.clear()
    result = await orchestrator.resync(EntityKind.MACHINE, 1)

    assert result.action == EventAction.CREATE
    assert saved.event_id == "evt-1"


@pytest.mark.asyncio
async def test_resync_of_synced_entity_updates(orchestrator, executor, machine):
    result = await orchestrator.resync("machine", machine.id)

    assert result.action == EventAction.UPDATE
    assert executor.calls[-1][:2] == ("update", "evt-1")


@pytest.mark.asyncio
async def test_resync_rental_also_resyncs_machine(orchestrator, executor, rental):
    await orchestrator.resync("rental", rental.id)

    assert [call[:2] for call in executor.calls[-2:]] == [("update", "evt-2"), ("update", "evt-1")]


@pytest.mark.asyncio
async def test_resync_unknown_kind(orchestrator):
    with pytest.raises(ValidationError):
        await orchestrator.resync("boat", 1)


@pytest.mark.asyncio
async def test_failed_remote_delete_keeps_the_row(orchestrator, executor, store, machine, calendar_down):
    executor.errors["delete"] = calendar_down

    with pytest.raises(ExternalServiceError):
        await orchestrator.delete_machine(machine.id)

    assert store.tables["machines"][machine.id].event_id == "evt-1"


@pytest.mark.asyncio
async def test_failed_rental_delete_keeps_rentals(orchestrator, executor, store, rental, calendar_down):
    executor.errors["delete"] = calendar_down

    with pytest.raises(ExternalServiceError):
        await orchestrator.delete_machine(rental.machine_id)

    assert list(store.tables["rentals"]) == [rental.id]
    assert rental.event_id == "evt-2"


@pytest.mark.asyncio
async def test_failed_machine_delete_keeps_removed_rentals_removed(
    orchestrator, executor, store, rental, calendar_down
):
    executor.errors[("delete", "maintenance-cal")] = calendar_down

    with pytest.raises(ExternalServiceError):
        await orchestrator.delete_machine(rental.machine_id)

    # evt-2 is gone from the calendar, so its rental must not come back
    assert store.tables["rentals"] == {}
    machine = store.tables["machines"][rental.machine_id]
    assert machine.event_id == "evt-1"
    assert len(store.tables["maintenance_records"]) == 1


@pytest.mark.asyncio
async def test_vanished_event_is_recreated(orchestrator, executor, machine):
    executor.errors["update"] = ExternalEventMissingError("gone", status=404)

    await orchestrator.update_machine(machine.id, {"name": "Robot mower X2"})

    assert executor.actions == ["create", "update", "create"]
    assert machine.event_id == "evt-2"


@pytest.mark.asyncio
async def test_vanished_event_counts_as_deleted(orchestrator, executor, store, machine):
    executor.errors["delete"] = ExternalEventMissingError("gone", status=410)

    await orchestrator.delete_machine(machine.id)

    assert store.tables["machines"] == {}


# ==================== GUESTS ====================

@pytest.mark.asyncio
async def test_guests_are_normalized_and_notified(orchestrator, notifier):
    result = await orchestrator.create_machine(
        machine_payload(guests=[" Alice@Example.com", "bob@example.com", "alice@example.com"])
    )

    assert result.entity.guests == ["alice@example.com", "bob@example.com"]
    recipients, subject, _ = notifier.sent[0]
    assert recipients == ["alice@example.com", "bob@example.com"]
    assert subject == "You were added to maintenance notifications for Robot mower X1"


@pytest.mark.asyncio
async def test_only_added_guests_are_notified(orchestrator, notifier, machine):
    await orchestrator.update_machine(machine.id, {"guests": ["alice@example.com"]})
    await orchestrator.update_machine(machine.id, {"guests": ["alice@example.com", "carol@example.com"]})
    await orchestrator.update_machine(machine.id, {"guests": ["carol@example.com"]})

    assert [sent[0] for sent in notifier.sent] == [["alice@example.com"], ["carol@example.com"]]


@pytest.mark.asyncio
async def test_rental_guests_get_rental_details(orchestrator, notifier, machine):
    await orchestrator.create_rental(
        machine.id, rental_payload(JAN_1, JAN_3, guests=["driver@example.com"])
    )

    recipients, subject, body = notifier.sent[-1]
    assert recipients == ["driver@example.com"]
    assert subject == "Rental notification: Robot mower X1"
    assert body.startswith("From 2024-01-01 to 2024-01-03")


@pytest.mark.asyncio
async def test_invalid_guest_address(orchestrator):
    with pytest.raises(ValidationError):
        await orchestrator.create_machine(machine_payload(guests=["not-an-address"]))


@pytest.mark.asyncio
async def test_notification_failure_is_not_fatal(orchestrator, notifier, machine):
    notifier.error = RuntimeError("smtp down")

    result = await orchestrator.update_machine(machine.id, {"guests": ["alice@example.com"]})

    assert machine.guests == ["alice@example.com"]
    assert result.action == EventAction.NONE


@pytest.mark.asyncio
async def test_guests_notified_even_if_calendar_fails(orchestrator, executor, notifier, calendar_down):
    executor.errors["create"] = calendar_down

    with pytest.raises(ConsistencyError):
        await orchestrator.create_machine(machine_payload(guests=["alice@example.com"]))

    assert notifier.sent[0][0] == ["alice@example.com"]


@pytest.mark.asyncio
async def test_known_guest_addresses(orchestrator, uow_factory, machine):
    await orchestrator.update_machine(machine.id, {"guests": ["bob@example.com"]})
    await orchestrator.create_rental(machine.id, rental_payload(JAN_1, guests=["alice@example.com"]))

    async with uow_factory() as uow:
        assert await known_guest_addresses(uow) == ["alice@example.com", "bob@example.com"]


# ==================== INSTALLATIONS ====================

def installation_payload(**overrides):
    payload = {
        "order_reference": "PO-1042",
        "client_first_name": "Paul",
        "client_last_name": "Durand",
        "client_address": "3 rue des Lilas, Lyon",
        "robot_name": "Pool cleaner P3",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_installation_event_follows_its_date(orchestrator, executor):
    created = await orchestrator.create_installation(installation_payload())
    assert created.action == EventAction.NONE

    scheduled = await orchestrator.update_installation(
        created.entity.id, {"installation_date": datetime(2024, 4, 2, 8)}
    )
    assert scheduled.action == EventAction.CREATE
    _, event = executor.calls[-1]
    assert event.calendar_id == "orders-cal"
    assert event.summary == "Robot installation - Paul Durand"
    assert event.location == "3 rue des Lilas, Lyon"
    assert "Order: PO-1042" in event.description

    cleared = await orchestrator.update_installation(created.entity.id, {"installation_date": None})
    assert cleared.action == EventAction.DELETE
    assert executor.calls[-1] == ("delete", "evt-1", "orders-cal")
    assert created.entity.event_id is None


@pytest.mark.asyncio
async def test_delete_installation(orchestrator, executor, store):
    created = await orchestrator.create_installation(
        installation_payload(installation_date=datetime(2024, 4, 2, 8))
    )
    result = await orchestrator.delete_installation(created.entity.id)

    assert result.action == EventAction.DELETE
    assert store.tables["installations"] == {}


# ==================== PHONE CALLBACKS ====================

def callback_payload(**overrides):
    payload = {
        "phone_number": "0478000000",
        "client_name": "Mme Leroy",
        "reason": "QUOTE",
        "description": "Wants a quote for two mowers",
        "responsible_person": "Luc",
        "scheduled_at": datetime(2024, 1, 15, 9, 0),
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_callback_is_a_half_hour_slot(orchestrator, executor):
    result = await orchestrator.create_callback(callback_payload())

    assert result.action == EventAction.CREATE
    _, event = executor.calls[-1]
    assert event.calendar_id == "callbacks-cal"
    assert event.all_day is False
    assert event.end == datetime(2024, 1, 15, 9, 30)
    assert event.summary == "Callback: Mme Leroy - Quote request"
    assert f"Callback ID: {result.entity.id}" in event.description


@pytest.mark.asyncio
async def test_completed_callback_is_marked_done(orchestrator, executor):
    created = await orchestrator.create_callback(callback_payload())
    result = await orchestrator.update_callback(created.entity.id, {"completed": True})

    assert result.action == EventAction.UPDATE
    assert executor.calls[-1][2].summary.startswith("[Done] ")


@pytest.mark.asyncio
async def test_callback_defaults_to_now(orchestrator, executor):
    result = await orchestrator.create_callback(callback_payload(scheduled_at=None))

    assert result.entity.scheduled_at is not None
    assert result.action == EventAction.CREATE


@pytest.mark.asyncio
async def test_callback_time_cannot_be_cleared(orchestrator):
    created = await orchestrator.create_callback(callback_payload())
    with pytest.raises(ValidationError):
        await orchestrator.update_callback(created.entity.id, {"scheduled_at": None})


@pytest.mark.asyncio
async def test_delete_callback(orchestrator, executor, store):
    created = await orchestrator.create_callback(callback_payload())
    await orchestrator.delete_callback(created.entity.id)

    assert executor.calls[-1] == ("delete", "evt-1", "callbacks-cal")
    assert store.tables["callbacks"] == {}
