"""
Tests for event booking endpoints: creation, confirmation, cascade decline
and the confirmation log.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError

from tests.conftest import BOOKINGS_URL, booking_payload
from venue_booking.services.audit_service import BookingSnapshot
from venue_booking.services.reservation_service import decline_overlapping_pending, get_booking


@pytest.mark.asyncio
async def test_create_booking_starts_pending(client: AsyncClient):
    """A new request is stored as Pending with normalized dates."""
    response = await client.post(
        BOOKINGS_URL,
        json=booking_payload("2025-12-01T09:30:00", "2025-12-03 18:00:00"),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "Pending"
    assert data["conflict_check"]["status"] == "checked"

    booking = (await client.get(f"{BOOKINGS_URL}{data['booking_id']}")).json()
    assert booking["event_start_date"] == "2025-12-01"
    assert booking["event_end_date"] == "2025-12-03"
    assert booking["event_type"] == "Wedding"


@pytest.mark.asyncio
async def test_create_booking_missing_fields(client: AsyncClient):
    """Every missing required field is listed in one 400."""
    response = await client.post(BOOKINGS_URL, json={"customer_name": "Ada", "email": "  "})
    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["missing_fields"] == ["email", "contact_number", "event_start_date", "event_end_date"]


@pytest.mark.asyncio
async def test_create_booking_malformed_date(client: AsyncClient):
    response = await client.post(BOOKINGS_URL, json=booking_payload("12/01/2025", "2025-12-03"))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_booking_end_before_start(client: AsyncClient):
    response = await client.post(BOOKINGS_URL, json=booking_payload("2025-12-05", "2025-12-03"))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_event_name_accepted_as_event_type(client: AsyncClient, create_booking):
    booking_id = await create_booking("2025-12-01", "2025-12-01", event_type=None, event_name="Birthday")
    booking = (await client.get(f"{BOOKINGS_URL}{booking_id}")).json()
    assert booking["event_type"] == "Birthday"


@pytest.mark.asyncio
async def test_sentinel_event_type_stored_as_absent(client: AsyncClient, create_booking):
    booking_id = await create_booking("2025-12-01", "2025-12-01", event_type="0", event_name="null")
    booking = (await client.get(f"{BOOKINGS_URL}{booking_id}")).json()
    assert booking["event_type"] is None
    assert booking["event_name"] is None


@pytest.mark.asyncio
async def test_create_conflicts_with_confirmed_booking(client: AsyncClient, create_booking, set_status):
    """Overlapping a Confirmed booking is rejected, not silently created as Pending."""
    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")
    assert (await set_status(x, "Confirmed")).status_code == 200

    response = await client.post(BOOKINGS_URL, json=booking_payload("2025-12-02", "2025-12-04", "Yara Jones"))
    assert response.status_code == 409
    data = response.json()
    assert data["conflict"] is True
    assert data["conflicting_dates"] == {"start": "2025-12-01", "end": "2025-12-03"}
    assert data["conflicting_customer"] == "Xavier Smith"
    assert "Dec 1, 2025 to Dec 3, 2025" in data["message"]

    bookings = (await client.get(BOOKINGS_URL)).json()["data"]
    assert [b["customer_name"] for b in bookings] == ["Xavier Smith"]


@pytest.mark.asyncio
async def test_confirm_cascades_to_overlapping_pending(client: AsyncClient, create_booking, set_status):
    """Confirming X declines Y (overlap) and leaves Z (no overlap) Pending."""
    y = await create_booking("2025-12-02", "2025-12-04", "Yara Jones")
    z = await create_booking("2025-12-10", "2025-12-12", "Zoe Brown")
    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")

    response = await set_status(x, "Confirmed")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Confirmed"
    assert data["status_updated"] is True
    assert data["declined_count"] == 1
    assert data["declined_bookings"] == [{"id": y, "customer": "Yara Jones"}]
    assert data["audit_logged"] is True
    assert "1 conflicting pending booking(s) were automatically declined." in data["message"]

    assert (await client.get(f"{BOOKINGS_URL}{y}")).json()["status"] == "Cancelled"
    assert (await client.get(f"{BOOKINGS_URL}{z}")).json()["status"] == "Pending"
    assert (await client.get(f"{BOOKINGS_URL}{x}")).json()["status"] == "Confirmed"


@pytest.mark.asyncio
async def test_cascade_declines_every_competitor(client: AsyncClient, create_booking, set_status):
    competitors = [
        await create_booking("2025-12-01", "2025-12-01", "Amy Adams"),
        await create_booking("2025-12-03", "2025-12-08", "Ben Brooks"),
        await create_booking("2025-11-20", "2025-12-31", "Cal Cole"),
    ]
    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")

    data = (await set_status(x, "Confirmed")).json()
    assert data["declined_count"] == 3
    assert sorted(d["id"] for d in data["declined_bookings"]) == sorted(competitors)


@pytest.mark.asyncio
async def test_cascade_includes_status_less_rows(client: AsyncClient, session_factory, create_booking, set_status):
    """Legacy rows with a NULL status count as Pending."""
    legacy = await create_booking("2025-12-02", "2025-12-02", "Lee Legacy")
    async with session_factory() as session:
        await session.execute(text("UPDATE event_bookings SET status = NULL WHERE id = :id"), {"id": legacy})
        await session.commit()

    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")
    data = (await set_status(x, "Confirmed")).json()
    assert data["declined_bookings"] == [{"id": legacy, "customer": "Lee Legacy"}]


@pytest.mark.asyncio
async def test_cascade_reports_only_rows_it_declined(client: AsyncClient, session_factory, create_booking):
    """Count and list both come from the rows the decline actually changed."""
    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")
    y = await create_booking("2025-12-02", "2025-12-04", "Yara Jones")
    v = await create_booking("2025-12-03", "2025-12-03", "Vic Vance")
    z = await create_booking("2025-12-10", "2025-12-12", "Zoe Brown")

    async with session_factory() as session:
        await session.execute(text("UPDATE event_bookings SET status = 'Confirmed' WHERE id = :id"), {"id": x})
        await session.commit()
        snapshot = BookingSnapshot.from_booking(await get_booking(session, x))

        # y is cancelled by someone else just before the decline runs
        await session.execute(text("UPDATE event_bookings SET status = 'Cancelled' WHERE id = :id"), {"id": y})
        result = await decline_overlapping_pending(session, snapshot)

    assert result.error is None
    assert result.declined_count == len(result.declined) == 1
    assert [(d.id, d.customer) for d in result.declined] == [(v, "Vic Vance")]

    async with session_factory() as session:
        again = await decline_overlapping_pending(session, snapshot)
    assert again.declined_count == 0
    assert again.declined == []

    assert (await client.get(f"{BOOKINGS_URL}{z}")).json()["status"] == "Pending"


@pytest.mark.asyncio
async def test_cascade_failure_keeps_confirmation(client: AsyncClient, engine, create_booking, set_status):
    """A failed decline is reported; the confirmation and its log entry stand."""
    y = await create_booking("2025-12-02", "2025-12-04", "Yara Jones")
    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")

    def fail_decline(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("UPDATE event_bookings") and "Cancelled" in (parameters or ()):
            raise OperationalError(statement, parameters, Exception("disk I/O error"))

    event.listen(engine.sync_engine, "before_cursor_execute", fail_decline)
    try:
        response = await set_status(x, "Confirmed")
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", fail_decline)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Confirmed"
    assert data["audit_logged"] is True
    assert data["declined_count"] == 0
    assert data["declined_bookings"] == []
    assert data["cascade_error"] == "Could not decline conflicting pending bookings."

    assert (await client.get(f"{BOOKINGS_URL}{x}")).json()["status"] == "Confirmed"
    assert (await client.get(f"{BOOKINGS_URL}{y}")).json()["status"] == "Pending"
    logs = (await client.get(f"{BOOKINGS_URL}logs")).json()["data"]
    assert [entry["booking_id"] for entry in logs] == [x]


@pytest.mark.asyncio
async def test_confirm_rejected_when_overlapping_confirmed_exists(client: AsyncClient, session_factory, create_booking, set_status):
    """A Pending booking that escaped the cascade still cannot be confirmed."""
    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")
    y = await create_booking("2025-12-03", "2025-12-05", "Yara Jones")
    await set_status(x, "Confirmed")

    # put y back to Pending to simulate a cascade that never ran
    async with session_factory() as session:
        await session.execute(text("UPDATE event_bookings SET status = 'Pending' WHERE id = :id"), {"id": y})
        await session.commit()

    response = await set_status(y, "Confirmed")
    assert response.status_code == 409
    data = response.json()
    assert data["conflicting_customer"] == "Xavier Smith"
    assert "Cannot confirm this reservation" in data["message"]
    assert (await client.get(f"{BOOKINGS_URL}{y}")).json()["status"] == "Pending"


@pytest.mark.asyncio
async def test_logged_confirmation_blocks_even_after_booking_removed(client: AsyncClient, session_factory, create_booking, set_status):
    """The log keeps a slot taken when the originating booking row is gone."""
    x = await create_booking("2025-12-01", "2025-12-03", "Xavier Smith")
    await set_status(x, "Confirmed")
    async with session_factory() as session:
        await session.execute(text("DELETE FROM event_bookings WHERE id = :id"), {"id": x})
        await session.commit()

    response = await client.post(BOOKINGS_URL, json=booking_payload("2025-12-03", "2025-12-04", "Yara Jones"))
    assert response.status_code == 409
    assert response.json()["conflict_source"] == "event_reservation_logs"


@pytest.mark.asyncio
async def test_cancel_is_idempotent(client: AsyncClient, create_booking, set_status):
    x = await create_booking("2025-12-01", "2025-12-03")

    first = await set_status(x, "Cancelled")
    second = await set_status(x, "Cancelled")
    assert first.status_code == 200
    assert first.json()["status_updated"] is True
    assert second.status_code == 200
    assert second.json()["status_updated"] is False
    assert (await client.get(f"{BOOKINGS_URL}{x}")).json()["status"] == "Cancelled"


@pytest.mark.asyncio
async def test_cancel_does_not_cascade(client: AsyncClient, create_booking, set_status):
    x = await create_booking("2025-12-01", "2025-12-03")
    y = await create_booking("2025-12-02", "2025-12-04")

    data = (await set_status(x, "Cancelled")).json()
    assert data["declined_count"] == 0
    assert data["audit_logged"] is None
    assert (await client.get(f"{BOOKINGS_URL}{y}")).json()["status"] == "Pending"
    assert (await client.get(f"{BOOKINGS_URL}logs")).json()["data"] == []


@pytest.mark.asyncio
async def test_terminal_states_do_not_switch(create_booking, set_status):
    confirmed = await create_booking("2025-12-01", "2025-12-03")
    cancelled = await create_booking("2025-12-10", "2025-12-11")
    await set_status(confirmed, "Confirmed")
    await set_status(cancelled, "Cancelled")

    assert (await set_status(confirmed, "Cancelled")).status_code == 409
    assert (await set_status(cancelled, "Confirmed")).status_code == 409


@pytest.mark.asyncio
async def test_repeated_confirm_writes_one_log_entry(client: AsyncClient, create_booking, set_status):
    x = await create_booking("2025-12-01", "2025-12-03")
    await set_status(x, "Confirmed")
    again = await set_status(x, "Confirmed")

    assert again.status_code == 200
    assert again.json()["status_updated"] is False
    logs = (await client.get(f"{BOOKINGS_URL}logs")).json()["data"]
    assert len(logs) == 1


@pytest.mark.asyncio
async def test_status_for_unknown_booking(set_status):
    response = await set_status(99999, "Confirmed")
    assert response.status_code == 404
    assert "99999" in response.json()["message"]


@pytest.mark.asyncio
async def test_status_for_non_numeric_id(client: AsyncClient):
    response = await client.put(f"{BOOKINGS_URL}abc/status", json={"status": "Confirmed"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_status_required_and_validated(client: AsyncClient, create_booking, set_status):
    x = await create_booking("2025-12-01", "2025-12-03")
    assert (await client.put(f"{BOOKINGS_URL}{x}/status", json={})).status_code == 400
    assert (await set_status(x, "Pending")).status_code == 400


@pytest.mark.asyncio
async def test_confirmation_log_newest_first(client: AsyncClient, create_booking, set_status):
    first = await create_booking("2025-12-01", "2025-12-01", "Amy Adams", special_request="Stage lights")
    second = await create_booking("2025-12-05", "2025-12-06", "Ben Brooks", event_type="0", event_name="Gala")
    await set_status(first, "Confirmed", confirmed_by="manager")
    await set_status(second, "Confirmed")

    response = await client.get(f"{BOOKINGS_URL}logs")
    assert response.status_code == 200
    logs = response.json()["data"]
    assert [entry["booking_id"] for entry in logs] == [second, first]

    newest, oldest = logs
    assert newest["event_type"] == "Gala"
    assert oldest["customer_name"] == "Amy Adams"
    assert oldest["special_request"] == "Stage lights"
    assert oldest["confirmed_by"] == "manager"
    assert oldest["event_start_date"] == "2025-12-01"
    assert oldest["status"] == "Confirmed"
    assert len(oldest["confirmed_at"]) == len("2025-12-01 00:00:00")


@pytest.mark.asyncio
async def test_confirm_succeeds_when_log_table_missing(client: AsyncClient, session_factory, create_booking, set_status):
    """Best effort: confirmation stands, the missing audit entry is reported."""
    x = await create_booking("2025-12-01", "2025-12-03")
    y = await create_booking("2025-12-02", "2025-12-02")
    async with session_factory() as session:
        await session.execute(text("DROP TABLE event_reservation_logs"))
        await session.commit()

    response = await set_status(x, "Confirmed")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Confirmed"
    assert data["audit_logged"] is False
    assert data["audit_error"]
    assert data["conflict_check"]["status"] == "degraded"
    assert data["conflict_check"]["degraded_sources"] == ["event_reservation_logs"]
    assert data["declined_bookings"] == [{"id": y, "customer": "Ada Lovelace"}]

    logs = await client.get(f"{BOOKINGS_URL}logs")
    assert logs.status_code == 200
    assert logs.json()["data"] == []


@pytest.mark.asyncio
async def test_strict_mode_blocks_confirm_when_log_table_missing(client: AsyncClient, session_factory, create_booking, set_status, strict_mode):
    x = await create_booking("2025-12-01", "2025-12-03")
    async with session_factory() as session:
        await session.execute(text("DROP TABLE event_reservation_logs"))
        await session.commit()

    response = await set_status(x, "Confirmed")
    assert response.status_code == 500
    assert response.json()["source"] == "event_reservation_logs"
    assert (await client.get(f"{BOOKINGS_URL}{x}")).json()["status"] == "Pending"


@pytest.mark.asyncio
async def test_confirmed_bookings_never_overlap(client: AsyncClient, create_booking, set_status):
    """After any mix of creates and status changes, Confirmed intervals are disjoint."""
    ranges = [
        ("2025-12-01", "2025-12-03"),
        ("2025-12-03", "2025-12-04"),
        ("2025-12-05", "2025-12-05"),
        ("2025-12-04", "2025-12-06"),
        ("2025-11-28", "2025-12-01"),
        ("2025-12-07", "2025-12-09"),
    ]
    ids = [await create_booking(start, end, f"Guest {i}") for i, (start, end) in enumerate(ranges)]
    for booking_id in reversed(ids):
        await set_status(booking_id, "Confirmed")
    await client.post(BOOKINGS_URL, json=booking_payload("2025-12-02", "2025-12-02", "Late Comer"))

    bookings = (await client.get(BOOKINGS_URL)).json()["data"]
    confirmed = [b for b in bookings if b["status"] == "Confirmed"]
    assert confirmed
    for i, a in enumerate(confirmed):
        for b in confirmed[i + 1:]:
            assert not (a["event_start_date"] <= b["event_end_date"] and b["event_start_date"] <= a["event_end_date"])


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    health = await client.get("/health")
    assert health.status_code == 200
    assert health.json()["cache"] == {"status": "disabled"}

    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "venue_booking_attempts_total" in metrics.text
