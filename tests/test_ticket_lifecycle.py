from datetime import timedelta

import pytest

from incident_sla.config import TicketStatus
from incident_sla.core import InvalidPriorityError, InvalidTransitionError, NotFoundError
from incident_sla.sla.application import TicketLifecycleService

from conftest import T0


@pytest.fixture
def service(ticket_repo, notifier):
    return TicketLifecycleService(ticket_repo, notifier)


@pytest.mark.asyncio
async def test_create_stamps_deadlines(service, ticket_repo):
    ticket = await service.on_create("org-acme", "critical", created_at=T0, ticket_id="INC-1")

    stored = ticket_repo.tickets["INC-1"]
    assert stored.sla_target_ack == T0 + timedelta(minutes=15)
    assert stored.sla_target_resolve == T0 + timedelta(hours=4)
    assert ticket.status == TicketStatus.OPEN


@pytest.mark.asyncio
async def test_create_generates_id_and_emits_event(service, notifier):
    ticket = await service.on_create("org-acme", "low", created_at=T0)

    assert ticket.id
    assert notifier.events[0].previous_status is None
    assert notifier.events[0].new_status == TicketStatus.OPEN


@pytest.mark.asyncio
@pytest.mark.parametrize("priority", [None, "", "   "])
async def test_create_without_priority_is_rejected(service, ticket_repo, priority):
    with pytest.raises(InvalidPriorityError):
        await service.on_create("org-acme", priority, created_at=T0)
    assert ticket_repo.tickets == {}


@pytest.mark.asyncio
async def test_unrecognized_priority_gets_least_urgent_deadlines(service):
    ticket = await service.on_create("org-acme", "urgent-ish", created_at=T0)
    assert ticket.sla_target_ack == T0 + timedelta(minutes=240)


@pytest.mark.asyncio
async def test_acknowledge_is_idempotent(service, ticket_repo, notifier):
    await service.on_create("org-acme", "high", created_at=T0, ticket_id="INC-1")

    first = T0 + timedelta(minutes=3)
    await service.on_acknowledge("INC-1", at=first)
    ticket = await service.on_acknowledge("INC-1", at=first + timedelta(minutes=10))

    assert ticket.first_acknowledged_at == first
    assert ticket_repo.tickets["INC-1"].first_acknowledged_at == first
    # create + first ack only
    assert len(notifier.events) == 2


@pytest.mark.asyncio
async def test_full_lifecycle_events(service, notifier):
    await service.on_create("org-acme", "medium", created_at=T0, ticket_id="INC-1")
    await service.on_acknowledge("INC-1", at=T0 + timedelta(minutes=5))
    await service.on_resolve("INC-1", at=T0 + timedelta(minutes=50))
    ticket = await service.on_close("INC-1", at=T0 + timedelta(minutes=55))

    assert ticket.status == TicketStatus.CLOSED
    transitions = [(e.previous_status, e.new_status) for e in notifier.events]
    assert transitions == [
        (None, TicketStatus.OPEN),
        (TicketStatus.OPEN, TicketStatus.ACKNOWLEDGED),
        (TicketStatus.ACKNOWLEDGED, TicketStatus.RESOLVED),
        (TicketStatus.RESOLVED, TicketStatus.CLOSED),
    ]


@pytest.mark.asyncio
async def test_resolve_before_acknowledge_is_rejected(service, ticket_repo):
    await service.on_create("org-acme", "high", created_at=T0, ticket_id="INC-1")

    with pytest.raises(InvalidTransitionError):
        await service.on_resolve("INC-1", at=T0 + timedelta(minutes=5))
    assert ticket_repo.tickets["INC-1"].resolved_at is None


@pytest.mark.asyncio
async def test_close_before_resolve_is_rejected(service):
    await service.on_create("org-acme", "high", created_at=T0, ticket_id="INC-1")
    await service.on_acknowledge("INC-1", at=T0 + timedelta(minutes=1))

    with pytest.raises(InvalidTransitionError):
        await service.on_close("INC-1", at=T0 + timedelta(minutes=2))


@pytest.mark.asyncio
async def test_resolve_timestamp_cannot_precede_acknowledgment(service):
    await service.on_create("org-acme", "high", created_at=T0, ticket_id="INC-1")
    await service.on_acknowledge("INC-1", at=T0 + timedelta(minutes=10))

    with pytest.raises(InvalidTransitionError):
        await service.on_resolve("INC-1", at=T0 + timedelta(minutes=5))


@pytest.mark.asyncio
async def test_repeated_resolve_keeps_first_timestamp(service):
    await service.on_create("org-acme", "high", created_at=T0, ticket_id="INC-1")
    await service.on_acknowledge("INC-1", at=T0 + timedelta(minutes=1))
    resolved_at = T0 + timedelta(minutes=20)
    await service.on_resolve("INC-1", at=resolved_at)

    ticket = await service.on_resolve("INC-1", at=T0 + timedelta(minutes=30))
    assert ticket.resolved_at == resolved_at


@pytest.mark.asyncio
async def test_milestone_on_unknown_ticket(service):
    with pytest.raises(NotFoundError):
        await service.on_acknowledge("missing")


@pytest.mark.asyncio
async def test_notifier_failure_does_not_fail_transition(ticket_repo):
    class BrokenNotifier:
        async def publish_event(self, event):
            raise RuntimeError("bus down")

    service = TicketLifecycleService(ticket_repo, BrokenNotifier())
    await service.on_create("org-acme", "high", created_at=T0, ticket_id="INC-1")
    ticket = await service.on_acknowledge("INC-1", at=T0 + timedelta(minutes=1))

    assert ticket.first_acknowledged_at is not None
