import pytest

from incident_sla.config import EscalationStatus
from incident_sla.core import ForbiddenError, NotFoundError
from incident_sla.escalation.application import EscalationService


@pytest.fixture
def service(ticket_repo, directory, escalation_repo):
    return EscalationService(ticket_repo, directory, escalation_repo)


@pytest.mark.asyncio
async def test_escalate_within_organization(service, ticket_repo, critical_ticket, escalation_repo):
    await ticket_repo.create(critical_ticket)

    summary = await service.escalate("INC-1", "bob@acme.test", "u-alice", reason="needs IC")

    assert summary.ticket_id == "INC-1"
    assert summary.escalated_to_role == "incident_commander"
    record = escalation_repo.records[0]
    assert record.status == EscalationStatus.PENDING
    assert record.escalated_to_user_id == "u-bob"
    assert record.escalated_by_user_id == "u-alice"
    assert record.reason == "needs IC"
    assert summary.timestamp == record.escalated_at


@pytest.mark.asyncio
async def test_escalation_does_not_touch_ticket(service, ticket_repo, critical_ticket):
    await ticket_repo.create(critical_ticket)
    before = await ticket_repo.get_by_id("INC-1")

    await service.escalate("INC-1", "bob@acme.test", "u-alice")

    assert await ticket_repo.get_by_id("INC-1") == before


@pytest.mark.asyncio
async def test_target_in_other_organization_is_forbidden(service, ticket_repo, critical_ticket, escalation_repo):
    await ticket_repo.create(critical_ticket)

    with pytest.raises(ForbiddenError):
        await service.escalate("INC-1", "eve@globex.test", "u-alice")
    assert escalation_repo.records == []


@pytest.mark.asyncio
async def test_escalator_in_other_organization_is_forbidden(service, ticket_repo, critical_ticket, escalation_repo):
    await ticket_repo.create(critical_ticket)

    with pytest.raises(ForbiddenError):
        await service.escalate("INC-1", "bob@acme.test", "u-eve")
    assert escalation_repo.records == []


@pytest.mark.asyncio
@pytest.mark.parametrize("escalating_user_id", [None, "u-ghost"])
async def test_unknown_escalator_is_forbidden(service, ticket_repo, critical_ticket, escalating_user_id):
    await ticket_repo.create(critical_ticket)

    with pytest.raises(ForbiddenError):
        await service.escalate("INC-1", "bob@acme.test", escalating_user_id)


@pytest.mark.asyncio
async def test_unknown_ticket(service):
    with pytest.raises(NotFoundError):
        await service.escalate("missing", "bob@acme.test", "u-alice")


@pytest.mark.asyncio
async def test_unknown_target(service, ticket_repo, critical_ticket):
    await ticket_repo.create(critical_ticket)

    with pytest.raises(NotFoundError):
        await service.escalate("INC-1", "nobody@acme.test", "u-alice")


@pytest.mark.asyncio
async def test_repeated_escalations_are_each_recorded(service, ticket_repo, critical_ticket):
    await ticket_repo.create(critical_ticket)

    await service.escalate("INC-1", "bob@acme.test", "u-alice")
    await service.escalate("INC-1", "alice@acme.test", "u-bob")

    history = await service.list_for_ticket("INC-1")
    assert [r.escalated_to_user_id for r in history] == ["u-bob", "u-alice"]
