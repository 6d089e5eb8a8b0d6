import asyncio
from datetime import timedelta

import pytest

from incident_sla.config import BreachType, SLAType
from incident_sla.sla.application import BreachScanner, TicketLifecycleService

from conftest import T0


@pytest.fixture
def scanner(ticket_repo, notifier):
    return BreachScanner(ticket_repo, notifier, concurrency=4)


@pytest.fixture
def lifecycle(ticket_repo, notifier):
    return TicketLifecycleService(ticket_repo, notifier)


@pytest.mark.asyncio
async def test_unacknowledged_critical_ticket_breaches_once(ticket_repo, critical_ticket, scanner, notifier):
    await ticket_repo.create(critical_ticket)

    records = await scanner.run(now=T0 + timedelta(minutes=20))

    assert len(records) == 1
    assert records[0].ticket_id == "INC-1"
    assert records[0].sla_type == SLAType.ACK
    assert records[0].duration_minutes_past_deadline == 5
    assert ticket_repo.tickets["INC-1"].breach_flag == BreachType.ACK
    assert notifier.breaches == records

    assert await scanner.run(now=T0 + timedelta(minutes=25)) == []


@pytest.mark.asyncio
async def test_nothing_breaches_before_deadline(ticket_repo, critical_ticket, scanner):
    await ticket_repo.create(critical_ticket)
    assert await scanner.run(now=T0 + timedelta(minutes=15)) == []
    assert ticket_repo.tickets["INC-1"].breach_flag is None


@pytest.mark.asyncio
async def test_concurrent_scans_report_breach_exactly_once(ticket_repo, critical_ticket, notifier):
    await ticket_repo.create(critical_ticket)
    now = T0 + timedelta(minutes=20)

    results = await asyncio.gather(*[
        BreachScanner(ticket_repo, notifier, concurrency=2).run(now=now)
        for _ in range(8)
    ])

    records = [record for batch in results for record in batch]
    assert len(records) == 1
    assert records[0].ticket_id == "INC-1"


@pytest.mark.asyncio
async def test_acknowledged_one_second_before_deadline_never_breaches(ticket_repo, critical_ticket, scanner, lifecycle):
    await ticket_repo.create(critical_ticket)
    await lifecycle.on_acknowledge("INC-1", at=critical_ticket.sla_target_ack - timedelta(seconds=1))

    for minutes in (20, 60, 120):
        records = await scanner.run(now=T0 + timedelta(minutes=minutes))
        assert all(r.sla_type != SLAType.ACK for r in records)


@pytest.mark.asyncio
async def test_resolution_breach_after_ack(ticket_repo, critical_ticket, scanner, lifecycle):
    await ticket_repo.create(critical_ticket)
    await lifecycle.on_acknowledge("INC-1", at=T0 + timedelta(minutes=5))

    records = await scanner.run(now=T0 + timedelta(hours=4, minutes=10))

    assert [(r.sla_type, r.duration_minutes_past_deadline) for r in records] == [(SLAType.RESOLVE, 10)]
    assert ticket_repo.tickets["INC-1"].breach_flag == BreachType.RESOLVE


@pytest.mark.asyncio
async def test_ticket_missing_both_deadlines_is_flagged_ack(ticket_repo, critical_ticket, scanner):
    await ticket_repo.create(critical_ticket)

    records = await scanner.run(now=T0 + timedelta(hours=5))

    assert [r.sla_type for r in records] == [SLAType.ACK]
    assert ticket_repo.tickets["INC-1"].breach_flag == BreachType.ACK


@pytest.mark.asyncio
async def test_store_error_skips_only_that_ticket(ticket_repo, lifecycle, scanner, caplog):
    for ticket_id in ("INC-1", "INC-2", "INC-3"):
        await lifecycle.on_create("org-acme", "critical", created_at=T0, ticket_id=ticket_id)
    ticket_repo.fail_on.add("INC-2")

    records = await scanner.run(now=T0 + timedelta(minutes=20))

    assert sorted(r.ticket_id for r in records) == ["INC-1", "INC-3"]
    assert ticket_repo.tickets["INC-2"].breach_flag is None
    assert "Failed to mark SLA breach" in caplog.text

    ticket_repo.fail_on.clear()
    retry = await scanner.run(now=T0 + timedelta(minutes=21))
    assert [r.ticket_id for r in retry] == ["INC-2"]
