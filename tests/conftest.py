import dataclasses
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from incident_sla.core import DuplicateTicketError
from incident_sla.escalation.application import IEscalationRepository, IUserDirectory
from incident_sla.escalation.domain import EscalationRecord, User
from incident_sla.sla.application import INotifier, ITicketRepository
from incident_sla.sla.domain import IncidentTicket


T0 = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)


class InMemoryTicketRepository(ITicketRepository):
    """Ticket store whose compare-and-set has no await between check and write."""

    def __init__(self):
        self.tickets: Dict[str, IncidentTicket] = {}
        self.fail_on: set = set()

    async def get_by_id(self, ticket_id):
        ticket = self.tickets.get(ticket_id)
        return dataclasses.replace(ticket) if ticket else None

    async def create(self, ticket):
        if ticket.id in self.tickets:
            raise DuplicateTicketError(ticket.id)
        self.tickets[ticket.id] = dataclasses.replace(ticket)
        return ticket

    async def set_milestone(self, ticket_id, milestone, at):
        ticket = self.tickets.get(ticket_id)
        if ticket is None or getattr(ticket, milestone) is not None:
            return False
        setattr(ticket, milestone, at)
        return True

    async def find_breach_candidates(self, sla_type, now):
        return [dataclasses.replace(t) for t in self.tickets.values() if t.is_breach_candidate(sla_type, now)]

    async def find_near_breach(self, sla_type, now, until):
        found = [t for t in self.tickets.values() if t.is_near_breach(sla_type, now, until)]
        return [dataclasses.replace(t) for t in sorted(found, key=lambda t: t.deadline_for(sla_type))]

    async def conditional_set_breach_flag(self, ticket_id, breach_type, breached_at):
        if ticket_id in self.fail_on:
            raise ConnectionError("store unavailable")
        ticket = self.tickets.get(ticket_id)
        if ticket is None:
            return False
        return ticket.mark_breached(breach_type, breached_at)

    async def list(self, organization_id=None):
        return [
            dataclasses.replace(t) for t in self.tickets.values()
            if organization_id is None or t.organization_id == organization_id
        ]


class RecordingNotifier(INotifier):

    def __init__(self):
        self.events = []
        self.breaches = []
        self.near_breach_reports = []

    async def publish_event(self, event):
        self.events.append(event)

    async def notify_breaches(self, records):
        self.breaches.extend(records)

    async def notify_near_breaches(self, report):
        self.near_breach_reports.append(report)


class InMemoryUserDirectory(IUserDirectory):

    def __init__(self, users: Optional[List[User]] = None):
        self.users = {u.id: u for u in users or []}

    async def find_by_email(self, email):
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    async def find_by_id(self, user_id):
        return self.users.get(user_id)


class InMemoryEscalationRepository(IEscalationRepository):

    def __init__(self):
        self.records: List[EscalationRecord] = []

    async def create(self, record):
        self.records.append(record)
        return record

    async def list_for_ticket(self, ticket_id):
        return [r for r in self.records if r.ticket_id == ticket_id]


@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def users():
    return [
        User(id="u-alice", email="alice@acme.test", role="on_call_engineer", organization_id="org-acme"),
        User(id="u-bob", email="bob@acme.test", role="incident_commander", organization_id="org-acme"),
        User(id="u-eve", email="eve@globex.test", role="incident_commander", organization_id="org-globex"),
    ]


@pytest.fixture
def directory(users):
    return InMemoryUserDirectory(users)


@pytest.fixture
def escalation_repo():
    return InMemoryEscalationRepository()


@pytest.fixture
def critical_ticket():
    return IncidentTicket.open(
        ticket_id="INC-1",
        organization_id="org-acme",
        priority="critical",
        created_at=T0,
    )


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    from incident_sla.infrastructure.database import build_session_maker, create_tables
    from sqlalchemy.ext.asyncio import create_async_engine

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sla.db'}")
    await create_tables(engine)
    yield build_session_maker(engine)
    await engine.dispose()
