"""
Escalation Module
=================

Bounded Context for escalating an incident ticket to another responder.

Escalation is additive: every request is authorized against the ticket's
owning organization and recorded as a PENDING escalation. The ticket itself
is never changed.
"""
