"""
Shared Kernel Module
====================

Infrastructure shared by the SLA and Escalation bounded contexts.

Architecture Pattern: Modular Monolith
- Each module (sla, escalation) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add SLA or escalation business rules to the shared kernel.
"""
