"""
SLA Monitoring Module
=====================

Bounded Context for incident service level agreements.

Responsibilities:
- Stamp acknowledgment and resolution deadlines from the priority tier
- Record write-once, ordered lifecycle milestones
- Flag each missed deadline exactly once, even under concurrent scans
- Warn about tickets close to missing a deadline
- Report per-ticket SLA state and compliance rate
"""

__version__ = "1.0.0"
