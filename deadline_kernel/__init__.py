"""
Deadline Kernel

Recurring compliance-deadline engine:
- Declarative rule expansion into dated tasks per client
- Workday resolution against a jurisdiction holiday calendar
- Read-time display status and predecessor blocking
- Non-destructive reconciliation of a persisted task store
"""

__version__ = "0.1.0"
