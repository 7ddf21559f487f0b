"""
Risk Review Jobs
================

Background jobs for the Risk Review Service.
"""

from services.risk_review.jobs.escalation import EscalationSweep, SweepReport


__all__ = ["EscalationSweep", "SweepReport"]
