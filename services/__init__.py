"""
AI Governance Services
======================

Services for the AI governance intake and review portal.

Services:
- risk_review: Intake, risk assessment, review workflow and escalation
"""

__all__ = [
    "risk_review",
]
