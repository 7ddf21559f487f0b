"""
Risk Review Service
===================

AI system intake and governance review service.

Features:
- Intake form drafts and submission
- Rule-based risk scoring with a narrative assessment
- Review workflow (start, approve, reject, request changes)
- SLA tracking and time-based escalation
- Audit trail and notifications

Port: 8010
"""

__version__ = "0.1.0"
