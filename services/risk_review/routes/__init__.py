"""
Risk Review Routes
==================

API route handlers for the Risk Review Service.
"""

from services.risk_review.routes import assessments, reviews, submissions


__all__ = ["assessments", "reviews", "submissions"]
