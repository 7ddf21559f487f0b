"""
AI Governance Shared Library
============================

Common utilities, configuration and abstractions used by the review service.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - database: PostgreSQL client (SQLAlchemy async)
    - llm: LLM provider abstraction (Claude, Ollama)
    - models: Shared Pydantic models

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "AI Governance Team"

from shared.config import settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
