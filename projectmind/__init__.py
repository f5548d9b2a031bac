"""
ProjectMind assistant core.

Orchestration layer between a chat UI and interchangeable LLM providers:
provider routing, conversation context, and structured task actions.
"""

__version__ = "1.0.0"
