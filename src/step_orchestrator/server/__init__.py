"""FastAPI server adapter for step-orchestrator.

Design intent:
- Keep engine logic in `step_orchestrator.workflow.*`
- Keep server-specific concerns (routing, async execution tracking) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from step_orchestrator.server.app import create_app
