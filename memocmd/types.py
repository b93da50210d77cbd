"""Core types shared across memocmd."""

from __future__ import annotations

import uuid
from typing import Hashable, TypeAlias

from pydantic import BaseModel

# ── ID Types ──────────────────────────────────────────────────────────────────

CommandId: TypeAlias = Hashable


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# ── Status Snapshots ─────────────────────────────────────────────────────────


class CommandStatus(BaseModel):
    """Point-in-time view of a managed command."""

    id: str
    command: str
    memoized: bool = False
    running: int = 0
    pending: int = 0
    completed_tokens: int = 0
