# src/goalcore/autonomous/approval.py
"""
Approval gate for goals whose tier requires user consent.

An ``ApprovalRequest`` is opened per goal.  The user answers with
``approve``/``reject``; if nobody answers within ``timeout_seconds`` the
configured ``timeout_policy`` decides (``"approve"`` auto-accepts,
``"reject"`` cancels).  The timeout runs as an ``asyncio.Task`` that is
cancelled as soon as the user answers.

Every decision, explicit or timed out, is handed to the ``on_decision``
callback exactly once.

Example:
    gate = ApprovalGate(timeout_seconds=60, on_decision=lifecycle.apply_approval)
    request = await gate.open(goal, message)
    ...
    await gate.approve(goal.id)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .goals import _new_id, utcnow

logger = logging.getLogger(__name__)


class ApprovalDecision(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class ApprovalRequest:
    """A pending or decided request for user consent on one goal."""

    goal_id: str
    message: str
    timeout_seconds: float
    id: str = field(default_factory=lambda: _new_id("approval"))
    created_at: datetime = field(default_factory=utcnow)
    decided_at: Optional[datetime] = None
    decision: Optional[ApprovalDecision] = None
    decided_by: Optional[str] = None
    """``"user"`` or ``"timeout"`` once decided."""

    @property
    def is_pending(self) -> bool:
        return self.decision is None

    @property
    def approved(self) -> bool:
        return self.decision == ApprovalDecision.APPROVED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "goal_id": self.goal_id,
            "message": self.message,
            "timeout_seconds": self.timeout_seconds,
            "created_at": self.created_at.isoformat(),
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "decision": self.decision.value if self.decision else None,
            "decided_by": self.decided_by,
        }


DecisionCallback = Callable[[ApprovalRequest], Awaitable[None]]


class ApprovalGate:
    """
    Tracks approval requests and their timeout timers.

    At most one pending request exists per goal; opening a second one for
    the same goal returns the existing request.
    """

    def __init__(
        self,
        timeout_seconds: float = 60.0,
        timeout_policy: str = "approve",
        on_decision: Optional[DecisionCallback] = None,
    ):
        if timeout_policy not in ("approve", "reject"):
            raise ValueError(f"timeout_policy must be 'approve' or 'reject', got {timeout_policy!r}")
        self.timeout_seconds = timeout_seconds
        self.timeout_policy = timeout_policy
        self.on_decision = on_decision

        self._requests: Dict[str, ApprovalRequest] = {}
        self._timers: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_config(cls, config, on_decision: Optional[DecisionCallback] = None) -> "ApprovalGate":
        return cls(
            timeout_seconds=config.timeout_seconds,
            timeout_policy=config.timeout_policy,
            on_decision=on_decision,
        )

    # ---- opening ----

    async def open(self, goal_id: str, message: str) -> ApprovalRequest:
        existing = self._requests.get(goal_id)
        if existing is not None and existing.is_pending:
            return existing

        request = ApprovalRequest(goal_id=goal_id, message=message, timeout_seconds=self.timeout_seconds)
        self._requests[goal_id] = request
        self._timers[goal_id] = asyncio.create_task(
            self._expire(goal_id, request.id), name=f"approval-timeout-{goal_id}"
        )
        logger.info(f"Approval requested for goal {goal_id} (timeout {self.timeout_seconds}s)")
        return request

    async def _expire(self, goal_id: str, request_id: str) -> None:
        await asyncio.sleep(self.timeout_seconds)
        # Drop our own handle first so deciding never cancels the running task.
        self._timers.pop(goal_id, None)
        request = self._requests.get(goal_id)
        if request is None or request.id != request_id or not request.is_pending:
            return
        decision = (
            ApprovalDecision.APPROVED if self.timeout_policy == "approve" else ApprovalDecision.REJECTED
        )
        logger.warning(
            f"Approval for goal {goal_id} timed out; applying policy '{self.timeout_policy}'"
        )
        await self._decide(request, decision, "timeout")

    # ---- responding ----

    async def approve(self, goal_id: str) -> Optional[ApprovalRequest]:
        return await self._respond(goal_id, ApprovalDecision.APPROVED)

    async def reject(self, goal_id: str) -> Optional[ApprovalRequest]:
        return await self._respond(goal_id, ApprovalDecision.REJECTED)

    async def _respond(self, goal_id: str, decision: ApprovalDecision) -> Optional[ApprovalRequest]:
        request = self._requests.get(goal_id)
        if request is None or not request.is_pending:
            logger.debug(f"No pending approval request for goal {goal_id}")
            return None
        timer = self._timers.pop(goal_id, None)
        if timer is not None:
            timer.cancel()
        await self._decide(request, decision, "user")
        return request

    async def _decide(self, request: ApprovalRequest, decision: ApprovalDecision, decided_by: str) -> None:
        request.decision = decision
        request.decided_by = decided_by
        request.decided_at = utcnow()
        logger.info(f"Goal {request.goal_id} {decision.value} by {decided_by}")
        if self.on_decision is None:
            return
        try:
            await self.on_decision(request)
        except Exception as e:
            if decided_by == "user":
                raise
            logger.error(f"Applying timed-out approval for goal {request.goal_id} failed: {e}", exc_info=True)

    # ---- queries ----

    def has_pending(self, goal_id: str) -> bool:
        request = self._requests.get(goal_id)
        return request is not None and request.is_pending

    def get_request(self, goal_id: str) -> Optional[ApprovalRequest]:
        return self._requests.get(goal_id)

    def get_pending(self) -> List[ApprovalRequest]:
        return [r for r in self._requests.values() if r.is_pending]

    def clear_decided(self) -> int:
        decided = [gid for gid, r in self._requests.items() if not r.is_pending]
        for gid in decided:
            del self._requests[gid]
        return len(decided)

    async def close(self) -> None:
        """Cancel every outstanding timer; pending requests stay undecided."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    def get_status(self) -> Dict[str, Any]:
        return {
            "pending_count": len(self.get_pending()),
            "total_requests": len(self._requests),
            "timeout_seconds": self.timeout_seconds,
            "timeout_policy": self.timeout_policy,
        }
