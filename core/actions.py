"""Action execution: map a request onto open/delete calls over verified candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from core.classifier import NO_MATCH_REPLY, ActionKind, ActionPlanner, Classifier, PlannedAction
from core.errors import CollaboratorFailure, SeeqError
from sandbox.operations import OperationExecutor
from storage.contracts import HistoryRepo
from storage.models import Candidate, HistoryRecord

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Agent performed file operations"


@dataclass
class ActionOutcome:
    reply: str
    summary: str
    touched_paths: list[str] = field(default_factory=list)
    failed_paths: list[str] = field(default_factory=list)
    history: HistoryRecord | None = None


class ActionExecutor:
    """Run the planner's open/delete calls, restricted to the candidate set.

    The candidate paths are the only trust boundary between request text and
    the filesystem: a planned action whose path is not byte-identical to a
    candidate path is dropped before any OperationExecutor call. Every run
    writes one history record, including runs that touched nothing.
    """

    def __init__(
        self,
        operations: OperationExecutor,
        planner: ActionPlanner,
        classifier: Classifier,
        history: HistoryRepo,
    ):
        self.operations = operations
        self.planner = planner
        self.classifier = classifier
        self.history = history

    async def execute(self, request_text: str, candidates: list[Candidate]) -> ActionOutcome:
        touched: list[str] = []
        failed: list[str] = []

        if not candidates:
            reply = NO_MATCH_REPLY
        else:
            plan = await self.planner.plan(request_text, candidates)
            allowed = {c.path for c in candidates}
            for action in _unique(plan.actions):
                if action.path not in allowed:
                    logger.warning("Planner named a path outside the candidate set: %r", action.path)
                    continue
                try:
                    await self._apply(action)
                except SeeqError as e:
                    logger.warning("%s failed for %s: %s", action.action.value, action.path, e)
                    failed.append(action.path)
                    continue
                touched.append(action.path)
            reply = _compose_reply(plan.reply, touched, failed)

        summary = await self._summarize(reply) if touched or failed else FALLBACK_SUMMARY
        record = await self.history.append(summary, touched)
        logger.info("Agent touched %d file(s); %d failed", len(touched), len(failed))
        return ActionOutcome(
            reply=reply,
            summary=record.description,
            touched_paths=touched,
            failed_paths=failed,
            history=record,
        )

    async def _apply(self, action: PlannedAction) -> None:
        if action.action is ActionKind.OPEN:
            await self.operations.open(action.path)
        elif action.action is ActionKind.DELETE:
            await self.operations.delete(action.path)
        else:
            raise ValueError(f"Unsupported action: {action.action}")

    async def _summarize(self, reply: str) -> str:
        try:
            return await self.classifier.summarize(reply)
        except CollaboratorFailure as e:
            logger.warning("Error generating history description: %s", e)
            return FALLBACK_SUMMARY


def _unique(actions: list[PlannedAction]) -> list[PlannedAction]:
    seen: dict[PlannedAction, None] = {}
    for action in actions:
        seen.setdefault(action, None)
    return list(seen)


def _compose_reply(planner_reply: str, touched: list[str], failed: list[str]) -> str:
    if not touched and not failed:
        return planner_reply or NO_MATCH_REPLY
    parts = [planner_reply] if planner_reply else []
    if not planner_reply and touched:
        parts.append("Done: " + ", ".join(touched))
    if failed:
        parts.append("Could not complete the operation for: " + ", ".join(failed))
    return "\n".join(parts)
