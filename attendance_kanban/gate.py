"""
Transition gate: decides whether a MoveIntent commits now or waits for a reason.

Which lanes need a reason is data (ReasonPolicy), not code. By default only
Excused does. Gated moves open the modal; confirm() validates the reason and
forwards the request, cancel() discards it.
"""
import asyncio
import logging
from typing import Callable, Optional

from .notify import Notifier
from .schema import ModalState, MoveIntent, ReasonPolicy, TransitionRequest, ValidationError

logger = logging.getLogger(__name__)


class TransitionGate:
    """Owns the reason modal and forwards approved moves to the committer."""

    def __init__(
        self,
        committer,
        notifier: Notifier,
        policy: Optional[ReasonPolicy] = None,
        on_cancel: Optional[Callable[[], None]] = None,
    ):
        self.committer = committer
        self.notifier = notifier
        self.policy = policy or ReasonPolicy()
        self.on_cancel = on_cancel
        self.modal = ModalState()

    async def submit(self, intent: MoveIntent) -> None:
        """Commit the move, or suspend it behind the modal if it needs a reason."""
        if self.policy.requires_reason(intent.to_status):
            self.modal.reset()
            self.modal.visible = True
            self.modal.pending_record_id = intent.record_id
            self.modal.pending_from_status = intent.from_status
            self.modal.pending_to_status = intent.to_status
            self.modal.pending_session = intent.session
            logger.info(
                "Move of %s to %s waits for a reason",
                intent.record_id, intent.to_status.value,
            )
            return

        await self.committer.commit(TransitionRequest.from_intent(intent))

    def update_reason_text(self, text: str) -> None:
        self.modal.reason_text = text or ""

    async def confirm(self) -> bool:
        """
        Validate the reason and commit the pending move.

        Returns False (modal left open) when the reason is blank or nothing is
        pending, True once the request has been handed to the committer.
        """
        if not self.modal.visible or self.modal.pending_record_id is None:
            logger.debug("confirm() without a pending move")
            return False

        request = TransitionRequest(
            record_id=self.modal.pending_record_id,
            from_status=self.modal.pending_from_status,
            to_status=self.modal.pending_to_status,
            reason=self.modal.reason_text,
            session=self.modal.pending_session,
        )
        try:
            request.validate(self.policy)
        except ValidationError as e:
            logger.info("Rejected move of %s: %s", request.record_id, e.message)
            self.notifier.error("Error", e.message)
            return False

        commit = asyncio.ensure_future(self.committer.commit(request))
        self.modal.reset()
        await commit
        return True

    def cancel(self) -> None:
        """Close the modal, drop the pending move, and clear gesture leftovers."""
        if self.modal.pending_record_id is not None:
            logger.info("Move of %s cancelled", self.modal.pending_record_id)
        self.modal.reset()
        if self.on_cancel is not None:
            self.on_cancel()
