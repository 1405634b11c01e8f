"""Form controller for the checklist.

``FormController`` owns the mutable state of one checklist session and is the
only thing that changes it. The item list is cloned from the baseline when the
controller is created and again after a successful submission. Derived flags
(discrepancy, submittability) are computed on every read.

The form moves EDITING -> PREVIEWING -> SUBMITTING and back to EDITING on
success; a failed submission returns to PREVIEWING with all data kept so the
teacher can retry.

Copyright (c) Bryn Gwalad 2025
"""

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from api.models import HistoryEntry, InventoryItem, SubmissionRecord, SubmissionStatus
from utils import checklist
from utils.checklist import ValidationFailure
from utils.receipt import RenderedReceipt, build_file_name, download_name, render_receipt
from utils.storage import Storage, StorageError

logger = logging.getLogger("checklist.controller")

SUBMIT_SUCCESS_MESSAGE = "Checklist enviado e PDF gerado com sucesso!"
SUBMIT_ERROR_MESSAGE = "Erro ao processar o checklist."
HISTORY_ERROR_MESSAGE = "Erro ao carregar o histórico."


class View(str, Enum):
    FORM = "form"
    HISTORY = "history"


class FormState(str, Enum):
    EDITING = "editing"
    PREVIEWING = "previewing"
    SUBMITTING = "submitting"


class Notice:
    """A dismissible message shown to the teacher."""

    def __init__(self, message: str, is_error: bool = False):
        self.message = message
        self.is_error = is_error

    def __repr__(self) -> str:
        return f"Notice({self.message!r}, is_error={self.is_error})"


class FormController:
    def __init__(
        self,
        storage: Storage,
        renderer: Callable[[SubmissionRecord], RenderedReceipt] = render_receipt,
        clock: Callable[[], datetime] = datetime.now,
        baseline: Iterable[InventoryItem] = checklist.BASELINE_ITEMS,
        download_dir=None,
    ):
        self.storage = storage
        self.renderer = renderer
        self.clock = clock
        self.baseline = tuple(baseline)
        self.download_dir = Path(download_dir) if download_dir else None

        self.view = View.FORM
        self.history: List[HistoryEntry] = []
        self.notice: Optional[Notice] = None
        self._reset_form()

    def _reset_form(self) -> None:
        self.teacher_name = ""
        self.usage_start_time = ""
        self.usage_end_time = ""
        self.items = checklist.baseline_items(self.baseline)
        self.justification = ""
        self.signature: Optional[str] = None
        self.state = FormState.EDITING
        self.record: Optional[SubmissionRecord] = None
        self.preview_receipt: Optional[RenderedReceipt] = None

    # edits

    def set_teacher_name(self, name: str) -> None:
        self.teacher_name = name or ""

    def set_usage_period(self, start: str = "", end: str = "") -> None:
        self.usage_start_time = start or ""
        self.usage_end_time = end or ""

    def set_justification(self, text: str) -> None:
        self.justification = text or ""

    def set_signature(self, signature: Optional[str]) -> None:
        self.signature = signature or None

    def clear_signature(self) -> None:
        self.signature = None

    def item(self, item_id: str) -> InventoryItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise KeyError(item_id)

    def adjust_quantity(self, item_id: str, delta: int) -> InventoryItem:
        return checklist.adjust_quantity(self.item(item_id), delta)

    def set_quantity(self, item_id: str, raw) -> InventoryItem:
        return checklist.set_quantity(self.item(item_id), raw)

    # derived

    @property
    def has_discrepancy(self) -> bool:
        return checklist.has_discrepancy(self.items)

    @property
    def is_submittable(self) -> bool:
        return checklist.is_submittable(self.teacher_name, self.signature, self.has_discrepancy, self.justification)

    @property
    def validation_message(self) -> Optional[str]:
        return checklist.validation_message(self.teacher_name, self.signature, self.has_discrepancy, self.justification)

    # preview / submit

    def build_record(self) -> SubmissionRecord:
        now = self.clock()
        return SubmissionRecord(
            id=str(int(now.timestamp() * 1000)),
            teacher_name=self.teacher_name,
            date=now,
            usage_start_time=self.usage_start_time or None,
            usage_end_time=self.usage_end_time or None,
            items=checklist.snapshot_items(self.items),
            justification=self.justification if self.has_discrepancy else None,
            signature=self.signature,
            status=SubmissionStatus.COMPLETED,
        )

    def preview(self) -> RenderedReceipt:
        """Snapshot the form and render the receipt for review.

        Raises ValidationFailure when the form is not submittable.
        """
        if self.state == FormState.SUBMITTING:
            raise ValidationFailure("Submission in progress")
        message = self.validation_message
        if message is not None:
            raise ValidationFailure(message)
        self.record = self.build_record()
        self.preview_receipt = self.renderer(self.record)
        self.state = FormState.PREVIEWING
        return self.preview_receipt

    def cancel_preview(self) -> None:
        if self.state != FormState.PREVIEWING:
            return
        self.record = None
        self.preview_receipt = None
        self.state = FormState.EDITING

    def submit(self) -> bool:
        """Persist the previewed receipt.

        Returns False without doing anything when no preview exists or a
        submission is already in flight.
        """
        if self.state != FormState.PREVIEWING or self.record is None or self.preview_receipt is None:
            return False
        self.state = FormState.SUBMITTING
        record = self.record
        receipt = self.preview_receipt
        file_name = build_file_name(record.teacher_name, self.clock())
        try:
            path = self.storage.persist(file_name, receipt.pdf_bytes)
        except StorageError:
            logger.exception("Failed to submit checklist %s", record.id)
            self.state = FormState.PREVIEWING
            self.notice = Notice(SUBMIT_ERROR_MESSAGE, is_error=True)
            return False
        except Exception:
            self.state = FormState.PREVIEWING
            raise
        logger.info("Checklist %s by %s stored at %s", record.id, record.teacher_name, path)

        if self.download_dir is not None:
            self._save_local_copy(record, receipt)

        self._reset_form()
        self.notice = Notice(SUBMIT_SUCCESS_MESSAGE)
        self.refresh_history(keep_notice=True)
        return True

    def _save_local_copy(self, record: SubmissionRecord, receipt: RenderedReceipt) -> None:
        target = self.download_dir / download_name(record.teacher_name)
        try:
            self.download_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(receipt.pdf_bytes)
        except OSError:
            # the stored copy is authoritative; a missing local copy is not fatal
            logger.warning("Could not write local copy %s", target)

    # history

    def refresh_history(self, keep_notice: bool = False) -> List[HistoryEntry]:
        try:
            self.history = self.storage.list_history()
        except StorageError:
            logger.exception("Failed to load history")
            if not keep_notice or self.notice is None:
                self.notice = Notice(HISTORY_ERROR_MESSAGE, is_error=True)
        return self.history

    def show_history(self) -> None:
        self.view = View.HISTORY
        self.refresh_history()

    def show_form(self) -> None:
        self.view = View.FORM

    def toggle_view(self) -> None:
        if self.view == View.FORM:
            self.show_history()
        else:
            self.show_form()

    def dismiss_notice(self) -> None:
        self.notice = None


