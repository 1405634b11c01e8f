"""Data models for the Checklist API.

This module defines the SQLModel models shared by the API, the receipt
renderer and the form controller: InventoryItem, SubmissionRecord and
HistoryEntry. None of them are tables; the storage area is a flat directory
of rendered documents.

Copyright (c) Bryn Gwalad 2025
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import Field, SQLModel


class ItemCategory(str, Enum):
    """Fixed set of equipment categories. Values are the display labels."""

    COMPUTERS = "COMPUTADORES"
    PERIPHERALS = "PERIFÉRICOS"
    CABLES = "CABOS"


class SubmissionStatus(str, Enum):
    # PENDING is reserved; the checklist flow only produces COMPLETED
    PENDING = "pending"
    COMPLETED = "completed"


class InventoryItem(SQLModel):
    """A piece of classroom equipment being counted.

    Attributes:
        id: identifier, unique within a submission
        name: display label
        category: one of ItemCategory
        expected_quantity: baseline count
        current_quantity: count found by the teacher, never negative
        is_complete: informational flag, not derived from the quantities
    """

    id: str
    name: str
    category: ItemCategory
    expected_quantity: int = Field(ge=0)
    current_quantity: int = Field(ge=0)
    is_complete: bool = True


class SubmissionRecord(SQLModel):
    """Snapshot of a checklist taken when the receipt is previewed.

    ``items`` is a copy of the working list so later edits on the form do not
    change a record that has already been rendered.
    """

    id: str
    teacher_name: str
    date: datetime
    usage_start_time: Optional[str] = None
    usage_end_time: Optional[str] = None
    items: List[InventoryItem] = Field(default_factory=list)
    justification: Optional[str] = None
    signature: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.COMPLETED


class HistoryEntry(SQLModel):
    """A stored receipt as seen by a directory listing."""

    name: str
    date: datetime


class SavePdfRequest(SQLModel):
    # fields are optional so a missing one is reported as a 400, not a 422
    fileName: Optional[str] = None
    pdfBase64: Optional[str] = None
