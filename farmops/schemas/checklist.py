"""Checklist step and automation schemas."""
from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Optional, Union


class StepBase(BaseModel):
    """Fields shared by every checklist step kind."""
    id: Optional[str] = Field(None, max_length=50)
    text: str = Field("", max_length=500)
    required: bool = False


class InstructionStep(StepBase):
    type: Literal["instruction"]


class NumberInputStep(StepBase):
    type: Literal["number-input"]
    label: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    default: Optional[float] = None
    unit: Optional[str] = None


class InventorySelectStep(StepBase):
    type: Literal["inventory-select"]
    inventory_category: Optional[str] = None  # seeds, nutrients, supplies, equipment


class SystemAssignmentStep(StepBase):
    type: Literal["system-assignment"]
    system_type: Optional[str] = None
    auto_suggest: bool = False


class DataCaptureStep(StepBase):
    type: Literal["data-capture"]
    label: str = ""
    data_type: Literal["number", "text", "select"] = "text"
    options: Optional[List[str]] = None


class PhotoStep(StepBase):
    type: Literal["photo"]
    min_photos: int = Field(1, ge=0)


ChecklistStep = Annotated[
    Union[
        InstructionStep,
        NumberInputStep,
        InventorySelectStep,
        SystemAssignmentStep,
        DataCaptureStep,
        PhotoStep,
    ],
    Field(discriminator="type"),
]


class AutomationSettings(BaseModel):
    """Automation toggles carried on a template."""
    generate_trays: bool = False
    tray_count: Optional[int] = Field(None, ge=0)
    crop_type: Optional[str] = None
    flow_stages: List[str] = Field(default_factory=list)
