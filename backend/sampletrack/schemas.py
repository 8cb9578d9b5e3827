from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class ReleaseRequest(BaseModel):
    barcodes: List[str] = Field(default_factory=list)
    destination: Optional[str] = None
    recipient: Optional[str] = None
    work_number: Optional[str] = None


class DestroyRequest(BaseModel):
    barcodes: List[str] = Field(default_factory=list)
    reason_id: Optional[int] = None
    work_number: Optional[str] = None


class CleanOutRequest(BaseModel):
    barcode: Optional[str] = None
    addresses: List[str] = Field(default_factory=list)
    work_number: Optional[str] = None


class SlotCopyContent(BaseModel):
    source_barcode: Optional[str] = None
    source_address: Optional[str] = None
    destination_address: Optional[str] = None
    concentration: Optional[str] = None


class SlotCopyDestination(BaseModel):
    # either the type of new labware to create, or the barcode of existing labware
    labware_type: Optional[str] = None
    barcode: Optional[str] = None
    contents: List[SlotCopyContent] = Field(default_factory=list)


class SlotCopyRequest(BaseModel):
    operation_type: Optional[str] = None
    work_number: Optional[str] = None
    destinations: List[SlotCopyDestination] = Field(default_factory=list)


class ReagentTransfer(BaseModel):
    reagent_plate_barcode: Optional[str] = None
    reagent_slot_address: Optional[str] = None
    destination_address: Optional[str] = None


class ReagentTransferRequest(BaseModel):
    operation_type: Optional[str] = None
    destination_barcode: Optional[str] = None
    plate_type: Optional[str] = None
    work_number: Optional[str] = None
    transfers: List[ReagentTransfer] = Field(default_factory=list)


class SampleOut(BaseModel):
    id: int
    tissue: str
    section: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class SlotOut(BaseModel):
    id: int
    address: str
    block_highest_section: Optional[int] = None
    samples: List[SampleOut] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class LabwareOut(BaseModel):
    id: int
    barcode: str
    labware_type: str
    state: str
    created_at: Optional[datetime] = None
    slots: List[SlotOut] = Field(default_factory=list)

    @classmethod
    def from_labware(cls, labware) -> "LabwareOut":
        return cls(
            id=labware.id,
            barcode=labware.barcode,
            labware_type=labware.labware_type.name,
            state=labware.state,
            created_at=labware.created_at,
            slots=[SlotOut.model_validate(slot) for slot in labware.slots],
        )


class ActionOut(BaseModel):
    id: int
    source_id: int
    destination_id: int
    sample_id: int
    source_sample_id: int
    model_config = ConfigDict(from_attributes=True)


class OperationOut(BaseModel):
    id: int
    operation_type: str
    user: str
    performed: datetime
    work_numbers: List[str] = Field(default_factory=list)
    actions: List[ActionOut] = Field(default_factory=list)

    @classmethod
    def from_operation(cls, operation) -> "OperationOut":
        return cls(
            id=operation.id,
            operation_type=operation.operation_type.name,
            user=operation.user.username,
            performed=operation.performed,
            work_numbers=[work.work_number for work in operation.works],
            actions=[ActionOut.model_validate(action) for action in operation.actions],
        )


class OperationResultOut(BaseModel):
    operations: List[OperationOut] = Field(default_factory=list)
    labware: List[LabwareOut] = Field(default_factory=list)
    unstored: Optional[bool] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result) -> "OperationResultOut":
        return cls(
            operations=[OperationOut.from_operation(op) for op in result.operations],
            labware=[LabwareOut.from_labware(lw) for lw in result.labware],
            unstored=result.unstored,
            warnings=list(result.warnings),
        )


class NextSectionOut(BaseModel):
    slot_id: int
    section: int


class CleanedOutAddressesOut(BaseModel):
    barcode: str
    addresses: List[str] = Field(default_factory=list)


class ReferenceDataCreate(BaseModel):
    value: str


class ReferenceDataEnable(BaseModel):
    value: str
    enabled: bool


class ReferenceDataOut(BaseModel):
    id: int
    value: str
    enabled: bool
