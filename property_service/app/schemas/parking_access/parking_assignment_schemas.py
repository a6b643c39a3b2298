from datetime import datetime
from decimal import Decimal
from uuid import UUID
from typing import Optional
from pydantic import BaseModel


class ParkingAssignmentOut(BaseModel):
    id: UUID
    org_id: UUID
    building_id: UUID
    parking_space_label: Optional[str] = None
    assignment_type: str
    tenant_id: Optional[UUID] = None
    visitor_log_id: Optional[UUID] = None
    vehicle_no: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    calculated_duration: Optional[int] = None
    billed_duration: Optional[int] = None
    billing_period: str
    rate: Decimal
    invoice_id: Optional[UUID] = None
    status: str

    model_config = {"from_attributes": True}


class EndParkingAssignmentRequest(BaseModel):
    end_date: Optional[datetime] = None
    generate_invoice: bool = True


class EndParkingAssignmentResponse(BaseModel):
    parking_assignment: ParkingAssignmentOut
    calculated_amount: Decimal
    invoice_generated: bool = False
    invoice_id: Optional[UUID] = None
    invoice_error: Optional[str] = None
