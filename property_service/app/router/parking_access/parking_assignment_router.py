from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.core.auth import validate_current_token
from shared.core.database import get_facility_db as get_db
from shared.core.schemas import UserToken

from ...crud.parking_access import parking_assignment_crud as crud
from ...schemas.parking_access.parking_assignment_schemas import (
    EndParkingAssignmentRequest, EndParkingAssignmentResponse
)

router = APIRouter(
    prefix="/api/parking/assignments",
    tags=["parking assignments"],
    dependencies=[Depends(validate_current_token)]
)


@router.post("/{assignment_id}/end", response_model=EndParkingAssignmentResponse)
def end_parking_assignment(
        assignment_id: UUID,
        request: EndParkingAssignmentRequest = EndParkingAssignmentRequest(),
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.end_parking_assignment(db, current_user, assignment_id, request)
