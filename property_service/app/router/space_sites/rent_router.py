from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.core.auth import allow_admin, validate_current_token
from shared.core.database import get_facility_db as get_db
from shared.core.schemas import UserToken

from ...crud.space_sites import rent_bulk_update_crud as crud
from ...schemas.space_sites.rent_policy_schemas import (
    BulkRentUpdateRequest, BulkRentUpdateResponse, RentResolveRequest, RentResolveResponse
)

router = APIRouter(
    prefix="/api/rent",
    tags=["rent"],
    dependencies=[Depends(validate_current_token)]
)


# organization staff only
@router.post("/bulk-update", response_model=BulkRentUpdateResponse)
def bulk_update_rent(
        request: BulkRentUpdateRequest,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(allow_admin)):
    return crud.bulk_update_rent(db, current_user, request)


@router.post("/resolve", response_model=RentResolveResponse)
def resolve_unit_rent(
        request: RentResolveRequest,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.resolve_unit_rent(db, current_user, request)
