import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.core.config import settings
from shared.core.database import Base, facility_engine
from shared.helpers.exception_handler import setup_exception_handlers
from shared.wrappers.response_wrapper import JsonResponseMiddleware

from .models.financials import invoices
from .models.leasing_tenants import leases, tenants
from .models.maintenance_assets import work_order
from .models.parking_access import parking_assignments
from .models.space_sites import buildings, units
from .models.system import notifications
from .router.financials import invoice_router
from .router.parking_access import parking_assignment_router
from .router.space_sites import rent_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s]: %(message)s"
)

app = FastAPI(title="Property Service API")

# Create all tables
Base.metadata.create_all(bind=facility_engine)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(JsonResponseMiddleware)
setup_exception_handlers(app)

# Include routers
app.include_router(rent_router.router)
app.include_router(invoice_router.router)
app.include_router(parking_assignment_router.router)


@app.get("/health")
def health():
    return {"status": "ok"}
