from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.fees.router import router as fees_router
from app.api.v1.students.router import router as students_router
from app.api.v1.transfer_certificates.router import router as transfer_certificates_router
from app.core.config import settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="Fees and Transfer Certificates")

    # CORS: allow the admission and TC screens to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fees_router)
    app.include_router(students_router)
    app.include_router(transfer_certificates_router)

    return app


app = create_app()
