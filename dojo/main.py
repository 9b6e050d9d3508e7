from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dojo.api.v1.belt_gradings.router import router as belt_gradings_router
from dojo.api.v1.fee_configurations.router import router as fee_configurations_router
from dojo.api.v1.fees.router import router as fees_router
from dojo.api.v1.payment_preferences.router import router as payment_preferences_router
from dojo.core.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Dojo Fee Engine")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fee_configurations_router)
    app.include_router(payment_preferences_router)
    app.include_router(fees_router)
    app.include_router(belt_gradings_router)

    return app


app = create_app()
