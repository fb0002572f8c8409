"""Payme Service FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from shared.auth import CurrentUser, require_user
from shared.config import Settings
from shared.database import Database

from .amounts import AmountConverter
from .dispatcher import ProtocolDispatcher
from .ledger import TransactionLedger
from .merchant import MerchantAuthenticator
from .schemas import OrderPaymentStatus
from .statement import StatementExporter

logger = logging.getLogger(__name__)


def create_app(settings: Settings) -> FastAPI:
    """Build the application. Components are wired in the lifespan, not at import."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle manager for the application."""
        # Startup
        logger.info("Starting Payme Service...")

        database = Database(settings.database_url, echo=settings.database_echo)

        # Import models to register them with Base
        from . import models  # noqa: F401

        await database.create_tables()

        amounts = AmountConverter(settings.payme_minor_unit_scale)
        ledger = TransactionLedger(database.session_factory, amounts)
        app.state.database = database
        app.state.ledger = ledger
        app.state.dispatcher = ProtocolDispatcher(
            authenticator=MerchantAuthenticator(
                settings.payme_merchant_id, settings.payme_secret_key
            ),
            ledger=ledger,
            statements=StatementExporter(database.session_factory, amounts),
            account_field=settings.payme_account_field,
        )

        if not settings.payme_merchant_id:
            logger.warning("PAYME_MERCHANT_ID is not set, only the legacy login is accepted")

        logger.info("Payme Service started successfully")

        yield

        # Shutdown
        logger.info("Shutting down Payme Service...")
        await database.close()

    app = FastAPI(title="Payme Service", lifespan=lifespan)

    def get_dispatcher(request: Request) -> ProtocolDispatcher:
        return request.app.state.dispatcher

    def get_ledger(request: Request) -> TransactionLedger:
        return request.app.state.ledger

    # API Endpoints
    @app.post("/api/payments/payme/callback")
    async def payme_callback(
        request: Request,
        dispatcher: ProtocolDispatcher = Depends(get_dispatcher),
    ):
        """Payme merchant API. Always answers 200; errors travel in the body."""
        body = await request.body()
        authorization: Optional[str] = request.headers.get("authorization")
        return JSONResponse(await dispatcher.dispatch(body, authorization))

    @app.get("/api/payments/payme/status/{order_id}", response_model=OrderPaymentStatus)
    async def payment_status(
        order_id: int,
        user: CurrentUser = Depends(require_user),
        ledger: TransactionLedger = Depends(get_ledger),
    ):
        """Get payment status of an order. Owners and admins only."""
        status = await ledger.get_order_payment_status(order_id)
        if status is None:
            raise HTTPException(status_code=404, detail="Order not found")
        if not user.is_admin and status.user_id != user.id:
            logger.warning(f"User {user.id} denied payment status of order {order_id}")
            raise HTTPException(status_code=403, detail="Access denied")
        return status

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": settings.service_name}

    return app


# Settings
settings = Settings(service_name="payme-service", service_port=8010)

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.service_port)
