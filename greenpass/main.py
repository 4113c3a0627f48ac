from contextlib import asynccontextmanager

from fastapi import FastAPI

from greenpass.core.cors import add_cors_middleware
from greenpass.core.email import init_resend
from greenpass.core.exception_handlers import register_exception_handlers
from greenpass.core.firebase import init_firebase
from greenpass.core.http import close_http_clients
from greenpass.core.logging import configure_logging
from greenpass.core.request_logging import add_request_logging_middleware
from greenpass.db.engine import init_db
from greenpass.payments.paypal import get_paypal_client
from greenpass.router import api_router

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_firebase()
    init_resend()
    init_db()
    yield
    # Cleanup HTTP clients; the cached PayPal client holds the closed one.
    await close_http_clients()
    get_paypal_client.cache_clear()


app = FastAPI(title="GreenPass Onboarding", version="0.1.0", lifespan=lifespan)

app.include_router(api_router)

add_request_logging_middleware(app)
add_cors_middleware(app)
register_exception_handlers(app)
