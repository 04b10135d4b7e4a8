from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

from app.core.config import settings
from app.database.database import sync_engine, Base
from app.common.middleware import SecurityHeadersMiddleware

from app.modules.auth.router import auth_router
from app.modules.taxes.router import taxes_router
from app.modules.products.router import product_router
from app.modules.payment_methods.router import payment_methods_router
from app.modules.tables.router import tables_router
from app.modules.orders.router import orders_router
from app.modules.alerts.router import alerts_router
from app.modules.cash_desk.router import cash_desk_router
from app.modules.invoices.router import invoices_router
from app.modules.stats.router import stats_router

# Modelos sin router propio que deben existir en Base.metadata
import app.modules.email.models

logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

is_production = settings.ENVIRONMENT == "production"

app = FastAPI(
    title="Mesa360 API",
    description="Backend de punto de venta para restaurantes: pedidos de mesa, facturación y cuadre de caja",
    version="1.0.0",
    docs_url=None if is_production else "/docs",
    redoc_url=None if is_production else "/redoc"
)

app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Errores con bandera de éxito y mensaje legible"""
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error en la solicitud"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message, "detail": detail},
        headers=getattr(exc, "headers", None)
    )


app.include_router(auth_router, prefix="/auth", tags=["Auth"])
for router in (
    taxes_router,
    product_router,
    payment_methods_router,
    tables_router,
    orders_router,
    alerts_router,
    cash_desk_router,
    invoices_router,
    stats_router,
):
    app.include_router(router)

# Solo en desarrollo; en producción el esquema lo crea el despliegue
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=sync_engine)


@app.get("/")
async def read_root():
    return {"message": "Mesa360 API is running", "version": app.version, "environment": settings.ENVIRONMENT}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info(f"Mesa360 API iniciando (entorno {settings.ENVIRONMENT}, debug={settings.DEBUG})")
