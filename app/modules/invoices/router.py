from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.invoices.models import InvoiceStatus
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import InvoiceCreate, InvoiceOut, InvoiceList, InvoiceEnvelope

invoices_router = APIRouter(prefix="/invoices", tags=["Invoices"])


@invoices_router.post("/", response_model=InvoiceEnvelope, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """
    Facturar un pedido (cajero o admin)

    - **order_id**: pedido a facturar
    - **payment_method_id**: método de pago activo
    - **tip**: propina
    - **cash_amount**: efectivo recibido (requerido para pagos en efectivo)
    - **customer_data**: datos de facturación del cliente (opcional)

    El pedido queda PAGADO y la mesa libre. El correo con la factura se
    envía en segundo plano si el cliente tiene correo.
    """
    service = InvoiceService(db)
    data = service.create_invoice(invoice_data, auth_context)
    return {"success": True, "message": "Factura generada exitosamente", "data": data}


@invoices_router.get("/", response_model=InvoiceList)
def list_invoices(
    start_date: Optional[date] = Query(None, description="Desde (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Hasta, inclusive (YYYY-MM-DD)"),
    customer_nit: Optional[str] = Query(None, description="NIT/CC del cliente"),
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status", description="EMITIDA o ANULADA"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_staff())
):
    """Listar facturas, más recientes primero"""
    service = InvoiceService(db)
    return service.get_invoices(start_date, end_date, customer_nit, invoice_status, limit)


@invoices_router.get("/customer/{customer_id}", response_model=List[InvoiceOut])
def list_customer_invoices(
    customer_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Facturas de un cliente registrado (un cliente solo ve las suyas)"""
    service = InvoiceService(db)
    return service.get_customer_invoices(customer_id, auth_context)


@invoices_router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    service = InvoiceService(db)
    return service.get_invoice(invoice_id, auth_context)


@invoices_router.get("/{invoice_id}/pdf")
def download_invoice_pdf(
    invoice_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Descargar la tirilla de la factura en PDF"""
    service = InvoiceService(db)
    return service.get_invoice_pdf(invoice_id, auth_context)


@invoices_router.patch("/{invoice_id}/cancel")
def cancel_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role([UserRole.ADMIN]))
):
    """
    Anular una factura (solo admin)

    El pedido vuelve a PENDIENTE sin pagar; el stock no se repone.
    """
    service = InvoiceService(db)
    invoice = service.cancel_invoice(invoice_id, auth_context)
    return {"success": True, "message": "Factura anulada exitosamente", "data": invoice}
