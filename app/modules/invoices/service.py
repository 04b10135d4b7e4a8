"""
Facturación de pedidos (checkout).

La factura, el cierre del pedido, la liberación de la mesa y el evento de
correo se confirman en una sola transacción. El descuento de stock y las
alertas de stock mínimo corren después del commit, cada uno aislado: un
fallo se registra en el log y no revierte la factura.
"""
import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.modules.auth.models import User
from app.modules.auth.schemas import AuthContext
from app.modules.alerts.service import ProductAlertService
from app.modules.cash_desk.models import Cuadre, CuadreStatus
from app.modules.email.models import OutboxEventType
from app.modules.email.outbox import record_event, dispatch_events
from app.modules.invoices.models import Invoice, InvoiceLineItem, InvoiceSequence, InvoiceStatus
from app.modules.invoices.pdf import invoice_pdf_service
from app.modules.invoices.schemas import InvoiceCreate, InvoiceCustomerData
from app.modules.orders.models import Order, OrderStatus, OrderPaymentStatus
from app.modules.orders.service import shape_order
from app.modules.payment_methods.models import PaymentMethod
from app.modules.payment_methods.service import PaymentMethodService
from app.modules.products.service import decrement_stock
from app.modules.tables.service import TableOccupancyService
from app.modules.taxes.calculator import TaxCalculator, to_decimal

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
DEFAULT_INVOICE_LIMIT = 50


def _cents(value) -> Decimal:
    return to_decimal(value).quantize(CENTS)


def format_invoice_number(prefix: str, number: int) -> str:
    return f"{prefix}{number:0{settings.INVOICE_NUMBER_PADDING}d}"


# Postgres nombra la restricción; SQLite nombra tabla.columna
ORDER_CONFLICT_MARKERS = ("uq_invoice_order", "invoices.order_id")


def invoice_conflict_detail(error: IntegrityError) -> str:
    """Mensaje 409 según la restricción única que perdió la carrera"""
    message = str(error.orig) if error.orig is not None else str(error)
    if any(marker in message for marker in ORDER_CONFLICT_MARKERS):
        return "El pedido ya tiene una factura"
    return "Conflicto al asignar el consecutivo de la factura, intente de nuevo"


def shape_invoice(invoice: Invoice) -> dict:
    return {
        "id": invoice.id,
        "invoice_number": invoice.number,
        "status": invoice.status,
        "order_id": invoice.order_id,
        "cuadre_id": invoice.cuadre_id,
        "cashier_user_id": invoice.cashier_user_id,
        "payment_method": {
            "id": invoice.payment_method_id,
            "name": invoice.payment_method_display,
            "raw_name": invoice.payment_method_name,
            "category": invoice.payment_category,
        },
        "payment_type": invoice.payment_type,
        "is_electronic": bool(invoice.is_electronic),
        "totals": {
            "subtotal": to_decimal(invoice.subtotal),
            "tax": to_decimal(invoice.tax),
            "total": to_decimal(invoice.total),
        },
        "tip": to_decimal(invoice.tip),
        "total_with_tip": to_decimal(invoice.total_with_tip),
        "amount": to_decimal(invoice.amount_received),
        "change": to_decimal(invoice.change),
        "customer": {
            "user_id": invoice.customer_user_id,
            "name": invoice.customer_name,
            "nit": invoice.customer_nit,
            "email": invoice.customer_email,
            "phone": invoice.customer_phone,
            "address": invoice.customer_address,
        },
        "issuer": {
            "name": invoice.issuer_name,
            "nit": invoice.issuer_nit,
            "email": invoice.issuer_email,
            "phone": invoice.issuer_phone,
            "address": invoice.issuer_address,
        },
        "items": [
            {
                "product_id": line.product_id,
                "description": line.description,
                "note": line.note,
                "quantity": line.quantity,
                "unit_price": to_decimal(line.unit_price),
                "original_unit_price": to_decimal(line.original_unit_price),
                "discount": line.discount,
                "tax_rate": to_decimal(line.tax_rate),
                "tax_regimen": line.tax_regimen,
                "subtotal": to_decimal(line.subtotal),
                "tax_amount": to_decimal(line.tax_amount),
                "total": to_decimal(line.total),
            }
            for line in invoice.line_items
        ],
        "created_at": invoice.created_at,
        "cancelled_at": invoice.cancelled_at,
    }


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db
        self.tables = TableOccupancyService(db)

    def get_invoice_or_404(self, invoice_id: int) -> Invoice:
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Factura no encontrada"
            )
        return invoice

    def _check_owner(self, invoice: Invoice, actor: AuthContext) -> None:
        if not actor.is_staff and invoice.customer_user_id != actor.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes acceso a esta factura"
            )

    # ----- checkout -----

    def next_invoice_number(self) -> str:
        """
        Incrementar el consecutivo de facturas bajo bloqueo de fila.

        El bloqueo se mantiene hasta el commit de la factura, así dos
        checkouts simultáneos nunca obtienen el mismo número.
        """
        prefix = settings.INVOICE_PREFIX
        sequence = self.db.query(InvoiceSequence).filter(
            InvoiceSequence.prefix == prefix
        ).with_for_update().first()

        if not sequence:
            sequence = InvoiceSequence(prefix=prefix, current_number=0)
            self.db.add(sequence)
            self.db.flush()

        sequence.current_number += 1
        sequence.updated_at = datetime.utcnow()
        return format_invoice_number(prefix, sequence.current_number)

    def _resolve_customer(self, order: Order, customer_data: Optional[InvoiceCustomerData]) -> dict:
        """
        Datos del cliente copiados en la factura.

        Prioridad: datos enviados > cliente del pedido > usuario vinculado.
        Lo que falte se completa desde el usuario vinculado.
        """
        default_name = settings.DEFAULT_CUSTOMER_NAME
        default_nit = settings.DEFAULT_CUSTOMER_NIT

        user_id = (customer_data.user_id if customer_data else None) or order.customer_user_id
        linked_user = None
        if user_id:
            linked_user = self.db.query(User).filter(User.id == user_id).first()
            if not linked_user:
                user_id = None

        if customer_data and customer_data.name:
            customer = {
                "user_id": user_id,
                "name": customer_data.name,
                "nit": customer_data.nit or default_nit,
                "email": customer_data.email or None,
                "phone": customer_data.phone or None,
                "address": customer_data.address or None,
            }
        else:
            customer = {
                "user_id": user_id,
                "name": order.customer_name or default_name,
                "nit": default_nit,
                "email": None,
                "phone": order.customer_phone or None,
                "address": None,
            }

        if linked_user:
            if not customer["email"]:
                customer["email"] = linked_user.email
            if not customer["phone"]:
                customer["phone"] = linked_user.phone
            if not customer["address"]:
                customer["address"] = linked_user.address
            if customer["name"] == default_name and linked_user.name:
                customer["name"] = linked_user.name
            if customer["nit"] == default_nit and linked_user.nit:
                customer["nit"] = linked_user.nit
        return customer

    def _build_lines(self, order: Order):
        """Líneas de factura desde las filas del pedido y totales redondeados"""
        line_items = []
        calculations = []
        for position, item in enumerate(order.items):
            original = item.original_price if item.original_price is not None else item.unit_price
            unit_price = item.unit_price
            if item.discount:
                unit_price = TaxCalculator.discounted_unit_price(
                    original, item.tax_rate, item.discount, item.unit_price
                )
            calc = TaxCalculator.calculate_line(unit_price, item.quantity, item.tax_rate, original)
            calculations.append(calc)
            line_items.append(InvoiceLineItem(
                product_id=item.product_id,
                position=position,
                description=item.display_name,
                note=item.note,
                quantity=calc.quantity,
                unit_price=_cents(calc.unit_price),
                original_unit_price=_cents(calc.original_unit_price),
                discount_id=item.discount_id,
                discount_name=item.discount_name,
                discount_type=item.discount_type,
                discount_value=item.discount_value,
                tax_rate=calc.tax_rate,
                tax_regimen=item.tax_regimen,
                subtotal=_cents(calc.subtotal),
                tax_amount=_cents(calc.tax_amount),
                total=_cents(calc.total),
            ))
        totals = TaxCalculator.calculate_totals(calculations, order.stored_bills)
        return line_items, totals

    def _active_cuadre_id(self, actor: AuthContext) -> Optional[int]:
        """
        Cuadre abierto del cajero; si no tiene, el cuadre abierto del local.

        La fila queda bloqueada hasta el commit de la factura: un cierre
        concurrente espera y suma esta venta, o ya cerró y el cuadre no se
        vuelve a leer como ABIERTO.
        """
        query = self.db.query(Cuadre).filter(
            Cuadre.status == CuadreStatus.ABIERTO
        ).with_for_update().populate_existing()
        owned = query.filter(Cuadre.opened_by == actor.user_id).order_by(Cuadre.opened_at.desc()).first()
        if owned:
            return owned.id
        fallback = query.order_by(Cuadre.opened_at.desc()).first()
        return fallback.id if fallback else None

    def _resolve_payment_method(self, payment_method_id: int) -> PaymentMethod:
        method = PaymentMethodService(self.db).resolve_payment_method(payment_method_id)
        if not method:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Método de pago inválido"
            )
        if not method.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El método de pago no está activo"
            )
        return method

    def create_invoice(self, data: InvoiceCreate, actor: AuthContext) -> dict:
        """
        Facturar un pedido.

        Validaciones (en orden, la primera que falle responde):
        campos requeridos, pedido existente, pedido sin factura, rol de
        personal, método de pago activo y efectivo suficiente.
        """
        if not data.order_id or not data.payment_method_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Faltan campos requeridos"
            )

        order = self.db.query(Order).filter(Order.id == data.order_id).first()
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Pedido no encontrado"
            )
        if order.invoice is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El pedido ya tiene una factura"
            )
        if not actor.is_staff:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Solo cajeros pueden generar facturas"
            )

        method = self._resolve_payment_method(data.payment_method_id)

        line_items, totals = self._build_lines(order)
        tip = to_decimal(data.tip)
        total_with_tip = totals.total + tip

        if method.is_cash:
            if data.cash_amount is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Monto en efectivo requerido"
                )
            if data.cash_amount < total_with_tip:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Monto insuficiente"
                )
            amount_received = to_decimal(data.cash_amount)
            change = amount_received - total_with_tip
        else:
            amount_received = total_with_tip
            change = Decimal("0")

        payment_type = data.payment_type or ("CONTADO" if method.is_cash else "ELECTRONICO")

        try:
            customer = self._resolve_customer(order, data.customer_data)
            issuer = settings.issuer

            invoice = Invoice(
                number=self.next_invoice_number(),
                status=InvoiceStatus.EMITIDA,
                order_id=order.id,
                cuadre_id=self._active_cuadre_id(actor),
                cashier_user_id=actor.user_id,
                payment_method_id=method.id,
                issuer_name=issuer["name"],
                issuer_nit=issuer["nit"],
                issuer_address=issuer["address"] or None,
                issuer_phone=issuer["phone"] or None,
                issuer_email=issuer["email"] or None,
                customer_user_id=customer["user_id"],
                customer_name=customer["name"],
                customer_nit=customer["nit"],
                customer_email=customer["email"],
                customer_phone=customer["phone"],
                customer_address=customer["address"],
                payment_method_name=method.name,
                payment_category=method.category,
                payment_type=payment_type,
                is_electronic=data.is_electronic,
                subtotal=totals.subtotal,
                tax=totals.tax,
                total=totals.total,
                tip=tip,
                total_with_tip=total_with_tip,
                amount_received=amount_received,
                change=change,
                line_items=line_items,
            )
            self.db.add(invoice)
            self.db.flush()

            order.status = OrderStatus.PAGADO
            order.payment_status = OrderPaymentStatus.PAGADO
            order.cashier_user_id = actor.user_id
            if customer["user_id"] and not order.customer_user_id:
                order.customer_user_id = customer["user_id"]
            self.tables.release_table(order)

            event = record_event(self.db, OutboxEventType.INVOICE_ISSUED, {"invoice_id": invoice.id})
            self.db.commit()

        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=invoice_conflict_detail(e)
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creando factura para pedido {data.order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno del servidor"
            )

        invoice_id = invoice.id
        logger.info(
            f"Factura {invoice.number} creada para pedido {order.id} por usuario {actor.user_id} "
            f"(total {invoice.total}, propina {invoice.tip}, cuadre {invoice.cuadre_id})"
        )

        self._apply_stock(invoice_id)
        dispatch_events([event.id])

        invoice = self.get_invoice_or_404(invoice_id)
        self.db.refresh(order)
        return {"invoice": shape_invoice(invoice), "order": shape_order(order)}

    def _apply_stock(self, invoice_id: int) -> None:
        """Descontar stock y reevaluar alertas por producto, cada uno aislado"""
        quantities = OrderedDict()
        lines = self.db.query(InvoiceLineItem).filter(InvoiceLineItem.invoice_id == invoice_id).all()
        for line in lines:
            if line.product_id:
                quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

        for product_id, quantity in quantities.items():
            try:
                product = decrement_stock(self.db, product_id, quantity)
            except Exception as e:
                self.db.rollback()
                logger.error(f"Error descontando stock del producto {product_id} (factura {invoice_id}): {str(e)}")
                continue
            if product is None:
                continue
            try:
                ProductAlertService(self.db).evaluate_low_stock(product)
            except Exception as e:
                self.db.rollback()
                logger.error(f"Error evaluando alerta de stock del producto {product_id}: {str(e)}")

    # ----- consultas -----

    def get_invoices(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        customer_nit: Optional[str] = None,
        invoice_status: Optional[InvoiceStatus] = None,
        limit: int = DEFAULT_INVOICE_LIMIT
    ) -> dict:
        query = self.db.query(Invoice)
        if start_date:
            query = query.filter(Invoice.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(Invoice.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
        if customer_nit:
            query = query.filter(Invoice.customer_nit == customer_nit)
        if invoice_status:
            query = query.filter(Invoice.status == invoice_status)

        invoices = query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit).all()
        return {"invoices": [shape_invoice(invoice) for invoice in invoices], "total": len(invoices)}

    def get_invoice(self, invoice_id: int, actor: AuthContext) -> dict:
        invoice = self.get_invoice_or_404(invoice_id)
        self._check_owner(invoice, actor)
        return shape_invoice(invoice)

    def get_customer_invoices(self, customer_id: int, actor: AuthContext) -> List[dict]:
        if not actor.is_staff and customer_id != actor.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes acceso a estas facturas"
            )
        invoices = self.db.query(Invoice).filter(
            Invoice.customer_user_id == customer_id
        ).order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
        return [shape_invoice(invoice) for invoice in invoices]

    def get_invoice_pdf(self, invoice_id: int, actor: AuthContext) -> Response:
        invoice = self.get_invoice_or_404(invoice_id)
        self._check_owner(invoice, actor)
        try:
            content = invoice_pdf_service.generate_pdf(invoice)
        except Exception as e:
            logger.error(f"Error generando PDF de factura {invoice.number}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error generando el PDF de la factura"
            )
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f"attachment; filename=Factura-{invoice.number}.pdf"}
        )

    def cancel_invoice(self, invoice_id: int, actor: AuthContext) -> dict:
        """
        Anular una factura y devolver el pedido a PENDIENTE sin pagar.

        El stock descontado al facturar no se repone.
        """
        invoice = self.get_invoice_or_404(invoice_id)
        if invoice.status == InvoiceStatus.ANULADA:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La factura ya esta anulada"
            )

        invoice.status = InvoiceStatus.ANULADA
        invoice.cancelled_at = datetime.now(timezone.utc)
        invoice.cancelled_by = actor.user_id

        order = invoice.order
        if order is not None:
            order.status = OrderStatus.PENDIENTE
            order.payment_status = OrderPaymentStatus.PENDIENTE

        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Factura {invoice.number} anulada por usuario {actor.user_id}")
        return shape_invoice(invoice)
