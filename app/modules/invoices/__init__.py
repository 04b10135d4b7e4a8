"""
Módulo de Facturación - Mesa360

Liquidación de pedidos de mesa:

- Numeración consecutiva de facturas (F-0001, F-0002, ...)
- Copia del emisor, cliente y líneas del pedido al momento de facturar
- Cálculo de impuestos incluidos y descuentos por línea
- Asociación con el cuadre de caja abierto
- Descuento de stock y alertas de stock mínimo después del commit
- Envío de la factura por correo (HTML + PDF) vía outbox

Roles:
- admin: facturar, consultar y anular
- cashier: facturar y consultar
- customer: consultar sus propias facturas

Tablas principales:
- invoices: Facturas de venta
- invoice_line_items: Ítems de factura
- invoice_sequences: Contador de numeración
"""

from .models import Invoice, InvoiceLineItem, InvoiceSequence, InvoiceStatus

__all__ = [
    "Invoice", "InvoiceLineItem", "InvoiceSequence", "InvoiceStatus",
]
