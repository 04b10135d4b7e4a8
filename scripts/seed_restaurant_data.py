"""
Seed script: Populate a demo restaurant with realistic data.

What it creates:
- Users: admin, cajeros (2) y clientes registrados (default 20).
- Taxes: INC 8%, IVA 19%, IVA 5% y excluido.
- Products: carta típica colombiana con precios con impuesto incluido y stock.
- Payment methods: Efectivo, Datafono, Nequi y Transferencia bancaria.
- Tables: mesas numeradas (default 12).
- Cash desk: un cuadre abierto con base de caja.
- Orders + invoices: pedidos facturados por los cajeros (efectivo, tarjeta y
  transferencia), algunos con propina y descuento; más pedidos abiertos en mesas.

Run inside the API container to use 'postgres' host and project PYTHONPATH:
    docker compose exec api python scripts/seed_restaurant_data.py \
        --email admin@mesa360.co \
        --password Mesa360!2025 \
        --customers 20 --tables 12 --invoices 40

Los correos de facturas quedan en el outbox; si el worker de Celery no está
corriendo se despachan cuando arranque la tarea periódica.

Note: This is intended for development environments only.
"""

# Add project root (/code) to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import random
from decimal import Decimal

from fastapi import HTTPException

from app.database.database import SessionLocal, sync_engine, Base
from app.modules.auth.models import User, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import hash_password
from app.modules.taxes.models import Tax, TaxType
from app.modules.taxes.calculator import get_standard_restaurant_taxes
from app.modules.products.models import Product
from app.modules.payment_methods.models import PaymentMethod, PaymentCategory
from app.modules.tables.models import Table
from app.modules.orders.models import OrderStatus
from app.modules.orders.schemas import OrderCreate, OrderItemCreate
from app.modules.orders.service import OrderService
from app.modules.cash_desk.schemas import CuadreOpen
from app.modules.cash_desk.service import CuadreService
from app.modules.invoices.schemas import InvoiceCreate
from app.modules.invoices.service import InvoiceService
from app.modules.taxes.schemas import LineDiscount
import app.modules.alerts.models
import app.modules.cash_desk.models
import app.modules.invoices.models
import app.modules.email.models


MENU = [
    # (nombre, precio, impuesto, stock, mínimo)
    ("Bandeja paisa", 38000, "INC 8%", 40, 5),
    ("Ajiaco santafereño", 32000, "INC 8%", 30, 5),
    ("Sancocho de gallina", 30000, "INC 8%", 30, 5),
    ("Churrasco", 45000, "INC 8%", 25, 4),
    ("Mojarra frita", 42000, "INC 8%", 20, 4),
    ("Arepa de choclo", 9000, "INC 8%", 60, 10),
    ("Empanadas (3)", 8000, "INC 8%", 80, 15),
    ("Patacones con hogao", 12000, "INC 8%", 50, 8),
    ("Limonada de coco", 11000, "INC 8%", 40, 8),
    ("Jugo de lulo", 8000, "INC 8%", 40, 8),
    ("Gaseosa 400 ml", 5000, "IVA 19%", 100, 20),
    ("Cerveza nacional", 7000, "IVA 19%", 120, 24),
    ("Agua con gas", 4500, "Excluido", 60, 12),
    ("Tres leches", 10000, "INC 8%", 25, 5),
    ("Obleas", 7000, "INC 8%", 30, 5),
]

PAYMENT_METHODS = [
    ("Efectivo", PaymentCategory.EFECTIVO),
    ("Datafono", PaymentCategory.DATAFONO),
    ("Nequi", PaymentCategory.TRANSFERENCIA),
    ("Transferencia bancaria", PaymentCategory.TRANSFERENCIA),
]

FIRST_NAMES = ["Andrés", "Camila", "Juliana", "Santiago", "Valentina", "Mateo", "Daniela", "Felipe", "Laura", "Sebastián"]
LAST_NAMES = ["Gómez", "Rodríguez", "Martínez", "López", "Hernández", "Ramírez", "Torres", "Castro", "Vargas", "Rojas"]
NOTES = [None, None, None, "Sin cebolla", "Término medio", "Para llevar", "Sin hielo"]


def pick(seq):
    return random.choice(seq)


def context_for(user: User) -> AuthContext:
    return AuthContext(user_id=user.id, user_role=user.role, name=user.name, email=user.email)


def get_or_create_user(db, name: str, email: str, password: str, role: UserRole, **extra):
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(
        name=name,
        email=email,
        password=hash_password(password),
        role=role,
        is_active=True,
        **extra
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_staff(db, email: str, password: str):
    admin = get_or_create_user(db, "Administrador Demo", email, password, UserRole.ADMIN)
    cashiers = [
        get_or_create_user(db, "Juan Pérez", "juan.cajero@mesa360.co", password, UserRole.CASHIER),
        get_or_create_user(db, "María López", "maria.cajera@mesa360.co", password, UserRole.CASHIER),
    ]
    return admin, cashiers


def create_customers(db, count: int, password: str):
    customers = []
    for i in range(count):
        name = f"{pick(FIRST_NAMES)} {pick(LAST_NAMES)}"
        customers.append(get_or_create_user(
            db, name, f"cliente{i + 1}@mesa360.co", password, UserRole.CUSTOMER,
            phone=f"300{random.randint(1000000, 9999999)}",
            nit=str(random.randint(10000000, 1099999999)),
            address=f"Calle {random.randint(1, 170)} # {random.randint(1, 99)}-{random.randint(1, 99)}, Bogotá",
        ))
    return customers


def create_taxes(db):
    taxes = {}
    for definition in get_standard_restaurant_taxes():
        name = definition["name"]
        tax = db.query(Tax).filter(Tax.name == name).first()
        if not tax:
            tax = Tax(
                name=name,
                code=definition["code"],
                rate=definition["rate"],
                type=TaxType[definition["type"]],
                regimen=definition["regimen"],
            )
            db.add(tax)
            db.flush()
        taxes[name] = tax
    db.commit()
    return taxes


def create_products(db, taxes):
    products = []
    for name, price, tax_name, quantity, minimum in MENU:
        product = db.query(Product).filter(Product.name == name).first()
        if not product:
            product = Product(
                name=name,
                price=Decimal(price),
                quantity=quantity,
                alert_min_stock=minimum,
                tax_id=taxes[tax_name].id,
                is_active=True,
            )
            db.add(product)
        products.append(product)
    db.commit()
    return products


def create_payment_methods(db):
    methods = []
    for name, category in PAYMENT_METHODS:
        method = db.query(PaymentMethod).filter(PaymentMethod.name == name).first()
        if not method:
            method = PaymentMethod(name=name, category=category)
            db.add(method)
        methods.append(method)
    db.commit()
    return methods


def create_tables(db, count: int):
    tables = []
    for number in range(1, count + 1):
        table = db.query(Table).filter(Table.number == number).first()
        if not table:
            table = Table(number=number, capacity=pick([2, 4, 4, 6]))
            db.add(table)
        tables.append(table)
    db.commit()
    return tables


def random_items(products):
    items = []
    for product in random.sample(products, k=random.randint(1, 4)):
        discount = None
        if random.random() < 0.1:
            discount = LineDiscount(name="Happy hour", type="PERCENT", value=Decimal("10"))
        items.append(OrderItemCreate(
            product_id=product.id,
            quantity=random.randint(1, 3),
            note=pick(NOTES),
            discount=discount,
        ))
    return items


def ensure_open_cash_desk(db, cashier):
    service = CuadreService(db)
    if service.current() is None:
        service.open(CuadreOpen(saldo_inicial=Decimal("200000"), observaciones="Base de caja demo"), context_for(cashier))


def create_invoices(db, cashiers, customers, products, methods, invoices_count):
    orders = OrderService(db)
    invoices = InvoiceService(db)
    created = 0
    for i in range(invoices_count):
        actor = context_for(pick(cashiers))
        customer = pick(customers) if customers and random.random() < 0.4 else None
        try:
            order = orders.create_order(OrderCreate(
                customer_user_id=customer.id if customer else None,
                customer_name=None if customer else f"Mesa {random.randint(1, 30)}",
                customer_label_only=customer is None,
                items=random_items(products),
            ), actor)

            method = pick(methods)
            tip = Decimal(pick([0, 0, 2000, 5000]))
            cash_amount = None
            if method.category == PaymentCategory.EFECTIVO:
                cash_amount = Decimal(order["bills"]["total"]) + tip + Decimal(pick([0, 1000, 5000, 20000]))

            invoices.create_invoice(InvoiceCreate(
                order_id=order["id"],
                payment_method_id=method.id,
                tip=tip,
                cash_amount=cash_amount,
            ), actor)
            created += 1
        except HTTPException as e:
            print(f"[WARN] Factura {i + 1} no creada: {e.detail}")
    return created


def create_open_orders(db, cashiers, products, tables):
    orders = OrderService(db)
    opened = 0
    for table in random.sample(tables, k=min(len(tables), 4)):
        try:
            orders.create_order(OrderCreate(
                status=pick([OrderStatus.PENDIENTE, OrderStatus.LISTO]),
                table_id=table.id,
                items=random_items(products),
            ), context_for(pick(cashiers)))
            opened += 1
        except HTTPException as e:
            print(f"[WARN] Mesa {table.number} no ocupada: {e.detail}")
    return opened


def main():
    parser = argparse.ArgumentParser(description="Seed demo restaurant data")
    parser.add_argument("--email", default="admin@mesa360.co")
    parser.add_argument("--password", default="Mesa360!2025")
    parser.add_argument("--customers", type=int, default=20)
    parser.add_argument("--tables", type=int, default=12)
    parser.add_argument("--invoices", type=int, default=40)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--create-tables", action="store_true", help="Crear el esquema antes de sembrar")
    args = parser.parse_args()

    random.seed(args.seed)
    if args.create_tables:
        Base.metadata.create_all(bind=sync_engine)

    db = SessionLocal()
    try:
        admin, cashiers = create_staff(db, args.email, args.password)
        customers = create_customers(db, args.customers, args.password)
        taxes = create_taxes(db)
        products = create_products(db, taxes)
        methods = create_payment_methods(db)
        tables = create_tables(db, args.tables)

        ensure_open_cash_desk(db, cashiers[0])
        invoices = create_invoices(db, cashiers, customers, products, methods, args.invoices)
        open_orders = create_open_orders(db, cashiers, products, tables)

        print("\n=== Seed completed ===")
        print(f"Admin: {admin.email} / {args.password}")
        print(f"Cashiers: {', '.join(c.email for c in cashiers)}")
        print(f"Customers: {len(customers)}  Products: {len(products)}  Tables: {len(tables)}")
        print(f"Invoices: {invoices}  Open orders: {open_orders}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
