"""
Tests de ocupación de mesas: el estado se deriva de los pedidos asociados
"""

from app.modules.orders.models import Order, OrderItem, OrderStatus
from app.modules.tables.models import TableStatus
from app.modules.tables.service import TableOccupancyService, resolve_status


def bind_order(db, table, status, items=0, product=None):
    order = Order(status=status, table_id=table.id)
    for _ in range(items):
        order.items.append(OrderItem(
            product_id=product.id, name=product.name, quantity=1,
            unit_price=product.price, original_price=product.price
        ))
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


class TestResolveStatus:
    def test_no_orders_is_available(self):
        assert resolve_status([], {}) == TableStatus.AVAILABLE

    def test_in_progress_order_books_table(self):
        order = Order(id=1, status=OrderStatus.LISTO)
        assert resolve_status([order], {}) == TableStatus.BOOKED

    def test_pending_approval_needs_items(self):
        order = Order(id=7, status=OrderStatus.POR_APROBAR)
        assert resolve_status([order], {}) == TableStatus.AVAILABLE
        assert resolve_status([order], {7: 2}) == TableStatus.PENDING_APPROVAL

    def test_booked_wins_over_pending_approval(self):
        pending = Order(id=1, status=OrderStatus.POR_APROBAR)
        ready = Order(id=2, status=OrderStatus.PENDIENTE)
        assert resolve_status([pending, ready], {1: 1}) == TableStatus.BOOKED


class TestComputeStatus:
    def test_listo_order_books_table(self, db_session, table_one):
        bind_order(db_session, table_one, OrderStatus.LISTO)
        assert TableOccupancyService(db_session).compute_status(table_one.id) == TableStatus.BOOKED

    def test_closed_orders_do_not_count(self, db_session, table_one):
        bind_order(db_session, table_one, OrderStatus.CERRADO)
        assert TableOccupancyService(db_session).compute_status(table_one.id) == TableStatus.AVAILABLE

    def test_pending_approval_with_items(self, db_session, table_one, plain_product):
        bind_order(db_session, table_one, OrderStatus.POR_APROBAR, items=1, product=plain_product)
        assert TableOccupancyService(db_session).compute_status(table_one.id) == TableStatus.PENDING_APPROVAL


class TestTablesApi:
    def test_list_tables_with_status(self, client, db_session, cashier_headers, table_one, table_two):
        order = bind_order(db_session, table_two, OrderStatus.PENDIENTE)

        response = client.get("/tables/", headers=cashier_headers)
        assert response.status_code == 200
        tables = {t["number"]: t for t in response.json()["tables"]}
        assert tables[1]["status"] == "Available"
        assert tables[1]["current_order_id"] is None
        assert tables[2]["status"] == "Booked"
        assert tables[2]["current_order_id"] == order.id

    def test_get_missing_table(self, client, cashier_headers):
        response = client.get("/tables/999", headers=cashier_headers)
        assert response.status_code == 404

    def test_admin_creates_table(self, client, admin_headers):
        response = client.post("/tables/", headers=admin_headers, json={"number": 7, "capacity": 6})
        assert response.status_code == 201
        assert response.json()["status"] == "Available"

    def test_duplicate_table_number(self, client, admin_headers, table_one):
        response = client.post("/tables/", headers=admin_headers, json={"number": 1})
        assert response.status_code == 409

    def test_cashier_cannot_create_table(self, client, cashier_headers):
        response = client.post("/tables/", headers=cashier_headers, json={"number": 9})
        assert response.status_code == 403
