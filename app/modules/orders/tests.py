"""
Tests del módulo de Pedidos

Cubren:
- Creación por personal y por clientes
- Transiciones de estado y cierre administrativo
- Bloqueo de líneas en pedidos pagados o cerrados
- Conflicto de mesa entre pedidos en curso
- Edición, movimiento e impresión de líneas
"""

import pytest

from app.modules.auth.models import User, UserRole
from app.modules.orders.models import Order, OrderStatus
from app.modules.tables.service import TABLE_CONFLICT_DETAIL


def create_order(client, headers, **payload):
    response = client.post("/orders/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


# ===== CREACIÓN =====

class TestCreateOrder:
    def test_cashier_creates_order_with_lines(self, client, cashier_headers, cashier_user, taxed_product, table_one):
        """Test líneas con descuento copiado y totales calculados desde las líneas"""
        order = create_order(
            client, cashier_headers,
            status="PENDIENTE",
            table_id=table_one.id,
            customer_name="Mesa de Juan",
            items=[{
                "product_id": taxed_product.id,
                "quantity": 2,
                "discount": {"name": "Happy hour", "type": "percent", "value": 10},
            }],
        )
        assert order["status"] == "PENDIENTE"
        assert order["table_id"] == table_one.id
        assert order["cashier_user_id"] == cashier_user.id
        assert order["customer"]["name"] == "Mesa de Juan"

        item = order["items"][0]
        assert item["name"] == "Limonada - Happy hour"
        assert abs(float(item["unit_price"]) - 9000) < 0.01
        assert float(item["original_price"]) == 10000
        assert float(item["tax_rate"]) == 8
        assert float(order["bills"]["total"]) == 18000
        assert float(order["bills"]["tax"]) == 1333

    def test_customer_order_is_always_pending_approval(self, client, customer_headers, customer_user, plain_product):
        order = create_order(
            client, customer_headers,
            status="LISTO",
            items=[{"product_id": plain_product.id}],
        )
        assert order["status"] == "POR_APROBAR"
        assert order["customer"]["user_id"] == customer_user.id
        assert order["cashier_user_id"] is None

    def test_registered_customer_in_progress_needs_table(self, client, cashier_headers, customer_user):
        response = client.post("/orders/", headers=cashier_headers, json={
            "status": "PENDIENTE", "customer_user_id": customer_user.id
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Esta orden necesita una mesa asignada antes de cambiar el estado."

    def test_unknown_product_is_not_found(self, client, cashier_headers):
        response = client.post("/orders/", headers=cashier_headers, json={"items": [{"product_id": 999}]})
        assert response.status_code == 404

    def test_stored_bills_used_when_no_lines(self, client, cashier_headers):
        order = create_order(client, cashier_headers, bills={"subtotal": 1000, "tax": 80, "total": 1080})
        assert float(order["bills"]["total"]) == 1080


# ===== CONSULTAS =====

class TestReadOrders:
    def test_customer_sees_only_own_orders(self, client, db_session, customer_headers, cashier_headers, plain_product):
        create_order(client, cashier_headers, customer_name="Otro")
        mine = create_order(client, customer_headers, items=[{"product_id": plain_product.id}])

        response = client.get("/orders/", headers=customer_headers)
        assert response.status_code == 200
        ids = [order["id"] for order in response.json()["orders"]]
        assert ids == [mine["id"]]

    def test_customer_cannot_read_other_order(self, client, db_session, customer_headers, headers_for):
        other = User(name="Pedro", email="pedro@mesa360.co", password="x", role=UserRole.CUSTOMER)
        db_session.add(other)
        db_session.commit()
        order = create_order(client, headers_for(other))

        response = client.get(f"/orders/{order['id']}", headers=customer_headers)
        assert response.status_code == 403

    def test_filter_by_status(self, client, cashier_headers, table_one):
        create_order(client, cashier_headers)
        pending = create_order(client, cashier_headers, status="PENDIENTE", table_id=table_one.id)

        response = client.get("/orders/", headers=cashier_headers, params={"status": "PENDIENTE"})
        assert [order["id"] for order in response.json()["orders"]] == [pending["id"]]

    def test_missing_order(self, client, cashier_headers):
        response = client.get("/orders/999", headers=cashier_headers)
        assert response.status_code == 404
        assert response.json() == {
            "success": False, "message": "Pedido no encontrado", "detail": "Pedido no encontrado"
        }


# ===== ESTADOS =====

class TestOrderStatus:
    def test_manual_paid_status_is_rejected(self, client, cashier_headers, table_one):
        order = create_order(client, cashier_headers, status="PENDIENTE", table_id=table_one.id)
        response = client.put(f"/orders/{order['id']}", headers=cashier_headers, json={"status": "PAGADO"})
        assert response.status_code == 400

    def test_approve_binds_cashier(self, client, customer_headers, cashier_headers, cashier_user, table_one):
        order = create_order(client, customer_headers)
        response = client.put(
            f"/orders/{order['id']}", headers=cashier_headers,
            json={"status": "PENDIENTE", "table_id": table_one.id}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "PENDIENTE"
        assert response.json()["cashier_user_id"] == cashier_user.id

    def test_cashier_cannot_close_without_invoice(self, client, cashier_headers, table_one):
        order = create_order(client, cashier_headers, status="LISTO", table_id=table_one.id)
        response = client.put(f"/orders/{order['id']}", headers=cashier_headers, json={"status": "CERRADO"})
        assert response.status_code == 403
        assert response.json()["message"] == "Solo el admin puede cerrar una orden sin facturacion"

    def test_admin_close_releases_table(self, client, admin_headers, cashier_headers, table_one):
        order = create_order(client, cashier_headers, status="LISTO", table_id=table_one.id)
        response = client.put(f"/orders/{order['id']}", headers=admin_headers, json={"status": "CERRADO"})
        assert response.status_code == 200
        assert response.json()["status"] == "CERRADO"
        assert response.json()["table_id"] is None

    def test_closed_order_cannot_change(self, client, admin_headers, cashier_headers):
        order = create_order(client, cashier_headers)
        client.put(f"/orders/{order['id']}", headers=admin_headers, json={"status": "CERRADO"})
        response = client.put(f"/orders/{order['id']}", headers=admin_headers, json={"status": "PENDIENTE"})
        assert response.status_code == 400

    def test_customer_cannot_update_order(self, client, customer_headers):
        order = create_order(client, customer_headers)
        response = client.put(f"/orders/{order['id']}", headers=customer_headers, json={"status": "PENDIENTE"})
        assert response.status_code == 403


# ===== MESAS =====

class TestTableBinding:
    def test_second_in_progress_order_on_table_conflicts(self, client, cashier_headers, table_one):
        create_order(client, cashier_headers, status="PENDIENTE", table_id=table_one.id)
        response = client.post("/orders/", headers=cashier_headers, json={
            "status": "LISTO", "table_id": table_one.id
        })
        assert response.status_code == 409
        assert response.json()["message"] == TABLE_CONFLICT_DETAIL

    def test_pending_approval_orders_do_not_conflict(self, client, cashier_headers, table_one):
        create_order(client, cashier_headers, table_id=table_one.id)
        create_order(client, cashier_headers, table_id=table_one.id)

    def test_get_or_create_order_for_table(self, client, cashier_headers, table_one):
        first = client.get(f"/orders/table/{table_one.id}", headers=cashier_headers)
        second = client.get(f"/orders/table/{table_one.id}", headers=cashier_headers)
        assert first.status_code == 200
        assert first.json()["status"] == "POR_APROBAR"
        assert first.json()["id"] == second.json()["id"]

    def test_add_item_to_table(self, client, cashier_headers, plain_product, table_one):
        response = client.post(
            f"/orders/table/{table_one.id}/item", headers=cashier_headers,
            json={"product_id": plain_product.id, "quantity": 2, "note": "sin cebolla"}
        )
        assert response.status_code == 201
        order = response.json()
        assert order["table_id"] == table_one.id
        assert order["items"][0]["quantity"] == 2
        assert order["items"][0]["note"] == "sin cebolla"
        assert float(order["bills"]["total"]) == 100000

    def test_add_item_to_missing_table(self, client, cashier_headers, plain_product):
        response = client.post("/orders/table/999/item", headers=cashier_headers, json={"product_id": plain_product.id})
        assert response.status_code == 404
        assert response.json()["message"] == "Mesa no encontrada"


# ===== LÍNEAS =====

@pytest.fixture
def open_order(client, cashier_headers, plain_product, table_one):
    return create_order(
        client, cashier_headers,
        table_id=table_one.id,
        items=[
            {"product_id": plain_product.id, "quantity": 2},
            {"product_id": plain_product.id, "quantity": 1, "note": "para llevar"},
        ],
    )


class TestOrderLines:
    def test_update_quantity_and_note(self, client, cashier_headers, open_order):
        item_id = open_order["items"][0]["id"]
        response = client.put(
            f"/orders/{open_order['id']}/item/{item_id}", headers=cashier_headers,
            json={"quantity": 3, "note": "término medio"}
        )
        assert response.status_code == 200
        item = next(i for i in response.json()["items"] if i["id"] == item_id)
        assert item["quantity"] == 3
        assert item["note"] == "término medio"

    def test_zero_quantity_removes_line(self, client, cashier_headers, open_order):
        item_id = open_order["items"][0]["id"]
        response = client.put(
            f"/orders/{open_order['id']}/item/{item_id}", headers=cashier_headers, json={"quantity": 0}
        )
        assert response.status_code == 200
        assert [i["id"] for i in response.json()["items"]] == [open_order["items"][1]["id"]]

    def test_delete_line(self, client, cashier_headers, open_order):
        item_id = open_order["items"][1]["id"]
        response = client.delete(f"/orders/{open_order['id']}/item/{item_id}", headers=cashier_headers)
        assert response.status_code == 200
        assert len(response.json()["items"]) == 1

    def test_confirmed_order_lines_only_admin(self, client, admin_headers, cashier_headers, open_order):
        client.put(f"/orders/{open_order['id']}", headers=cashier_headers, json={"status": "PENDIENTE"})
        item_id = open_order["items"][0]["id"]

        response = client.put(
            f"/orders/{open_order['id']}/item/{item_id}", headers=cashier_headers, json={"quantity": 5}
        )
        assert response.status_code == 403

        response = client.put(
            f"/orders/{open_order['id']}/item/{item_id}", headers=admin_headers, json={"quantity": 5}
        )
        assert response.status_code == 200

    @pytest.mark.parametrize("locked_status", [OrderStatus.PAGADO, OrderStatus.CERRADO])
    def test_locked_order_rejects_line_changes(
        self, client, db_session, admin_headers, plain_product, open_order, locked_status
    ):
        order = db_session.query(Order).filter(Order.id == open_order["id"]).first()
        order.status = locked_status
        db_session.commit()
        item_id = open_order["items"][0]["id"]

        add = client.post(
            f"/orders/{order.id}/item", headers=admin_headers, json={"product_id": plain_product.id}
        )
        update = client.put(f"/orders/{order.id}/item/{item_id}", headers=admin_headers, json={"quantity": 1})
        delete = client.delete(f"/orders/{order.id}/item/{item_id}", headers=admin_headers)

        assert add.status_code == 403
        assert update.status_code == 403
        assert delete.status_code == 403

    def test_move_line_to_other_table(self, client, cashier_headers, open_order, table_two):
        item_id = open_order["items"][0]["id"]
        response = client.post(
            f"/orders/{open_order['id']}/item/{item_id}/move", headers=cashier_headers,
            json={"table_id": table_two.id}
        )
        assert response.status_code == 200
        body = response.json()
        assert len(body["source"]["items"]) == 1
        assert body["target_order_id"] != open_order["id"]

        target = client.get(f"/orders/{body['target_order_id']}", headers=cashier_headers).json()
        assert target["table_id"] == table_two.id
        assert [i["id"] for i in target["items"]] == [item_id]

    def test_mark_printed(self, client, cashier_headers, open_order):
        item_id = open_order["items"][0]["id"]
        response = client.post(
            f"/orders/{open_order['id']}/printed", headers=cashier_headers, json={"items": [item_id]}
        )
        assert response.status_code == 200
        printed = {i["id"]: i["printed_qty"] for i in response.json()["items"]}
        assert printed[item_id] == 2
        assert printed[open_order["items"][1]["id"]] == 0

    def test_mark_printed_requires_items(self, client, cashier_headers, open_order):
        response = client.post(f"/orders/{open_order['id']}/printed", headers=cashier_headers, json={"items": []})
        assert response.status_code == 400

    def test_lowering_quantity_caps_printed(self, client, cashier_headers, open_order):
        """Test lo enviado a cocina nunca supera la cantidad de la línea"""
        item_id = open_order["items"][0]["id"]
        client.post(f"/orders/{open_order['id']}/printed", headers=cashier_headers, json={"items": [item_id]})

        response = client.put(
            f"/orders/{open_order['id']}/item/{item_id}", headers=cashier_headers, json={"quantity": 1}
        )
        assert response.status_code == 200
        item = next(i for i in response.json()["items"] if i["id"] == item_id)
        assert item["quantity"] == 1
        assert item["printed_qty"] == 1

    def test_explicit_price_with_discount(self, client, cashier_headers, taxed_product, table_one):
        """Test el descuento se aplica sobre el precio enviado"""
        response = client.post(
            f"/orders/table/{table_one.id}/item", headers=cashier_headers,
            json={
                "product_id": taxed_product.id,
                "quantity": 2,
                "price": 10000,
                "discount": {"name": "Happy hour", "type": "PERCENT", "value": 10},
            }
        )
        assert response.status_code == 201
        item = response.json()["items"][0]
        assert abs(float(item["unit_price"]) - 9000) < 0.01
        assert float(item["original_price"]) == 10000
        assert float(response.json()["bills"]["total"]) == 18000


# ===== CLIENTE Y ELIMINACIÓN =====

class TestCustomerAndDelete:
    def test_assign_registered_customer(self, client, cashier_headers, customer_user, open_order):
        response = client.put(
            f"/orders/{open_order['id']}/customer", headers=cashier_headers, json={"user_id": customer_user.id}
        )
        assert response.status_code == 200
        customer = response.json()["customer"]
        assert customer["user_id"] == customer_user.id
        assert customer["email"] == "cliente@mesa360.co"

    def test_walk_in_customer_requires_name(self, client, cashier_headers, open_order):
        response = client.put(f"/orders/{open_order['id']}/customer", headers=cashier_headers, json={"name": "  "})
        assert response.status_code == 400

    def test_delete_pending_approval_order(self, client, db_session, cashier_headers, open_order):
        response = client.delete(f"/orders/{open_order['id']}", headers=cashier_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert db_session.query(Order).filter(Order.id == open_order["id"]).first() is None

    def test_delete_confirmed_order_forbidden(self, client, cashier_headers, open_order):
        client.put(f"/orders/{open_order['id']}", headers=cashier_headers, json={"status": "PENDIENTE"})
        response = client.delete(f"/orders/{open_order['id']}", headers=cashier_headers)
        assert response.status_code == 403
