"""HTTP-level tests: auth, role scoping and error payloads."""

import uuid

from app.models.driver import Driver
from app.models.user import User

API = "/api/v1"


def _order_payload(merchant, taco, **overrides):
    payload = {
        "merchant_id": str(merchant.id),
        "items": [
            {
                "item_id": str(taco.id),
                "quantity": 2,
                "modifiers": [{"group_id": "size", "selected": [{"id": "regular"}]}],
                "subtotal": 100.0,
            }
        ],
        "payment_method": "cash",
        "delivery_address": "Av. Juarez 100",
        "delivery_fee": 25.0,
        "service_fee": 5.0,
    }
    payload.update(overrides)
    return payload


class TestAuth:
    def test_health(self, client):
        res = client.get("/")
        assert res.status_code == 200
        assert res.json()["status"] == "ok"

    def test_requires_token(self, client):
        res = client.get(f"{API}/users/me")
        assert res.status_code == 401

    def test_invalid_token(self, client):
        res = client.get(f"{API}/users/me", headers={"Authorization": "Bearer nope"})
        assert res.status_code == 401

    def test_first_login_creates_client_profile(self, client, session, auth_headers):
        newcomer = User(id=uuid.uuid4(), email="lucia@example.com", name="x")
        res = client.get(f"{API}/users/me", headers=auth_headers(newcomer))

        assert res.status_code == 200
        body = res.json()
        assert body["role"] == "client"
        assert body["name"] == "lucia"
        assert body["trust_score"] == 100
        assert session.get(User, newcomer.id) is not None

    def test_blocked_account_is_refused(self, client, make_user, auth_headers):
        blocked = make_user(role="client", is_blocked=True)
        res = client.get(f"{API}/users/me", headers=auth_headers(blocked))
        assert res.status_code == 403

    def test_update_name(self, client, client_user, auth_headers):
        res = client.patch(
            f"{API}/users/me", json={"name": "  Ana Maria "}, headers=auth_headers(client_user)
        )
        assert res.status_code == 200
        assert res.json()["name"] == "Ana Maria"


class TestOrdersApi:
    def test_client_checkout(self, client, client_user, merchant, taco, auth_headers):
        res = client.post(
            f"{API}/orders", json=_order_payload(merchant, taco), headers=auth_headers(client_user)
        )
        assert res.status_code == 201
        body = res.json()
        assert body["status"] == "created"
        assert body["server_validated"] is True
        assert body["totals"]["total"] == 130.0

    def test_checkout_at_closed_merchant_returns_cancelled_order(
        self, client, session, client_user, merchant, taco, auth_headers
    ):
        merchant.is_open = False
        session.add(merchant)
        session.commit()

        res = client.post(
            f"{API}/orders", json=_order_payload(merchant, taco), headers=auth_headers(client_user)
        )
        assert res.status_code == 201
        assert res.json()["status"] == "cancelled"
        assert res.json()["cancel_reason"] == "Restaurant closed before confirming"

    def test_only_clients_checkout(self, client, driver, session, merchant, taco, auth_headers):
        driver_user = session.get(User, driver.id)
        res = client.post(
            f"{API}/orders", json=_order_payload(merchant, taco), headers=auth_headers(driver_user)
        )
        assert res.status_code == 403

    def test_rejected_transition_payload(
        self, client, place_order, client_user, auth_headers
    ):
        order = place_order()
        res = client.patch(
            f"{API}/orders/{order.id}/status",
            json={"status": "confirmed"},
            headers=auth_headers(client_user),
        )
        assert res.status_code == 409
        detail = res.json()["detail"]
        assert detail["code"] == "invalid_transition"
        assert detail["current"] == "created"
        assert detail["requested"] == "confirmed"

    def test_unknown_status_is_a_validation_error(self, client, place_order, merchant_user, auth_headers):
        order = place_order()
        res = client.patch(
            f"{API}/orders/{order.id}/status",
            json={"status": "teleported"},
            headers=auth_headers(merchant_user),
        )
        assert res.status_code == 422

    def test_merchant_flow_and_driver_race(
        self, client, session, place_order, merchant_user, make_driver, auth_headers
    ):
        order = place_order()
        for status in ("confirmed", "preparing", "ready"):
            res = client.patch(
                f"{API}/orders/{order.id}/status",
                json={"status": status},
                headers=auth_headers(merchant_user),
            )
            assert res.status_code == 200
        assert res.json()["status"] == "searching_driver"

        first, second = make_driver(), make_driver()
        first_user = session.get(User, first.id)
        second_user = session.get(User, second.id)

        res = client.post(f"{API}/orders/{order.id}/accept", headers=auth_headers(first_user))
        assert res.status_code == 200
        assert res.json()["driver_id"] == str(first.id)

        res = client.post(f"{API}/orders/{order.id}/accept", headers=auth_headers(second_user))
        assert res.status_code == 409
        assert res.json()["detail"]["code"] == "already_taken"

    def test_client_cancel_with_reason(self, client, place_order, client_user, auth_headers):
        order = place_order()
        res = client.post(
            f"{API}/orders/{order.id}/cancel",
            json={"reason": "ordered twice"},
            headers=auth_headers(client_user),
        )
        assert res.status_code == 200
        assert res.json()["status"] == "cancelled"
        assert res.json()["cancel_reason"] == "ordered twice"

    def test_list_is_scoped(self, client, place_order, client_user, make_user, auth_headers):
        place_order()
        res = client.get(f"{API}/orders", headers=auth_headers(client_user))
        assert len(res.json()) == 1

        stranger = make_user(role="client")
        res = client.get(f"{API}/orders", headers=auth_headers(stranger))
        assert res.json() == []

    def test_rebroadcast_is_admin_only(self, client, place_order, client_user, admin_user, auth_headers):
        order = place_order()
        res = client.post(f"{API}/orders/{order.id}/rebroadcast", headers=auth_headers(client_user))
        assert res.status_code == 403

        res = client.post(f"{API}/orders/{order.id}/rebroadcast", headers=auth_headers(admin_user))
        assert res.status_code == 400


class TestDriversApi:
    def test_presence_endpoints(self, client, session, make_driver, auth_headers):
        driver = make_driver(is_online=False, is_available=False)
        headers = auth_headers(session.get(User, driver.id))

        res = client.post(f"{API}/drivers/me/online", headers=headers)
        assert res.status_code == 200
        assert res.json()["is_online"] is True

        res = client.post(f"{API}/drivers/me/heartbeat", json={"lat": 19.4, "lng": -99.1}, headers=headers)
        assert res.status_code == 200
        assert res.json()["location_updated_at"] is not None

        res = client.post(f"{API}/drivers/me/push-tokens", json={"token": "abc"}, headers=headers)
        assert res.status_code == 200

        res = client.post(f"{API}/drivers/me/offline", headers=headers)
        assert res.json()["is_online"] is False

    def test_unverified_driver_cannot_go_online(self, client, session, make_driver, auth_headers):
        driver = make_driver(is_verified=False, is_online=False)
        res = client.post(
            f"{API}/drivers/me/online", headers=auth_headers(session.get(User, driver.id))
        )
        assert res.status_code == 403
        assert res.json()["detail"]["code"] == "driver_not_eligible"

    def test_liquidation(self, client, session, make_driver, admin_user, auth_headers):
        driver = make_driver(cash_in_hand=1070.0, is_blocked_due_to_cash=True)

        res = client.post(
            f"{API}/drivers/{driver.id}/liquidate",
            json={"amount_paid": -5},
            headers=auth_headers(admin_user),
        )
        assert res.status_code == 400
        assert res.json()["detail"]["code"] == "invalid-argument"

        res = client.post(
            f"{API}/drivers/{driver.id}/liquidate",
            json={"amount_paid": 200},
            headers=auth_headers(admin_user),
        )
        assert res.status_code == 200
        assert res.json()["new_debt"] == 870.0

        res = client.get(f"{API}/drivers/{driver.id}/ledger", headers=auth_headers(admin_user))
        assert len(res.json()) == 1

    def test_liquidation_is_admin_only(self, client, session, driver, auth_headers):
        res = client.post(
            f"{API}/drivers/{driver.id}/liquidate",
            json={"amount_paid": 200},
            headers=auth_headers(session.get(User, driver.id)),
        )
        assert res.status_code == 403

    def test_admin_verify_and_suspend(self, client, make_driver, admin_user, auth_headers):
        driver = make_driver(is_verified=False)
        headers = auth_headers(admin_user)

        res = client.post(f"{API}/drivers/{driver.id}/verify", headers=headers)
        assert res.json()["is_verified"] is True

        res = client.post(f"{API}/drivers/{driver.id}/suspend", headers=headers)
        assert res.json()["is_online"] is False
        assert res.json()["is_available"] is False

        res = client.post(f"{API}/drivers/{driver.id}/block", json={"is_blocked": True}, headers=headers)
        assert res.json()["is_blocked"] is True

    def test_unknown_driver(self, client, admin_user, auth_headers):
        res = client.post(f"{API}/drivers/{uuid.uuid4()}/verify", headers=auth_headers(admin_user))
        assert res.status_code == 404

    def test_admin_lists_drivers(self, client, driver, admin_user, auth_headers):
        res = client.get(f"{API}/drivers", headers=auth_headers(admin_user))
        assert res.status_code == 200
        assert [d["id"] for d in res.json()] == [str(driver.id)]


class TestMerchantsApi:
    def test_public_merchant_listing(self, client, merchant):
        res = client.get(f"{API}/merchants")
        assert res.status_code == 200
        assert [m["id"] for m in res.json()] == [str(merchant.id)]

    def test_public_menu_hides_sold_out(self, client, session, merchant, taco):
        taco.is_available = False
        session.add(taco)
        session.commit()

        res = client.get(f"{API}/merchants/{merchant.id}/menu")
        assert res.status_code == 200
        assert res.json() == []

        res = client.get(f"{API}/merchants/{merchant.id}/menu", params={"only_available": False})
        assert len(res.json()) == 1

    def test_staff_manage_menu_and_hours(self, client, merchant, merchant_user, auth_headers):
        headers = auth_headers(merchant_user)
        res = client.post(
            f"{API}/merchants/{merchant.id}/menu",
            json={"name": "Quesadilla", "price": 45.0},
            headers=headers,
        )
        assert res.status_code == 201
        item_id = res.json()["id"]

        res = client.patch(
            f"{API}/merchants/{merchant.id}/menu/{item_id}",
            json={"is_available": False},
            headers=headers,
        )
        assert res.json()["is_available"] is False

        res = client.patch(f"{API}/merchants/{merchant.id}/open", json={"is_open": False}, headers=headers)
        assert res.json()["is_open"] is False

    def test_other_merchant_staff_refused(self, client, merchant, make_user, auth_headers):
        stranger = make_user(role="merchant", merchant_id=uuid.uuid4())
        res = client.patch(
            f"{API}/merchants/{merchant.id}/open",
            json={"is_open": False},
            headers=auth_headers(stranger),
        )
        assert res.status_code == 403

    def test_admin_creates_merchant(self, client, admin_user, auth_headers):
        res = client.post(
            f"{API}/merchants",
            json={"name": "Pozoleria", "delivery_fee": 20.0},
            headers=auth_headers(admin_user),
        )
        assert res.status_code == 201
        assert res.json()["is_open"] is False


class TestProvisioning:
    def test_admin_provisions_driver(self, client, session, merchant, admin_user, auth_admin, auth_headers):
        res = client.post(
            f"{API}/users/provision",
            json={
                "email": "rider@example.com",
                "password": "secret123",
                "display_name": "Rider",
                "role": "driver",
                "driver_data": {
                    "phone": "+52 55 0000 0000",
                    "assigned_restaurant_id": str(merchant.id),
                },
            },
            headers=auth_headers(admin_user),
        )
        assert res.status_code == 201
        uid = uuid.UUID(res.json()["uid"])

        assert auth_admin.created[0]["email"] == "rider@example.com"
        assert session.get(User, uid).role == "driver"
        driver = session.get(Driver, uid)
        assert driver.is_verified is False
        assert driver.is_online is False
        assert driver.cash_in_hand == 0.0
        assert driver.max_cash_limit == 1000.0
        assert driver.assigned_restaurant_id == merchant.id

    def test_merchant_role_needs_merchant(self, client, admin_user, auth_headers):
        res = client.post(
            f"{API}/users/provision",
            json={"email": "staff@example.com", "password": "secret123", "role": "merchant"},
            headers=auth_headers(admin_user),
        )
        assert res.status_code == 422

    def test_duplicate_email(self, client, client_user, admin_user, auth_headers):
        res = client.post(
            f"{API}/users/provision",
            json={"email": client_user.email, "password": "secret123", "role": "client"},
            headers=auth_headers(admin_user),
        )
        assert res.status_code == 400
        assert res.json()["detail"]["code"] == "invalid-argument"

    def test_admin_lists_users(self, client, client_user, admin_user, auth_headers):
        res = client.get(f"{API}/users", headers=auth_headers(admin_user))
        assert res.status_code == 200
        assert {u["id"] for u in res.json()} == {str(client_user.id), str(admin_user.id)}

    def test_non_admin_refused(self, client, client_user, auth_headers):
        res = client.post(
            f"{API}/users/provision",
            json={"email": "x@example.com", "password": "secret123", "role": "admin"},
            headers=auth_headers(client_user),
        )
        assert res.status_code == 403
