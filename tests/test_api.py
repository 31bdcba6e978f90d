from datetime import date, timedelta

from conftest import PASSWORD

ADDRESS = {
    "full_name": "Asha Verma", "phone": "9876543210", "email": "asha@example.com",
    "address": "12 MG Road", "city": "Pune", "state": "Maharashtra", "pincode": "411001",
}


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Healthcare Platform API running"}
    body = client.get("/test").json()
    assert body["backend"] == "✅ Running"


def test_signup_login_me_logout(client):
    res = client.post("/api/auth/signup", json={
        "email": "asha@example.com", "password": PASSWORD, "display_name": "Asha Verma", "role": "doctor",
    })
    assert res.status_code == 200
    assert res.json()["redirect"] == "/doctor"

    res = client.post("/api/auth/login", json={"email": "asha@example.com", "password": PASSWORD})
    assert res.status_code == 200
    headers = {"Authorization": f"Bearer {res.json()['token']}"}

    me = client.get("/api/auth/me", headers=headers).json()
    assert me["user"]["doctor_id"].startswith("DOC")
    assert "_session" not in me["user"]

    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_signup_cannot_self_assign_admin(client):
    res = client.post("/api/auth/signup", json={
        "email": "x@example.com", "password": PASSWORD, "display_name": "Sneaky", "role": "admin",
    })
    assert res.status_code == 422


def test_bad_login_and_missing_token(client):
    assert client.post("/api/auth/login", json={"email": "no@example.com", "password": "x1x1x1"}).status_code == 401
    assert client.get("/api/cart").status_code == 401


def test_role_gates(client, make_user):
    user_headers, _ = make_user()
    admin_headers, _ = make_user("admin")
    assert client.get("/api/admin/stats", headers=user_headers).status_code == 403
    assert client.get("/api/doctor/appointments", headers=user_headers).status_code == 403
    stats = client.get("/api/admin/stats", headers=admin_headers)
    assert stats.status_code == 200
    assert stats.json()["users"] == 2


def test_cart_flow(client, make_user, db):
    headers, _ = make_user()
    db["products"].insert_one({"_id": "p1", "name": "Thermometer", "price": 349, "version": 1})
    res = client.post("/api/cart/items", headers=headers, json={"item_id": "p1", "quantity": 2})
    assert res.json()["total_amount"] == 698
    assert res.json()["item_count"] == 2
    version = res.json()["version"]

    stale = client.put("/api/cart/items/p1", headers=headers, json={"quantity": 5, "expected_version": version - 1})
    assert stale.status_code == 409

    res = client.put("/api/cart/items/p1", headers=headers, json={"quantity": 0})
    assert res.json()["items"] == []


def test_cart_ignores_client_prices(client, make_user, product):
    headers, _ = make_user()
    res = client.post("/api/cart/items", headers=headers, json={
        "item_id": product["_id"], "name": "Cheap Bed", "price": 1,
    })
    assert res.status_code == 200
    assert res.json()["items"][0]["price"] == 35000
    assert res.json()["items"][0]["name"] == "Hospital Bed"
    assert res.json()["total_amount"] == 35000

    assert client.post("/api/cart/items", headers=headers, json={"item_id": "missing"}).status_code == 404


def test_booking_doctor_flow(client, make_user):
    patient_headers, _ = make_user()
    doctor_headers, doctor = make_user("doctor", name="Dr Rao")
    admin_headers, _ = make_user("admin")

    res = client.post("/api/bookings", headers=patient_headers, json={
        "patient_info": {"name": "Asha Verma", "email": "asha@example.com", "phone": "9876543210"},
        "appointment_date": (date.today() + timedelta(days=2)).isoformat(),
        "appointment_time": "09:15",
        "symptoms": "Fever",
    })
    assert res.status_code == 200
    booking_id = res.json()["id"]

    bad = client.post("/api/bookings", headers=patient_headers, json={
        "patient_info": {"name": "A", "email": "asha@example.com", "phone": "9876543210"},
        "appointment_date": "2000-01-01", "appointment_time": "09:15",
    })
    assert bad.status_code == 400
    assert set(bad.json()["detail"]["errors"]) == {"name", "symptoms", "appointment_date"}

    res = client.put(f"/api/admin/bookings/{booking_id}/doctor", headers=admin_headers,
                     json={"doctor_id": doctor["doctor_id"]})
    assert res.json()["doctor_id"] == doctor["doctor_id"]

    appointments = client.get("/api/doctor/appointments", headers=doctor_headers).json()
    assert [a["id"] for a in appointments] == [booking_id]
    assert client.get("/api/doctor/patients", headers=doctor_headers).json()[0]["visits"] == 1

    res = client.put(f"/api/doctor/appointments/{booking_id}/status", headers=doctor_headers,
                     json={"status": "completed"})
    assert res.status_code == 409
    res = client.put(f"/api/doctor/appointments/{booking_id}/status", headers=doctor_headers,
                     json={"status": "confirmed"})
    assert res.json()["status"] == "confirmed"

    mine = client.get("/api/bookings/mine", headers=patient_headers).json()
    assert mine[0]["status"] == "confirmed"


def test_checkout_flow(client, make_user, db):
    headers, _ = make_user()
    db["products"].insert_one({"_id": "p1", "name": "BP Monitor", "price": 1000, "merchant_id": "MER1", "version": 1})
    client.post("/api/cart/items", headers=headers, json={"item_id": "p1"})

    res = client.post("/api/orders/checkout", headers=headers, json={"shipping_address": ADDRESS})
    assert res.status_code == 200
    body = res.json()
    assert body["order"]["summary"]["total"] == 1180
    assert body["payment"]["mock"] is True
    assert body["payment"]["amount"] == 118000
    assert body["payment"]["notes"] == {"target_kind": "order", "target_id": body["order"]["id"]}
    assert client.get("/api/cart", headers=headers).json()["items"] == []

    order_id = body["order"]["id"]
    callback = {
        "razorpay_order_id": body["payment"]["order_id"],
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": "mock",
        "target_kind": "order",
        "target_id": order_id,
    }
    assert client.post("/api/payment/verify-payment", json=callback).status_code == 401
    res = client.post("/api/payment/verify-payment", headers=headers, json=callback)
    assert res.json()["success"] is True
    assert client.get("/api/orders/mine", headers=headers).json()[0]["payment_status"] == "paid"


def test_payment_for_one_order_cannot_settle_another(client, make_user, db):
    headers, _ = make_user()
    db["products"].insert_one({"_id": "p1", "name": "BP Monitor", "price": 1000, "version": 1})
    client.post("/api/cart/items", headers=headers, json={"item_id": "p1"})
    cheap = client.post("/api/orders/checkout", headers=headers, json={"shipping_address": ADDRESS}).json()

    db["products"].insert_one({"_id": "p2", "name": "Oxygen Concentrator", "price": 50000, "version": 1})
    client.post("/api/cart/items", headers=headers, json={"item_id": "p2"})
    big = client.post("/api/orders/checkout", headers=headers,
                      json={"shipping_address": ADDRESS, "payment_method": "cod"}).json()

    res = client.post("/api/payment/verify-payment", headers=headers, json={
        "razorpay_order_id": cheap["payment"]["order_id"],
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": "mock",
        "target_kind": "order",
        "target_id": big["order"]["id"],
    })
    assert res.status_code == 400
    assert db["orders"].find_one({"_id": big["order"]["id"]})["payment_status"] == "pending"
    assert db["payments"].count_documents({}) == 0


def test_payment_endpoints_validate_input(client, make_user):
    headers, _ = make_user()
    assert client.post("/api/payment/create-order", json={"amount": 250}).status_code == 401
    assert client.post("/api/payment/create-order", headers=headers, json={"amount": 0}).status_code == 400
    assert client.post("/api/payment/create-order", headers=headers, json={}).status_code == 400
    res = client.post("/api/payment/create-order", headers=headers, json={"amount": 250})
    assert res.json()["amount"] == 25000
    res = client.post("/api/payment/verify-payment", headers=headers, json={"razorpay_order_id": "order_1"})
    assert res.status_code == 400


def test_admin_order_management(client, make_user, db):
    headers, _ = make_user()
    admin_headers, _ = make_user("admin")
    db["products"].insert_one({"_id": "p1", "name": "BP Monitor", "price": 1000, "version": 1})
    client.post("/api/cart/items", headers=headers, json={"item_id": "p1"})
    order = client.post("/api/orders/checkout", headers=headers,
                        json={"shipping_address": ADDRESS, "payment_method": "cod"}).json()["order"]
    order_id = order["id"]

    assert client.get("/api/admin/orders", headers=headers).status_code == 403
    listed = client.get("/api/admin/orders", headers=admin_headers, params={"search": order["order_number"]}).json()
    assert [o["id"] for o in listed] == [order_id]
    assert client.get("/api/admin/orders", headers=admin_headers, params={"status": "shipped"}).json() == []

    res = client.put(f"/api/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "delivered"})
    assert res.status_code == 409
    res = client.put(f"/api/admin/orders/{order_id}/status", headers=admin_headers, json={"status": "processing"})
    assert res.json()["status"] == "processing"

    res = client.put(f"/api/admin/orders/{order_id}/payment", headers=admin_headers,
                     json={"payment_status": "refunded"})
    assert res.json()["payment_status"] == "refunded"
    res = client.put(f"/api/admin/orders/{order_id}/payment", headers=admin_headers,
                     json={"payment_status": "waived"})
    assert res.status_code == 422

    assert client.delete(f"/api/admin/orders/{order_id}", headers=admin_headers).json() == {"deleted": True}
    assert client.delete(f"/api/admin/orders/{order_id}", headers=admin_headers).status_code == 404


def test_merchant_products_and_analytics(client, make_user):
    headers, merchant = make_user("merchant", name="Shop Owner")
    res = client.post("/api/merchant/products", headers=headers, json={
        "name": "Glucometer", "price": 1299, "category": "Medical Equipment", "stock": 10,
    })
    assert res.json()["merchant_id"] == merchant["merchant_id"]
    product_id = res.json()["id"]

    res = client.put(f"/api/merchant/products/{product_id}", headers=headers, json={"stock": 0})
    assert res.json()["status"] == "out-of-stock"

    analytics = client.get("/api/merchant/analytics", headers=headers).json()
    assert analytics["total_products"] == 1
    assert analytics["total_orders"] == 0
    assert len(analytics["monthly_revenue"]) == 12


def test_rental_flow(client, make_user, product):
    headers, _ = make_user()
    admin_headers, _ = make_user("admin")
    res = client.post("/api/rentals", headers=headers, json={
        "product_id": product["_id"],
        "customer_details": {"full_name": "Asha Verma", "email": "asha@example.com", "phone": "9876543210",
                             "address": "12 MG Road", "city": "Pune", "state": "MH", "pincode": "411001"},
        "documents": {"aadhar_number": "1234 5678 9012", "pan_number": "ABCPE1234F",
                      "bank_cheque_image": "data:image/png;base64,AAAA"},
        "start_date": "2030-01-01T00:00:00",
        "duration": 7,
    })
    assert res.status_code == 200
    request_id = res.json()["id"]
    assert res.json()["rental_details"]["advance_payment"] == 1000

    listing = client.get("/api/admin/rentals", headers=admin_headers).json()
    assert listing["counts"]["pending"] == 1

    res = client.put(f"/api/admin/rentals/{request_id}/status", headers=admin_headers, json={"status": "approved"})
    assert res.json()["status"] == "approved"

    res = client.post("/api/verification/government", headers=headers, json={"kind": "pan", "number": "ABCPE1234F"})
    assert res.json()["is_valid"] is True


def test_catalog_and_contact(client, make_user, product):
    admin_headers, _ = make_user("admin")
    rentable = client.get("/api/products", params={"rentable": True}).json()
    assert [p["id"] for p in rentable] == [product["_id"]]
    assert client.get("/api/products/missing").status_code == 404

    assert client.post("/api/contact", json={
        "name": "Asha", "email": "asha@example.com", "message": "Do you deliver oxygen cylinders?",
    }).status_code == 200
    contacts = client.get("/api/admin/contacts", headers=admin_headers).json()
    assert contacts[0]["status"] == "new"

    res = client.post("/api/admin/promos", headers=admin_headers, json={
        "code": "health10", "discount_value": 10,
    })
    assert res.json()["code"] == "HEALTH10"
    dup = client.post("/api/admin/promos", headers=admin_headers, json={"code": "HEALTH10", "discount_value": 5})
    assert dup.status_code == 400
