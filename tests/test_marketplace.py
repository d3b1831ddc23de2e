import pytest

from cropconnect.errors import Forbidden, InvalidState, NotFound, ValidationError
from cropconnect.extensions import db
from cropconnect.models import Cart, Crop, Notification, Order
from cropconnect.services import CartService, CropService, OrderService, ProductService


def crop_payload(**overrides):
    payload = {
        "crop_name": "Onion",
        "variety": "Nashik Red",
        "quantity": 10,
        "unit": "quintal",
        "price_per_unit": 2000,
        "location": {"village": "Lasalgaon", "district": "Nashik", "state": "Maharashtra"},
    }
    payload.update(overrides)
    return payload


DELIVERY = {"delivery_address": {"full_address": "Godown 4, APMC Yard", "district": "Pune", "state": "Maharashtra"}}


@pytest.fixture
def buyer(make_user):
    return make_user("buyer", full_name="Kiran Traders", district="Pune")


@pytest.fixture
def onion(farmer):
    return CropService.create(farmer, crop_payload())


def crop_names(filters):
    return [row.crop_name for row in CropService.list_crops(filters).items]


def checkout(buyer, crop, quantity, **payload):
    CartService.add(buyer, [{"crop_id": crop.id, "quantity": quantity}])
    return OrderService.checkout(buyer, dict(DELIVERY, payment_method="pay_after_delivery", **payload))


def test_crop_listing_filters(farmer, onion):
    CropService.create(
        farmer,
        crop_payload(
            crop_name="Wheat",
            variety="Lokwan",
            price_per_unit=2600,
            location={"district": "Pune", "state": "Maharashtra"},
        ),
    )

    assert crop_names({"crop_name": "oni"}) == ["Onion"]
    assert crop_names({"min_price": "2500"}) == ["Wheat"]
    assert crop_names({"district": "nashik"}) == ["Onion"]
    assert CropService.list_crops({}).total == 2

    with pytest.raises(ValidationError):
        CropService.create(farmer, crop_payload(variety=""))
    with pytest.raises(ValidationError):
        CropService.create(farmer, crop_payload(description="x" * 501))
    with pytest.raises(ValidationError):
        CropService.create(farmer, crop_payload(unit="bag"))


def test_only_the_seller_changes_a_crop(onion, make_user):
    neighbour = make_user("farmer")
    with pytest.raises(Forbidden):
        CropService.update(onion.id, neighbour, {"quantity": 1})
    with pytest.raises(Forbidden):
        CropService.delete(onion.id, neighbour)

    crop = CropService.update(onion.id, onion.seller, {"quantity": "12.5", "price_per_unit": 2100})
    assert crop.quantity == 12.5
    assert crop.price_per_unit == 2100

    CropService.delete(onion.id, onion.seller)
    with pytest.raises(NotFound):
        CropService.get(onion.id)


def test_crop_with_open_order_cannot_be_deleted(onion, buyer):
    checkout(buyer, onion, 2)
    with pytest.raises(InvalidState):
        CropService.delete(onion.id, onion.seller)


def test_cart_add_update_remove(buyer, onion):
    cart = CartService.add(buyer, [{"crop_id": onion.id, "quantity": 2}, {"crop_id": 9999}, {"crop_id": "abc"}])
    assert [(item.crop_id, item.quantity) for item in cart.items] == [(onion.id, 2)]
    assert cart.items[0].price == 2000

    cart = CartService.add(buyer, [{"item_id": onion.id, "quantity": 3}])
    assert cart.items[0].quantity == 5
    assert cart.total == 10000

    with pytest.raises(ValidationError):
        CartService.update_quantity(buyer, onion.id, 0)
    with pytest.raises(NotFound):
        CartService.update_quantity(buyer, 9999, 1)
    cart = CartService.update_quantity(buyer, onion.id, 4)
    assert cart.items[0].quantity == 4

    cart = CartService.remove(buyer, onion.id)
    assert cart.items == []
    with pytest.raises(ValidationError):
        CartService.add(buyer, [])


def test_checkout_takes_stock_and_clears_cart(buyer, farmer, onion):
    (order,) = checkout(buyer, onion, 3, vehicle_details={"number": "MH12XY4455"})

    assert order.seller_id == farmer.id
    assert order.total_amount == 6000
    assert order.status == "pending"
    assert order.payment_status == "pending"
    assert order.gateway_order_id is None
    assert order.vehicle_details == {"number": "MH12XY4455"}
    assert [(item.crop_name, item.quantity, item.total) for item in order.items] == [("Onion", 3, 6000)]
    assert db.session.get(Crop, onion.id).quantity == 7
    assert Cart.query.filter_by(user_id=buyer.id).one().items == []
    assert Notification.query.filter_by(recipient_id=farmer.id, type="order_placed").count() == 1
    assert Notification.query.filter_by(recipient_id=buyer.id, type="order_placed").count() == 1


def test_checkout_does_not_oversell(buyer, onion, make_user):
    rival = make_user("buyer")
    CartService.add(buyer, [{"crop_id": onion.id, "quantity": 8}])
    CartService.add(rival, [{"crop_id": onion.id, "quantity": 5}])
    OrderService.checkout(buyer, DELIVERY)

    with pytest.raises(InvalidState):
        OrderService.checkout(rival, DELIVERY)
    assert db.session.get(Crop, onion.id).quantity == 2
    assert Order.query.filter_by(buyer_id=rival.id).count() == 0
    assert len(Cart.query.filter_by(user_id=rival.id).one().items) == 1


def test_checkout_requires_address_and_items(buyer, onion, farmer):
    with pytest.raises(ValidationError):
        OrderService.checkout(buyer, DELIVERY)
    CartService.add(buyer, [{"crop_id": onion.id}])
    with pytest.raises(ValidationError):
        OrderService.checkout(buyer, {"delivery_address": {"district": "Pune"}})

    CartService.add(farmer, [{"crop_id": onion.id}])
    with pytest.raises(ValidationError):
        OrderService.checkout(farmer, DELIVERY)


def test_cart_with_two_sellers_becomes_two_orders(buyer, onion, make_user):
    other_farmer = make_user("farmer")
    grapes = CropService.create(
        other_farmer, crop_payload(crop_name="Grapes", variety="Thompson", price_per_unit=5000)
    )
    CartService.add(buyer, [{"crop_id": onion.id, "quantity": 1}, {"crop_id": grapes.id, "quantity": 2}])

    orders = OrderService.checkout(buyer, DELIVERY)
    assert sorted((order.seller_id, order.total_amount) for order in orders) == sorted(
        [(onion.seller_id, 2000), (other_farmer.id, 10000)]
    )


def test_selling_out_and_cancelling_restores_stock(buyer, farmer, onion):
    (order,) = checkout(buyer, onion, 10)
    assert db.session.get(Crop, onion.id).status == "sold"

    OrderService.cancel(order.id, farmer, reason="Truck broke down")
    crop = db.session.get(Crop, onion.id)
    assert crop.quantity == 10
    assert crop.status == "available"
    assert order.status == "cancelled"
    assert order.cancelled_by_id == farmer.id
    notice = Notification.query.filter_by(recipient_id=buyer.id, type="order_cancelled").one()
    assert "Truck broke down" in notice.message

    with pytest.raises(InvalidState):
        OrderService.cancel(order.id, buyer)


def test_order_lifecycle(buyer, farmer, onion):
    (order,) = checkout(buyer, onion, 4)

    with pytest.raises(InvalidState):
        OrderService.mark_picked(order.id, farmer)
    with pytest.raises(Forbidden):
        OrderService.confirm(order.id, buyer)

    OrderService.confirm(order.id, farmer)
    assert OrderService.confirm(order.id, farmer).status == "confirmed"
    with pytest.raises(InvalidState):
        OrderService.complete(order.id, buyer)

    OrderService.mark_picked(order.id, farmer)
    assert order.picked_up_at is not None
    with pytest.raises(Forbidden):
        OrderService.complete(order.id, farmer)

    order = OrderService.complete(order.id, buyer)
    assert order.status == "completed"
    assert order.payment_status == "completed"
    with pytest.raises(InvalidState):
        OrderService.cancel(order.id, buyer)

    for kind in ("order_confirmed", "order_picked"):
        assert Notification.query.filter_by(recipient_id=buyer.id, type=kind).count() == 1
    assert Notification.query.filter_by(recipient_id=farmer.id, type="order_completed").count() == 1

    ((crop, sold),) = CropService.for_seller(farmer.id)
    assert crop.quantity == 6
    assert sold == 4


def test_online_order_payment(buyer, farmer, onion):
    CartService.add(buyer, [{"crop_id": onion.id, "quantity": 1}])
    (order,) = OrderService.checkout(buyer, DELIVERY)
    assert order.payment_method == "razorpay"
    assert "mock" in order.gateway_order_id

    with pytest.raises(NotFound):
        OrderService.verify_payment(order.id, buyer, "order_someone_else", None, None)
    with pytest.raises(Forbidden):
        OrderService.verify_payment(order.id, farmer, order.gateway_order_id, None, None)

    paid = OrderService.verify_payment(order.id, buyer, order.gateway_order_id, None, None)
    assert paid.payment_status == "completed"
    assert paid.gateway_payment_id.startswith("pay_mock_")
    assert Notification.query.filter_by(recipient_id=farmer.id, type="order_paid").count() == 1
    with pytest.raises(InvalidState):
        OrderService.verify_payment(order.id, buyer, order.gateway_order_id, None, None)


def test_product_catalogue(make_user):
    admin = make_user("admin")
    ProductService.create(admin, {"name": "Urea 45kg", "category": "Fertilizers", "price": 266, "brand": "IFFCO"})
    hidden = ProductService.create(admin, {"name": "Old sprayer", "category": "Equipment", "price": 900})
    hidden.is_active = False
    db.session.commit()

    assert [row.name for row in ProductService.list_products({"search": "iffco"})] == ["Urea 45kg"]
    assert [row.name for row in ProductService.list_products({"category": "Fertilizers"})] == ["Urea 45kg"]
    assert ProductService.list_products({"max_price": 100}) == []
    with pytest.raises(NotFound):
        ProductService.get(hidden.id)
    with pytest.raises(ValidationError):
        ProductService.create(admin, {"name": "Mystery", "category": "Snacks", "price": 1})


def test_marketplace_api(client, farmer, buyer, make_user, auth_headers):
    created = client.post("/api/v1/crops", json=crop_payload(), headers=auth_headers(farmer))
    assert created.status_code == 201
    crop_id = created.get_json()["crop"]["id"]
    assert client.post("/api/v1/crops", json=crop_payload(), headers=auth_headers(buyer)).status_code == 403

    listed = client.get("/api/v1/crops?crop_name=onion").get_json()
    assert [row["id"] for row in listed["crops"]] == [crop_id]
    assert client.get(f"/api/v1/crops/{crop_id}").get_json()["crop"]["price_per_unit"] == 2000.0

    cart = client.post(
        "/api/v1/cart/add", json={"items": [{"crop_id": crop_id, "quantity": 2}]}, headers=auth_headers(buyer)
    ).get_json()["cart"]
    assert cart["total"] == 4000.0
    assert client.put(
        "/api/v1/cart/update", json={"item_id": 9999, "quantity": 1}, headers=auth_headers(buyer)
    ).status_code == 404

    placed = client.post(
        "/api/v1/orders", json=dict(DELIVERY, payment_method="pay_after_delivery"), headers=auth_headers(buyer)
    )
    assert placed.status_code == 201
    order_id = placed.get_json()["orders"][0]["id"]
    assert client.get("/api/v1/cart", headers=auth_headers(buyer)).get_json()["cart"]["items"] == []

    mine = client.get("/api/v1/orders/buyer", headers=auth_headers(buyer)).get_json()
    assert [row["id"] for row in mine["orders"]] == [order_id]
    confirmed = client.put(f"/api/v1/orders/{order_id}/confirm", headers=auth_headers(farmer))
    assert confirmed.get_json()["order"]["status"] == "confirmed"
    skipped = client.put(
        f"/api/v1/orders/{order_id}/status", json={"status": "completed"}, headers=auth_headers(buyer)
    )
    assert skipped.status_code == 400

    my_crops = client.get("/api/v1/crops/my-crops", headers=auth_headers(farmer)).get_json()["crops"]
    assert (my_crops[0]["sold_quantity"], my_crops[0]["remaining_quantity"], my_crops[0]["initial_quantity"]) == (
        2.0,
        8.0,
        10.0,
    )

    admin = make_user("admin")
    product = client.post(
        "/api/v1/products",
        json={"name": "Neem oil", "category": "Pesticides", "price": 450},
        headers=auth_headers(admin),
    )
    assert product.status_code == 201
    refused = client.post(
        "/api/v1/products",
        json={"name": "Neem oil", "category": "Pesticides", "price": 450},
        headers=auth_headers(farmer),
    )
    assert refused.status_code == 403
    assert client.get("/api/v1/products").get_json()["count"] == 1
