"""Unit tests for the route table behind CORS verbs, 405 messages and metric labels"""

from fastapi import APIRouter
from splitpay_gateway.api.middleware import RouteTable


def _router() -> APIRouter:
    router = APIRouter()

    @router.post("/chargeCart")
    def charge_cart():
        return {}

    @router.api_route("/dailyRenewalCheck", methods=["GET", "POST"])
    def daily_renewal_check():
        return {}

    @router.get("/customers/{customer_id}")
    def customer(customer_id: str):
        return {}

    return router


def test_verbs_come_from_router_routes_with_prefix():
    table = RouteTable()
    table.add_routes(_router().routes, prefix="/v1")

    assert table.match("/v1/chargeCart") == ("/v1/chargeCart", ["POST"])
    assert table.match("/v1/dailyRenewalCheck") == ("/v1/dailyRenewalCheck", ["GET", "POST"])


def test_path_parameters_match_their_template():
    table = RouteTable()
    table.add_routes(_router().routes, prefix="/v1")

    assert table.match("/v1/customers/cus_123") == ("/v1/customers/{customer_id}", ["GET"])


def test_entries_without_verbs_are_ignored():
    """Test wrapper objects in an app's route list do not break the table"""
    table = RouteTable()
    table.add_routes([object()] + list(_router().routes))

    assert table.match("/chargeCart") == ("/chargeCart", ["POST"])


def test_unknown_path_has_no_template():
    table = RouteTable()
    table.add_routes(_router().routes)

    assert table.match("/wp-login.php") == (None, [])
