"""Integration tests for API endpoints"""

import pytest
from datetime import datetime, timezone
from unittest.mock import patch
from fastapi.testclient import TestClient
from splitpay_gateway.api.dependencies import get_stripe_gateway
from splitpay_gateway.config import settings
from splitpay_gateway.domain.exceptions import PaymentProviderError, SheetLoggingError, UserStoreError
from splitpay_gateway.infrastructure.clients.forwarding import UpstreamResponse
from splitpay_gateway.infrastructure.clients.stripe_gateway import StripeGateway


@pytest.fixture
def saved_customer(gateway):
    """Stripe customer with a default card on file"""
    gateway.find_customer_by_email.return_value = {
        "id": "cus_1",
        "invoice_settings": {"default_payment_method": "pm_1"},
    }


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "splitpay_charge_total" in response.text


# HTTP surface


def test_request_metrics_label_unknown_paths_as_unmatched(client: TestClient):
    client.get("/scan-4f1c9a")

    metrics_text = client.get("/metrics").text
    assert 'endpoint="unmatched"' in metrics_text
    assert "scan-4f1c9a" not in metrics_text


def test_preflight_names_route_verbs(client: TestClient):
    response = client.options("/v1/chargeCart")

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
    assert response.headers["Access-Control-Allow-Headers"] == "Content-Type"


def test_preflight_for_get_and_post_route(client: TestClient):
    response = client.options("/v1/dailyRenewalCheck")
    assert response.headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"


def test_wrong_method_is_405_with_cors(client: TestClient):
    response = client.get("/v1/chargeCart")

    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed. Use POST."}
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_wrong_method_names_every_served_verb(client: TestClient):
    response = client.put("/v1/dailyRenewalCheck")

    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed. Use GET or POST."}


def test_malformed_json_is_400(client: TestClient, gateway):
    response = client.post(
        "/v1/chargeCart",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON in request body."}
    gateway.create_payment_intent.assert_not_called()


def test_missing_field_is_named(client: TestClient):
    response = client.post("/v1/chargeCart", json={"email": "jane@example.com"})

    assert response.status_code == 400
    assert "amount" in response.json()["error"]


# chargeCart


def test_charge_cart_splits_and_reports_retained_amount(client: TestClient, gateway, saved_customer):
    """Test 500 total with 100 + 150 transfers retains 250"""
    gateway.create_payment_intent.return_value = {
        "id": "pi_123",
        "status": "succeeded",
        "latest_charge": "ch_123",
        "currency": "usd",
    }
    gateway.create_transfer.side_effect = [
        {"id": "tr_1", "amount": 100, "destination": "acct_a"},
        {"id": "tr_2", "amount": 150, "destination": "acct_b"},
    ]

    response = client.post(
        "/v1/chargeCart",
        json={"email": "jane@example.com", "amount": 500, "transferAmounts": [100, 150]},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["paymentIntentId"] == "pi_123"
    assert data["chargeId"] == "ch_123"
    assert data["transferGroup"].startswith("order_")
    assert data["platformRetainedAmount"] == 250
    assert [t["id"] for t in data["transfersCreated"]] == ["tr_1", "tr_2"]
    assert data["transferErrors"] == []


def test_charge_cart_transfer_failure_still_succeeds(client: TestClient, gateway, saved_customer):
    gateway.create_payment_intent.return_value = {"id": "pi_1", "status": "succeeded", "latest_charge": "ch_1"}
    gateway.create_transfer.side_effect = PaymentProviderError("Insufficient funds in platform balance")

    response = client.post(
        "/v1/chargeCart",
        json={"email": "jane@example.com", "amount": 500, "transferAmounts": [100, 150]},
    )

    data = response.json()
    assert response.status_code == 200
    assert data["transfersCreated"] == []
    assert [e["destination"] for e in data["transferErrors"]] == ["acct_a", "acct_b"]
    assert data["platformRetainedAmount"] == 250


def test_charge_cart_without_customer_is_soft_failure(client: TestClient, gateway):
    gateway.find_customer_by_email.return_value = None

    response = client.post("/v1/chargeCart", json={"email": "nobody@example.com", "amount": 500})

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "No customer found for that email."}
    gateway.create_payment_intent.assert_not_called()


def test_charge_cart_length_mismatch_blocks_charge(client: TestClient, gateway, saved_customer):
    response = client.post(
        "/v1/chargeCart",
        json={"email": "jane@example.com", "amount": 500, "transferAmounts": [100, 100, 100]},
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert "3" in error and "2" in error
    gateway.create_payment_intent.assert_not_called()


def test_charge_cart_exponent_amount_is_400(client: TestClient, gateway, saved_customer):
    response = client.post(
        "/v1/chargeCart",
        json={"email": "jane@example.com", "amount": 500, "transferAmounts": ["1e99999999", "0"]},
    )

    assert response.status_code == 400
    assert "must not exceed" in response.json()["error"]
    gateway.create_payment_intent.assert_not_called()


def test_charge_cart_sum_over_total_blocks_charge(client: TestClient, gateway, saved_customer):
    response = client.post(
        "/v1/chargeCart",
        json={"email": "jane@example.com", "amount": 200, "transferAmounts": [100, 150]},
    )

    assert response.status_code == 400
    gateway.create_payment_intent.assert_not_called()


def test_charge_cart_unconfirmed_payment(client: TestClient, gateway, saved_customer):
    gateway.create_payment_intent.return_value = {"id": "pi_1", "status": "requires_action"}

    response = client.post("/v1/chargeCart", json={"email": "jane@example.com", "amount": 500})

    assert response.status_code == 200
    assert response.json() == {"success": False, "error": "Payment not succeeded. Status=requires_action"}


def test_charge_cart_provider_fault_is_500(client: TestClient, gateway, saved_customer):
    gateway.create_payment_intent.side_effect = PaymentProviderError("Your card was declined.")

    response = client.post("/v1/chargeCart", json={"email": "jane@example.com", "amount": 500})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Your card was declined."}


def test_charge_cart_missing_stripe_key_is_500(client: TestClient):
    client.app.dependency_overrides[get_stripe_gateway] = lambda: StripeGateway(api_key="")

    response = client.post("/v1/chargeCart", json={"email": "jane@example.com", "amount": 500})

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert "STRIPE_SECRET_KEY" in response.json()["error"]


# Other charge variants


def test_charge_one_time_returns_client_secret_and_splits(client: TestClient, gateway):
    gateway.create_payment_intent.return_value = {"id": "pi_1", "client_secret": "pi_1_secret_x"}

    response = client.post(
        "/v1/chargeOneTime",
        json={"amount": 500, "paymentMethodId": "pm_1", "transferAmounts": [100, 150]},
    )

    data = response.json()
    assert response.status_code == 200
    assert data["success"] is True
    assert data["clientSecret"] == "pi_1_secret_x"
    assert data["splits"] == [
        {"destination_account": "acct_a", "amount": 100},
        {"destination_account": "acct_b", "amount": 150},
    ]
    assert gateway.create_payment_intent.call_args.kwargs["confirm"] is False
    gateway.create_transfer.assert_not_called()


def test_charge_one_time_with_customer(client: TestClient, gateway):
    gateway.create_payment_intent.return_value = {"id": "pi_1", "client_secret": "secret"}

    response = client.post(
        "/v1/chargeOneTimeWithCustomer",
        json={"amount": 9900, "paymentMethodId": "pm_1", "customerId": "cus_1"},
    )

    assert response.json() == {"success": True, "clientSecret": "secret"}
    assert gateway.create_payment_intent.call_args.kwargs["customer"] == "cus_1"


def test_create_payment_intent_hides_provider_error(client: TestClient, gateway):
    gateway.create_payment_intent.side_effect = PaymentProviderError("Invalid API Key provided")

    response = client.post("/v1/create-payment-intent", json={"amountInCents": 4599})

    assert response.status_code == 500
    assert response.json() == {"error": "Server error"}


def test_donation_below_minimum_is_400(client: TestClient, gateway):
    response = client.post("/v1/create-payment-intent-donate", json={"amount": "0.50"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid amount. Minimum $1."}
    gateway.create_checkout_session.assert_not_called()


def test_donation_returns_checkout_url(client: TestClient, gateway):
    gateway.create_checkout_session.return_value = {"url": "https://checkout.stripe.com/c/pay/cs_1"}

    response = client.post(
        "/v1/create-payment-intent-donate",
        json={"amount": 20, "coverFee": True, "recurring": True, "interval": "month"},
    )

    assert response.json() == {"url": "https://checkout.stripe.com/c/pay/cs_1"}
    assert gateway.create_checkout_session.call_args.kwargs["line_items"][0]["price_data"]["unit_amount"] == 2060


def test_donation_exponent_amount_is_400(client: TestClient, gateway):
    response = client.post("/v1/create-payment-intent-donate", json={"amount": "1e999999999"})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid amount. Maximum")
    gateway.create_checkout_session.assert_not_called()


# Customers


def test_create_customer_first_call(client: TestClient, gateway, subscribers, make_subscriber):
    subscribers.create_if_absent.return_value = make_subscriber("jane@example,com", None)
    gateway.create_customer.return_value = {"id": "cus_new"}
    subscribers.claim_customer_id.return_value = "cus_new"

    response = client.post("/v1/createCustomer", json={"email": "jane@example.com", "name": "Jane"})

    assert response.json() == {"message": "Stripe customer created successfully", "stripeCustomerId": "cus_new"}


def test_create_customer_store_failure_is_500(client: TestClient, subscribers):
    subscribers.create_if_absent.side_effect = UserStoreError("User store create failed: unavailable")

    response = client.post("/v1/createCustomer", json={"email": "jane@example.com"})

    assert response.status_code == 500
    assert response.json() == {"error": "User store create failed: unavailable"}


def test_find_stripe_unknown_email(client: TestClient, gateway):
    gateway.find_customer_by_email.return_value = None

    response = client.get("/v1/findStripe", params={"email": "nobody@example.com"})

    assert response.json() == {"success": True, "exists": False}


def test_find_stripe_requires_email(client: TestClient):
    response = client.get("/v1/findStripe")
    assert response.status_code == 400


def test_attach_stripe_combined_error(client: TestClient, gateway):
    gateway.set_default_payment_method.side_effect = PaymentProviderError("No such customer: 'cus_x'")

    response = client.post("/v1/attachStripe", json={"customerId": "cus_x", "paymentMethodId": "pm_1"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "No such customer: 'cus_x'"}


def test_set_default_without_customer_is_400(client: TestClient, subscribers):
    subscribers.get_by_email.return_value = None

    response = client.post("/v1/setDefaultPaymentMethod", json={"email": "jane@example.com", "paymentMethodId": "pm_1"})

    assert response.status_code == 400
    assert response.json() == {"error": "User missing stripeCustomerId"}


def test_create_setup_intent(client: TestClient, gateway, subscribers, make_subscriber):
    subscribers.get_by_email.return_value = make_subscriber("jane@example,com", None, customer_id="cus_1")
    gateway.create_setup_intent.return_value = {"client_secret": "seti_secret"}

    response = client.post("/v1/createSetupIntent", json={"email": "jane@example.com"})

    assert response.json() == {"clientSecret": "seti_secret"}


# Subscriptions and renewals


def test_subscribe_requires_positive_prepay(client: TestClient):
    response = client.post(
        "/v1/subscribe",
        json={"email": "jane@example.com", "prepayMonths": 0, "paymentMethodId": "pm_1"},
    )
    assert response.status_code == 400


def test_daily_renewal_check(client: TestClient, gateway, subscribers, make_subscriber):
    paid_until = datetime(2020, 1, 1, tzinfo=timezone.utc)
    subscribers.list_all.return_value = [
        make_subscriber("a@x,com", paid_until, customer_id="cus_a"),
        make_subscriber("b@x,com", paid_until),
    ]
    gateway.retrieve_customer.return_value = {"id": "cus_a", "invoice_settings": {}}
    gateway.create_payment_intent.return_value = {"id": "pi_r", "status": "succeeded"}

    response = client.get("/v1/dailyRenewalCheck")

    assert response.status_code == 200
    assert response.json() == {
        "message": "Renewal check complete. Successes: 1, Failures: 0",
        "processedCount": 1,
        "errorsCount": 0,
        "skippedCount": 1,
    }


def test_daily_renewal_check_store_failure_is_500(client: TestClient, gateway, subscribers):
    subscribers.list_all.side_effect = UserStoreError("User store snapshot read failed: timeout")

    response = client.post("/v1/dailyRenewalCheck")

    assert response.status_code == 500
    assert response.json() == {"error": "User store snapshot read failed: timeout"}
    gateway.create_payment_intent.assert_not_called()


# Webhook


def test_webhook_ignores_other_events(client: TestClient, sheet):
    response = client.post("/v1/stripe-webhook", json={"type": "customer.created", "data": {"object": {"id": "cus_1"}}})

    assert response.status_code == 200
    assert response.text == "ok"
    sheet.append_row.assert_not_called()


def test_webhook_rejects_malformed_event(client: TestClient):
    response = client.post("/v1/stripe-webhook", json={"data": {}})
    assert response.status_code == 400


def test_webhook_rejects_unsigned_event_when_secret_set(client: TestClient, sheet):
    with patch.object(settings, "stripe_webhook_secret", "whsec_test"):
        response = client.post(
            "/v1/stripe-webhook",
            json={"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}},
        )

    assert response.status_code == 400
    assert response.text == "Invalid signature"
    sheet.append_row.assert_not_called()


def test_webhook_row_carries_event_id(client: TestClient, gateway, sheet):
    gateway.retrieve_invoice.return_value = {"id": "in_1", "amount_paid": 500}

    response = client.post(
        "/v1/stripe-webhook",
        json={"id": "evt_9", "type": "invoice.payment_succeeded", "data": {"object": {"id": "in_1"}}},
    )

    assert response.text == "ok"
    assert sheet.append_row.call_args.args[0]["eventId"] == "evt_9"


def test_webhook_sheet_failure_asks_for_redelivery(client: TestClient, gateway, sheet):
    gateway.retrieve_invoice.return_value = {"id": "in_1", "amount_paid": 500}
    sheet.append_row.side_effect = SheetLoggingError("GAS logging failed: 502 Bad Gateway")

    response = client.post(
        "/v1/stripe-webhook",
        json={"type": "invoice.payment_succeeded", "data": {"object": {"id": "in_1"}}},
    )

    assert response.status_code == 500


# Push


def test_save_then_send_push(client: TestClient, push_store, push_sender):
    subscription = {"endpoint": "https://push.example/1", "keys": {"p256dh": "k", "auth": "a"}}
    push_sender.send.return_value = 201

    assert client.post("/v1/saveSubscription", json=subscription).json() == {"saved": True}
    response = client.post("/v1/sendPush", json={"title": "Courts open", "body": "See you there"})

    results = response.json()
    assert response.status_code == 200
    assert [r["status"] for r in results] == ["fulfilled"]
    assert push_sender.send.call_args.args == (subscription, {"title": "Courts open", "body": "See you there"})


# Proxies


def test_gas_proxy_requires_url(client: TestClient):
    response = client.post("/v1/gasProxy", json={})
    assert response.status_code == 400


def test_gas_proxy_blocks_unlisted_host(client: TestClient, forwarding):
    response = client.post("/v1/gasProxy", params={"url": "https://evil.example.com/hook"}, json={})

    assert response.status_code == 400
    forwarding.forward.assert_not_called()


def test_gas_proxy_relays_status_and_content_type(client: TestClient, forwarding):
    forwarding.forward.return_value = UpstreamResponse(status_code=201, body=b'{"ok":true}', content_type="application/json")

    response = client.post(
        "/v1/gasProxy",
        params={"url": "https://script.google.com/macros/s/abc/exec", "sheet": "Orders"},
        json={"row": 1},
    )

    assert response.status_code == 201
    assert response.json() == {"ok": True}
    assert forwarding.forward.call_args.kwargs["params"] == {"sheet": "Orders"}


def test_newsletter_proxy_requires_resource(client: TestClient):
    response = client.get("/v1/beehiiv-proxy")
    assert response.status_code == 400
