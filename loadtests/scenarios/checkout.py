"""Checkout load test scenarios.

A customer places an order, asks for a payment intent and the gateway
answers with a signed callback, then redelivers it the way real gateways
do. Every redelivery must come back as ``duplicate``.
"""

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import order_data, order_total, payment_callback
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderState


class CheckoutJourney(SequentialTaskSet):
    """Place Order -> Payment Intent -> Approved Callback -> Redeliveries."""

    redeliveries = 3

    def on_start(self):
        self.state = OrderState()

    @task
    def place_order(self):
        payload = order_data()
        self.state.amount = order_total(payload)
        with self.client.post("/orders", json=payload, catch_response=True, name="POST /orders") as resp:
            if resp.status_code == 201:
                self.state.order_id = resp.json()["order_id"]
            else:
                resp.failure(f"Place order failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def create_intent(self):
        with self.client.post(
            "/payments/intents",
            json={"order_id": self.state.order_id},
            catch_response=True,
            name="POST /payments/intents",
        ) as resp:
            if resp.status_code == 201:
                self.state.payment_reference = resp.json()["external_reference"]
                self.state.current_status = "AwaitingPayment"
            elif resp.status_code == 429:
                resp.success()
                self.interrupt()
            else:
                resp.failure(f"Intent failed: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def approved_callback(self):
        body, headers = payment_callback(self.state.payment_reference, "approved", self.state.amount)
        with self.client.post(
            "/webhooks/payments",
            data=body,
            headers=headers,
            catch_response=True,
            name="POST /webhooks/payments",
        ) as resp:
            if resp.status_code == 200 and resp.json()["status"] == "applied":
                self.state.current_status = "Paid"
            else:
                resp.failure(f"Callback not applied: {resp.status_code} {extract_error_detail(resp)}")
                self.interrupt()
        self._body, self._headers = body, headers

    @task
    def redeliver(self):
        for _ in range(self.redeliveries):
            with self.client.post(
                "/webhooks/payments",
                data=self._body,
                headers=self._headers,
                catch_response=True,
                name="POST /webhooks/payments (redelivery)",
            ) as resp:
                if resp.status_code != 200 or resp.json()["status"] != "duplicate":
                    resp.failure(f"Redelivery reapplied: {resp.status_code} {resp.text[:200]}")

    @task
    def done(self):
        self.interrupt()


class CheckoutUser(HttpUser):
    tasks = [CheckoutJourney]
    wait_time = between(0.5, 2)
