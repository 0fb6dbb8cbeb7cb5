"""Stress scenarios for webhook concurrency and rate limiting.

RedeliveryFloodUser fires the same signed callback from many users at
once; exactly one delivery per event may report ``applied``.
ContactFloodUser hammers the strict-policy contact form and expects 429s
with a Retry-After header once the window is exhausted.
"""

import uuid

from locust import HttpUser, constant_pacing, task

from loadtests.data_generators import contact_data, order_data, order_total, payment_callback


class RedeliveryFloodUser(HttpUser):
    """Concurrent duplicate deliveries of one payment event."""

    wait_time = constant_pacing(0.1)

    def on_start(self):
        payload = order_data()
        order_id = self.client.post("/orders", json=payload, name="[STRESS] POST /orders").json()["order_id"]
        intent = self.client.post(
            "/payments/intents", json={"order_id": order_id}, name="[STRESS] POST /payments/intents"
        )
        self.reference = intent.json().get("external_reference") if intent.status_code == 201 else order_id
        self.body, self.headers = payment_callback(
            self.reference, "approved", order_total(payload), event_id=f"evt_flood_{uuid.uuid4().hex[:12]}"
        )

    @task
    def flood(self):
        with self.client.post(
            "/webhooks/payments",
            data=self.body,
            headers=self.headers,
            catch_response=True,
            name="[STRESS] POST /webhooks/payments",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Delivery refused: {resp.status_code}")


class ContactFloodUser(HttpUser):
    """Exceeds the contact form's strict rate limit."""

    wait_time = constant_pacing(0.05)

    @task
    def submit(self):
        with self.client.post(
            "/contact", json=contact_data(), catch_response=True, name="[STRESS] POST /contact"
        ) as resp:
            if resp.status_code == 429:
                if int(resp.headers.get("Retry-After", "0")) <= 0:
                    resp.failure("429 without a positive Retry-After")
                else:
                    resp.success()
            elif resp.status_code != 202:
                resp.failure(f"Unexpected status {resp.status_code}")
