"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state; nothing is shared across
users.
"""

from dataclasses import dataclass


@dataclass
class OrderState:
    """Tracks one simulated order from placement to payment feedback."""

    order_id: str | None = None
    amount: str = "0.00"
    payment_reference: str | None = None
    current_status: str = "Created"
