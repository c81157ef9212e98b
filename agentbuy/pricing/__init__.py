"""Currency conversion and platform markup."""

from agentbuy.pricing.calculator import (
    PLATFORM_MARKUP,
    agent_commission,
    bundle_requester_amount,
    requester_amount,
    requester_amount_for,
)

__all__ = [
    "PLATFORM_MARKUP",
    "agent_commission",
    "bundle_requester_amount",
    "requester_amount",
    "requester_amount_for",
]
