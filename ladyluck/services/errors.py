INVALID_METHOD = "invalid-method"
COOLDOWN_ACTIVE = "cooldown-active"
INSUFFICIENT_TICKETS = "insufficient-tickets"
INSUFFICIENT_POINTS = "insufficient-points"
PENDING_EXISTS = "pending-exists"
INVALID_INDEX = "invalid-index"
NO_PENDING_ROLL = "no-pending-roll"
CORRUPT_PENDING_DATA = "corrupt-pending-data"
INVALID_AMOUNT = "invalid-amount"

_MESSAGES = {
    INVALID_METHOD: "Invalid payment method",
    COOLDOWN_ACTIVE: "Free roll not available yet",
    INSUFFICIENT_TICKETS: "Not enough Lottery Tickets",
    INSUFFICIENT_POINTS: "Not enough Echo Points",
    PENDING_EXISTS: "You have an unclaimed roll. Pick a chest first!",
    INVALID_INDEX: "Invalid chest index (0-8)",
    NO_PENDING_ROLL: "No pending roll found. Pay first!",
    CORRUPT_PENDING_DATA: "Corrupted pending data",
    INVALID_AMOUNT: "Amount must be positive",
}


class LadyLuckRejection(ValueError):
    """Expected, non-fatal refusal. Routes roll back and report ``reason`` to the client."""

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        self.message = message or _MESSAGES.get(reason, reason)
        super().__init__(self.message)
