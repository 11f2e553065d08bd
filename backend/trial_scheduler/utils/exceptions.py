"""
Custom exception classes
"""


class TrialSchedulerError(Exception):
    """Base class for scheduler errors"""


class StoreError(TrialSchedulerError):
    """Raised when a case-store query or update fails"""
    def __init__(self, operation: str, reason: str = "Unknown error"):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store operation '{operation}' failed: {reason}")


class TransientDeliveryError(TrialSchedulerError):
    """Raised by a delivery backend for a failure worth retrying"""


class InvalidEmailError(TrialSchedulerError):
    """Raised when a recipient address fails validation"""
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Invalid email address: {address!r}")


class IllegalStatusTransition(TrialSchedulerError):
    """Raised when a case status change is not a forward lifecycle move"""
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current} to {target}")


class DeliveryError(TrialSchedulerError):
    """Raised when a recipient missed this cycle (notification or email not delivered)"""
    def __init__(self, recipient: str, channels: list[str]):
        self.recipient = recipient
        self.channels = channels
        super().__init__(f"Recipient {recipient} missed this cycle: {', '.join(channels)} not delivered")
