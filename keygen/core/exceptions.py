"""Exceptions raised by the key generator, with actionable remedies."""


class KeygenError(Exception):
    """Base exception for the key generator."""
    def __init__(self, message: str, remedy: str = None, error_code: str = None):
        self.message = message
        self.remedy = remedy or "Check the generator configuration and try again."
        self.error_code = error_code or "KEYGEN_ERROR"
        super().__init__(self.message)


class ConfigurationError(KeygenError):
    """The generator cannot be constructed with the resolved settings."""
    def __init__(self, message: str, setting: str = "general"):
        remedies = {
            "node_id": "Set NODE_ID to an integer between 0 and 1023, or unset it to derive one from the network hardware.",
            "epoch": "Set EPOCH to a point in the past, in milliseconds, shared by every node.",
        }

        remedy = remedies.get(setting, "Review config/settings.yaml and the environment.")
        super().__init__(message, remedy, f"CONFIGURATION_{setting.upper()}")
        self.setting = setting


class ClockRegressionError(KeygenError):
    """The wall clock moved backwards relative to the last issued timestamp."""
    def __init__(self, last_timestamp: int, current_timestamp: int):
        self.last_timestamp = last_timestamp
        self.current_timestamp = current_timestamp
        self.regression_ms = last_timestamp - current_timestamp

        message = (
            f"System clock moved backwards by {self.regression_ms} ms "
            f"(last issued timestamp {last_timestamp}, current {current_timestamp})"
        )
        super().__init__(
            message,
            "Check NTP configuration on this host; ids cannot be issued until the clock catches up.",
            "CLOCK_REGRESSION",
        )


class KeysExhaustedError(KeygenError):
    """No pre-generated key remains and none has been requested."""
    def __init__(
        self,
        message: str = "All keys are exhausted",
        remedy: str = "Request more keys with generate_keys() before retrieving them.",
        error_code: str = "KEYS_EXHAUSTED",
    ):
        super().__init__(message, remedy, error_code)


class KeysPendingError(KeysExhaustedError):
    """Keys were requested but none has been generated yet."""
    def __init__(self, pending: int):
        self.pending = pending
        super().__init__(
            f"No key available yet, {pending} still pending",
            "Retry shortly or pass a timeout to get_key().",
            "KEYS_PENDING",
        )
