"""Errors raised by the NLU engine and its backends"""


class NLUError(Exception):
    """Base class for NLU errors"""


class InvalidIntentNameError(NLUError):
    """Intent name is empty once sanitized for storage"""


class IntentNotFoundError(NLUError):
    def __init__(self, name: str):
        super().__init__(f"Intent '{name}' does not exist")
        self.name = name


class ModelNotFoundError(NLUError):
    def __init__(self, model_hash: str):
        super().__init__(f"No persisted model for hash '{model_hash}'")
        self.model_hash = model_hash


class InvalidBotIdError(NLUError):
    def __init__(self, bot_id: str):
        super().__init__(f"Invalid bot id '{bot_id}', expected lowercase letters, digits, `_`, `-` or `.`")
        self.bot_id = bot_id


class RetryTimeoutError(NLUError):
    def __init__(self, timeout: float, attempts: int):
        super().__init__(f"Operation timed out after {timeout}s ({attempts} attempts)")
        self.timeout = timeout
        self.attempts = attempts
