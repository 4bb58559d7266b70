"""Errors raised by ledger reads and account decoding."""


class LedgerError(Exception):
    """Base error for ledger reads"""
    pass


class LedgerRequestError(LedgerError):
    """RPC call failed (transport error or error response)"""

    def __init__(self, method: str, message: str):
        super().__init__(f"{method}: {message}")
        self.method = method


class LedgerTimeoutError(LedgerRequestError):
    """RPC call did not finish within the configured timeout"""

    def __init__(self, method: str, timeout: float):
        super().__init__(method, f"timed out after {timeout}s")
        self.timeout = timeout


class AccountNotFoundError(LedgerError):
    """Single-account read returned no account"""

    def __init__(self, address: str):
        super().__init__(f"account {address} not found")
        self.address = address


class AccountDecodeError(LedgerError):
    """Account payload does not match the expected layout"""
    pass
