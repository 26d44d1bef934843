"""
Error taxonomy for a race run.

Per-endpoint failures (SubmissionError, warm-up errors) are caught by the
dispatch workers and turned into RaceOutcome entries. The rest abort the run.
"""


class RaceError(Exception):
    """Base class for everything raised by finality_race."""


class ConfigError(RaceError):
    pass


class NoRpcUrls(ConfigError):
    def __init__(self):
        super().__init__("No RPC URLs provided")


class InsufficientRpcUrls(ConfigError):
    def __init__(self, count):
        super().__init__(f"Insufficient endpoints provided ({count}). Need at least 2.")
        self.count = count


class KeyLoadError(RaceError):
    pass


class InsufficientBalance(RaceError):
    def __init__(self, message, balance=None):
        super().__init__(message)
        self.balance = balance


class SigningError(RaceError):
    pass


class ChainReadError(RaceError):
    """The reference RPC could not be read while preparing the run."""

    def __init__(self, url, cause):
        super().__init__(f"Reading chain state from {url} failed: {cause}")
        self.url = url
        self.cause = cause


class SubmissionError(RaceError):
    """The endpoint did not accept the payload (transport error or node refusal)."""

    def __init__(self, endpoint, cause):
        super().__init__(f"Send via {endpoint} failed: {cause}")
        self.endpoint = endpoint
        self.cause = cause


class NoReadyEndpoints(RaceError):
    def __init__(self, total):
        super().__init__(f"None of the {total} endpoints became ready before the prepare timeout")
        self.total = total


class IncompleteRace(RaceError):
    """Internal invariant violation: the race closed without a full set of outcomes."""
