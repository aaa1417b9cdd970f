"""
Insights Error Taxonomy

- InvalidInputError: bad caller input, reported as a client error
- ComputationError: store failure or timeout, reported as a generic failure

Empty result sets are never errors.
"""


class InsightsError(Exception):
    """Base class for insights engine errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(InsightsError):
    """Malformed date, inverted range, bad limit or missing organization"""
    pass


class ComputationError(InsightsError):
    """Row store failure or request timeout"""

    def __init__(self, message: str = "Failed to compute insights"):
        super().__init__(message)
