"""Domain exceptions raised by the service layer.

Each class carries the HTTP status the API reports it with; the handler
registered in ``app.main`` does the translation so services never import
FastAPI.
"""


class ERPError(Exception):
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ERPError):
    """Bad numeric or textual input (negative tax rate, zero receipt quantity …)."""

    status_code = 422


class NotFoundError(ERPError):
    """Unknown state name, case id or product id."""

    status_code = 404


class InvalidTransitionError(ERPError):
    """Case state change that is not the single next step."""

    status_code = 409


class ConfigError(ERPError):
    """Required configuration (e.g. the home state) is missing."""

    status_code = 500
