class DashboardError(Exception):
    """Base error for the factor score services. Carries the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(DashboardError):
    status_code = 400


class NotFoundError(DashboardError):
    status_code = 404
