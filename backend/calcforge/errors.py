"""
Calcforge Exceptions
"""


class CalcforgeError(Exception):
    """Base class for all calcforge errors."""


class SpecValidationError(CalcforgeError):
    """A specification document does not have the required shape."""


class FormulaError(CalcforgeError, ValueError):
    """A formula could not be parsed or evaluated."""


class GenerationInProgressError(CalcforgeError):
    """A generation was requested while another one is still running."""


class RepositoryError(CalcforgeError):
    status_code = 500


class AuthenticationError(RepositoryError):
    status_code = 401


class PermissionDeniedError(RepositoryError):
    status_code = 403


class NotFoundError(RepositoryError):
    status_code = 404


class ConflictError(RepositoryError):
    status_code = 409
