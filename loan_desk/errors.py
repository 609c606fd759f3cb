"""Exceptions raised by the loan desk."""


class LoanDeskError(Exception):
    """Base class for loan desk errors."""


class DataAccessError(LoanDeskError):
    """A read from the loan database failed."""


class RequestSuperseded(LoanDeskError):
    """A balance request was abandoned because a newer one started."""
