# ipd/services/errors.py
"""
Service-layer exceptions. Routers translate them to HTTP status codes:
NotFoundError -> 404, ConflictError -> 409, ValueError -> 400.
"""


class NotFoundError(Exception):
    pass


class ConflictError(Exception):
    pass


class PatientNotFoundError(NotFoundError):
    pass


class BedNotFoundError(NotFoundError):
    pass


class AllocationNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class MedicationNotFoundError(NotFoundError):
    pass
