"""
Service-level exceptions.
Raised by the store, importer and certificate code; the blueprint error
handlers in app.py translate them into JSON responses.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None, errors=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or []

    def to_dict(self):
        body = {'message': self.message}
        if self.errors:
            body['errors'] = list(self.errors)
        return body


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class CertificateError(ServiceError):
    """Certificate rendering failed; nothing is persisted."""
    status_code = 500
