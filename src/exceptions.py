class BillingException(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationException(BillingException):
    status_code = 400


class ResourceNotFoundException(BillingException):
    status_code = 404


class ConflictException(BillingException):
    status_code = 409


class StoreException(BillingException):
    status_code = 500


class PartialFailureException(BillingException):
    """
    A multi-step write failed after earlier steps were committed and the
    store was left in a state that needs manual reconciliation.

    original_error: the error that stopped the forward steps
    compensation_errors: errors raised while undoing committed steps
    mutated: identifiers of records that stay changed
    """
    status_code = 500

    def __init__(self, message, original_error=None, compensation_errors=None, mutated=None):
        super().__init__(message)
        self.original_error = original_error
        self.compensation_errors = list(compensation_errors or [])
        self.mutated = list(mutated or [])
