"""Domain errors shared by the leave and expense apps."""
from rest_framework import status
from rest_framework.exceptions import APIException


class InvalidState(APIException):
    """The request is no longer in a status that allows the transition."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request is not in a state that allows this action.'
    default_code = 'invalid_state'


class InsufficientBalance(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient leave balance.'
    default_code = 'insufficient_balance'

    def __init__(self, leave_type, available, requested):
        self.leave_type = leave_type
        self.available = available
        self.requested = requested
        message = (
            f"Insufficient {leave_type} leave balance: "
            f"{available} day(s) available, {requested} requested."
        )
        super().__init__(message)
        # Numbers stay numbers in the error envelope.
        self.detail = {
            'detail': self.detail,
            'leave_type': leave_type,
            'available': available,
            'requested': requested,
        }
