"""Error taxonomy for the response/aggregate core.

Every error carries enough structure for a host to pick a transport status:
``code`` is a stable machine name, ``status_code`` an HTTP hint and
``retryable`` tells the caller whether re-running the operation may succeed.
"""
from typing import Dict, List, Optional


class NpsCoreError(Exception):
    code = "error"
    status_code = 500
    retryable = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict:
        return {"detail": self.detail, "code": self.code, "retryable": self.retryable}


class NotFound(NpsCoreError):
    """Survey/customer/campaign/response id does not resolve in the organization scope."""

    code = "not_found"
    status_code = 404


class InvalidState(NpsCoreError):
    code = "invalid_state"
    status_code = 400


class SurveyNotAcceptingResponses(InvalidState):
    code = "survey_not_accepting_responses"

    def __init__(self, survey_id: str, status: str):
        super().__init__("This survey is not currently accepting responses")
        self.survey_id = survey_id
        self.status = status


class ValidationError(NpsCoreError):
    code = "validation_error"
    status_code = 422

    def __init__(self, errors: List[Dict[str, str]], detail: Optional[str] = None):
        super().__init__(detail or "Invalid input")
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}], detail=message)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class PersistenceError(NpsCoreError):
    """Storage failure; the transaction was rolled back and the call may be retried."""

    code = "persistence_error"
    status_code = 503
    retryable = True


class DuplicateCustomerError(NpsCoreError):
    """Raised by a store when (organization_id, email) already exists.

    Never reaches callers of the core: the ingestion coordinator re-reads the
    existing row instead.
    """

    code = "duplicate_customer"
    status_code = 409

    def __init__(self, organization_id: str, email: str):
        super().__init__(f"Customer {email} already exists")
        self.organization_id = organization_id
        self.email = email
