from enum import Enum
from typing import Optional

from pydantic import BaseModel


class PackageState(str, Enum):
    DRAFT = "draft"
    TRANSMITTED = "transmitted"
    ACKNOWLEDGED = "acknowledged"


class PackageEvent(str, Enum):
    SEND = "send"
    ACKNOWLEDGE = "acknowledge"


class CriterionType(str, Enum):
    SIRET = "siret"
    ORGANIZATION_ID = "organization_id"
    SUBSCRIPTION_ID = "subscription_id"


class TransmissionError(str, Enum):
    NOT_DRAFT = "not_draft"
    NO_COMPLETED_ATTACHMENTS = "no_completed_attachments"
    NO_RECIPIENTS = "no_recipients"
    CONSTRAINT_VIOLATION = "constraint_violation"


# Organization tax identifier: exactly 14 ASCII digits
SIRET_PATTERN = r"^[0-9]{14}$"


class ErrorBody(BaseModel):
    """Body of every error answer: a stable code and a human-readable detail."""
    code: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorBody
