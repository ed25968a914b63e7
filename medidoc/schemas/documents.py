"""Document families, draft data and generation results."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from medidoc.schemas.storage import StorageError


class DocumentFamily(str, Enum):
    """Document family; the value is the ``type`` stored on document rows."""

    MED_CERT = "med_cert"
    REFERRAL = "referral"


class DocumentSubtype(str, Enum):
    WORK = "work"
    UNI = "uni"
    CARER = "carer"
    PATHOLOGY_BLOODS = "pathology_bloods"
    PATHOLOGY_IMAGING = "pathology_imaging"

    @property
    def family(self) -> DocumentFamily:
        return SUBTYPE_FAMILIES[self]


SUBTYPE_FAMILIES: Dict[DocumentSubtype, DocumentFamily] = {
    DocumentSubtype.WORK: DocumentFamily.MED_CERT,
    DocumentSubtype.UNI: DocumentFamily.MED_CERT,
    DocumentSubtype.CARER: DocumentFamily.MED_CERT,
    DocumentSubtype.PATHOLOGY_BLOODS: DocumentFamily.REFERRAL,
    DocumentSubtype.PATHOLOGY_IMAGING: DocumentFamily.REFERRAL,
}


class MedCertDraftData(BaseModel):
    """Editable fields of a medical certificate draft."""

    model_config = ConfigDict(extra="ignore")

    patient_name: Optional[str] = None
    dob: Optional[str] = Field(default=None, description="ISO date of birth")
    reason: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    work_capacity: Optional[str] = None
    notes: Optional[str] = None
    doctor_name: Optional[str] = None
    provider_number: Optional[str] = None
    created_date: Optional[str] = Field(default=None, description="YYYY-MM-DD issue date")


class PathologyDraftData(BaseModel):
    """Editable fields of a pathology or imaging referral draft."""

    model_config = ConfigDict(extra="ignore")

    patient_name: Optional[str] = None
    dob: Optional[str] = None
    medicare_number: Optional[str] = None
    tests_requested: Optional[str] = None
    clinical_indication: Optional[str] = None
    symptom_duration: Optional[str] = None
    severity: Optional[str] = None
    urgency: Optional[Literal["Routine", "Soon", "Urgent", "ASAP"]] = None
    previous_tests: Optional[str] = None
    imaging_region: Optional[str] = None
    doctor_name: Optional[str] = None
    provider_number: Optional[str] = None
    created_date: Optional[str] = None


DraftData = Union[MedCertDraftData, PathologyDraftData]


class GeneratedPdf(BaseModel):
    """Outcome of one generation call.

    ``permanent`` is False on the degraded paths, where ``url`` is the
    vendor's expiring link.
    """

    url: str
    permanent: bool
    temporary_url: str = Field(..., description="Vendor download URL, expires after the render window")
    document_type: DocumentFamily
    subtype: DocumentSubtype
    storage_path: Optional[str] = None
    storage_error: Optional[StorageError] = None


class TemplateConnectionStatus(BaseModel):
    success: bool
    error: Optional[str] = None


class IssueDocumentRequest(BaseModel):
    """Body of the document issuance endpoint."""

    subtype: DocumentSubtype
    draft: Dict[str, Any] = Field(default_factory=dict)


class DocumentRecord(BaseModel):
    """Public view of a ``documents`` row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    request_id: UUID
    type: str
    subtype: str
    pdf_url: str
    created_at: Optional[datetime] = None


class IssuedDocument(BaseModel):
    document: DocumentRecord
    pdf: GeneratedPdf


class RepersistResult(BaseModel):
    """Outcome of copying a request's latest document into permanent storage."""

    repersisted: bool
    already_permanent: bool = False
    document: Optional[DocumentRecord] = None
    storage_error: Optional[StorageError] = None
