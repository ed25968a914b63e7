"""Flat key/value payloads for the APITemplate document templates.

Templates were authored against several field names for the same value
(``dob``/``patient_dob``, ``provider_number``/``provider_no`` ...), so every
alias is filled.
"""

from datetime import date
from typing import Any, Dict, Optional

from medidoc.core.config import ClinicSettings
from medidoc.schemas.documents import DocumentSubtype, MedCertDraftData, PathologyDraftData
from medidoc.utils.dates import format_au_date

MED_CERT_VARIANTS: Dict[DocumentSubtype, Dict[str, str]] = {
    DocumentSubtype.WORK: {
        "cert_title": "Medical Certificate - Work Absence",
        "absence_type": "work",
    },
    DocumentSubtype.UNI: {
        "cert_title": "Medical Certificate - University/School",
        "absence_type": "study",
        "institution_type": "educational institution",
    },
    DocumentSubtype.CARER: {
        "cert_title": "Medical Certificate - Carer's Leave",
        "absence_type": "carer duties",
        "care_recipient": "family member",
    },
}


def clinic_fields(clinic: ClinicSettings) -> Dict[str, str]:
    return {
        "clinic_name": clinic.name,
        "clinic_address": clinic.address,
        "clinic_phone": clinic.phone,
        "clinic_email": clinic.email,
        "clinic_abn": clinic.abn,
    }


def build_med_cert_data(
    draft: MedCertDraftData,
    subtype: DocumentSubtype,
    clinic: ClinicSettings,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Build the template payload for a medical certificate."""
    dob = format_au_date(draft.dob, today)
    date_from = format_au_date(draft.date_from, today)
    date_to = format_au_date(draft.date_to, today)
    issued = format_au_date(draft.created_date, today)
    reason = draft.reason or "Medical condition"
    capacity = draft.work_capacity or "Unable to work"
    notes = draft.notes or ""
    doctor_name = draft.doctor_name or clinic.default_doctor_name
    provider_number = draft.provider_number or clinic.default_provider_number

    data: Dict[str, Any] = {
        "patient_name": draft.patient_name or "Patient Name",
        "patient_dob": dob,
        "dob": dob,
        "reason": reason,
        "condition": reason,
        "date_from": date_from,
        "date_to": date_to,
        "from_date": date_from,
        "to_date": date_to,
        "work_capacity": capacity,
        "capacity": capacity,
        "notes": notes,
        "additional_notes": notes,
        "doctor_name": doctor_name,
        "provider_number": provider_number,
        "provider_no": provider_number,
        "created_date": issued,
        "issue_date": issued,
        "date_issued": issued,
        **clinic_fields(clinic),
        "certificate_type": subtype.value,
        "cert_type": subtype.value,
    }
    data.update(MED_CERT_VARIANTS[subtype])
    return data


def build_pathology_data(
    draft: PathologyDraftData,
    subtype: DocumentSubtype,
    clinic: ClinicSettings,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Build the template payload for a pathology or imaging referral."""
    dob = format_au_date(draft.dob, today)
    issued = format_au_date(draft.created_date, today)
    medicare = draft.medicare_number or "Not provided"
    tests = draft.tests_requested or "As specified"
    indication = draft.clinical_indication or "As clinically indicated"
    duration = draft.symptom_duration or "Not specified"
    previous = draft.previous_tests or "None noted"
    doctor_name = draft.doctor_name or clinic.default_doctor_name
    provider_number = draft.provider_number or clinic.default_provider_number
    is_blood_test = subtype == DocumentSubtype.PATHOLOGY_BLOODS

    return {
        "patient_name": draft.patient_name or "Patient Name",
        "patient_dob": dob,
        "dob": dob,
        "medicare_number": medicare,
        "medicare_no": medicare,
        "tests_requested": tests,
        "requested_tests": tests,
        "clinical_indication": indication,
        "indication": indication,
        "symptom_duration": duration,
        "duration": duration,
        "severity": draft.severity or "Not specified",
        "urgency": draft.urgency or "Routine",
        "previous_tests": previous,
        "prior_tests": previous,
        "imaging_region": draft.imaging_region or "",
        "doctor_name": doctor_name,
        "provider_number": provider_number,
        "provider_no": provider_number,
        "created_date": issued,
        "issue_date": issued,
        "request_date": issued,
        "referral_type": "Pathology Request - Blood Tests" if is_blood_test else "Imaging Request",
        "form_type": "pathology" if is_blood_test else "imaging",
        "is_blood_test": is_blood_test,
        "is_imaging": not is_blood_test,
        **clinic_fields(clinic),
    }
