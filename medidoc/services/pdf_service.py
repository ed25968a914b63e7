"""APITemplate.io integration for PDF generation.

APITemplate only ever returns download URLs that expire after the render
window (60 minutes). Whenever a request ID is known the rendered PDF is
copied into permanent storage; if that copy fails the temporary URL is
handed back flagged as non-permanent so callers and operators can react.

Per call: Requested -> Rendered(temporary) -> Persisted(permanent) or
DegradedFallback(temporary). Nothing is retried here.
"""

from datetime import date
from typing import Any, Dict, Mapping, Optional, Union
from uuid import UUID

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from medidoc.core.config import TEMPLATE_ENV_VARS, APITemplateSettings, ClinicSettings
from medidoc.core.exceptions import (
    ConfigurationError,
    DocumentGenerationError,
    TemplateNotConfiguredError,
    ValidationError,
)
from medidoc.schemas.documents import (
    DocumentFamily,
    DocumentSubtype,
    DraftData,
    GeneratedPdf,
    MedCertDraftData,
    PathologyDraftData,
    TemplateConnectionStatus,
)
from medidoc.services.storage_service import StorageService
from medidoc.services.template_data import build_med_cert_data, build_pathology_data
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)

DRAFT_MODELS = {
    DocumentFamily.MED_CERT: MedCertDraftData,
    DocumentFamily.REFERRAL: PathologyDraftData,
}


class DocumentGenerationService:
    """Renders medical certificates and referrals and persists them.

    Attributes:
        http_client: Shared async HTTP client
        config: APITemplate settings (API key, endpoint, template ids)
        clinic: Static clinic metadata merged into every payload
        storage_service: Storage service used to persist rendered PDFs
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        apitemplate_settings: APITemplateSettings,
        clinic_settings: ClinicSettings,
        storage_service: StorageService,
    ):
        self.http_client = http_client
        self.config = apitemplate_settings
        self.clinic = clinic_settings
        self.storage_service = storage_service
        self.api_url = apitemplate_settings.api_url.rstrip("/")

    # ------------------------------------------------------------------
    # Subtypes and templates
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_subtype(subtype: Union[str, DocumentSubtype, None]) -> DocumentSubtype:
        """Validate a subtype against the supported document subtypes.

        Raises:
            ValidationError: If the subtype is empty or unknown
        """
        if isinstance(subtype, DocumentSubtype):
            return subtype
        normalized = (subtype or "").strip().lower()
        try:
            return DocumentSubtype(normalized)
        except ValueError:
            allowed = ", ".join(item.value for item in DocumentSubtype)
            raise ValidationError(
                f"Unknown document subtype: {subtype!r}. Expected one of: {allowed}"
            )

    def template_id_for(self, subtype: DocumentSubtype) -> str:
        """Look up the vendor template id for a subtype.

        Raises:
            TemplateNotConfiguredError: If no template id is configured
        """
        template_id = self.config.template_id_for(subtype.value)
        if not template_id:
            raise TemplateNotConfiguredError(subtype.value, TEMPLATE_ENV_VARS[subtype.value])
        return template_id

    def configured_templates(self) -> Dict[str, bool]:
        """Report which subtypes have a template id configured."""
        return {subtype: bool(value) for subtype, value in self.config.template_ids.items()}

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    @staticmethod
    def coerce_draft(
        draft_data: Union[DraftData, Mapping[str, Any]],
        subtype: DocumentSubtype,
    ) -> DraftData:
        model = DRAFT_MODELS[subtype.family]
        if isinstance(draft_data, model):
            return draft_data
        if isinstance(draft_data, BaseModel):
            raise ValidationError(
                f"{type(draft_data).__name__} cannot be used for a {subtype.value} document"
            )
        try:
            return model.model_validate(dict(draft_data or {}))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid draft data: {e}", original_error=e)

    def build_template_data(
        self,
        draft: DraftData,
        subtype: DocumentSubtype,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        if subtype.family == DocumentFamily.MED_CERT:
            return build_med_cert_data(draft, subtype, self.clinic, today)
        return build_pathology_data(draft, subtype, self.clinic, today)

    # ------------------------------------------------------------------
    # Vendor calls
    # ------------------------------------------------------------------

    def _require_api_key(self) -> str:
        if not self.config.api_key:
            raise ConfigurationError(
                "PDF service is not configured. Please add APITEMPLATE_API_KEY to environment variables."
            )
        return self.config.api_key

    async def render_pdf(self, template_id: str, data: Dict[str, Any]) -> str:
        """Render a template and return the vendor's temporary download URL.

        Raises:
            DocumentGenerationError: On timeout, transport failure, non-2xx
                response, or a response without ``download_url``
        """
        api_key = self._require_api_key()

        try:
            response = await self.http_client.post(
                f"{self.api_url}/create-pdf",
                headers={"X-API-KEY": api_key},
                json={
                    "template_id": template_id,
                    "export_type": "json",
                    "expiration": self.config.expiration_minutes,
                    "data": data,
                },
                timeout=self.config.render_timeout,
            )
        except httpx.TimeoutException as e:
            LOGGER.error("PDF render timed out", extra={"template_id": template_id})
            raise DocumentGenerationError(
                f"PDF generation failed: render timed out after {self.config.render_timeout}s",
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            LOGGER.error("PDF render request failed", exc_info=True, extra={"template_id": template_id})
            raise DocumentGenerationError(
                f"PDF generation failed: {str(e)}", original_error=e
            ) from e

        if not response.is_success:
            raise DocumentGenerationError(f"PDF generation failed: {self._vendor_error(response)}")

        try:
            result = response.json()
        except ValueError as e:
            raise DocumentGenerationError(
                "PDF generation failed: unreadable response from PDF service", original_error=e
            ) from e

        download_url = result.get("download_url") if isinstance(result, dict) else None
        if not isinstance(download_url, str) or not download_url.strip():
            reason = None
            if isinstance(result, dict):
                reason = result.get("message") or result.get("error")
            raise DocumentGenerationError(
                f"PDF generation failed: {reason or 'no download URL returned'}"
            )

        return download_url.strip()

    @staticmethod
    def _vendor_error(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and (body.get("message") or body.get("error")):
            return str(body.get("message") or body.get("error"))
        return f"PDF service error: {response.status_code} {response.reason_phrase}".strip()

    async def check_connection(self) -> TemplateConnectionStatus:
        """Test the APITemplate connection by listing templates."""
        if not self.config.api_key:
            return TemplateConnectionStatus(success=False, error="API key not configured")

        try:
            response = await self.http_client.get(
                f"{self.api_url}/list-templates",
                headers={"X-API-KEY": self.config.api_key},
                timeout=self.config.render_timeout,
            )
        except httpx.HTTPError as e:
            return TemplateConnectionStatus(success=False, error=str(e) or "Connection failed")

        if response.is_success:
            return TemplateConnectionStatus(success=True)
        return TemplateConnectionStatus(
            success=False, error=f"API returned {response.status_code}: {response.text}"
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_document(
        self,
        draft_data: Union[DraftData, Mapping[str, Any]],
        subtype: Union[str, DocumentSubtype],
        request_id: Optional[Union[str, UUID]] = None,
    ) -> GeneratedPdf:
        """Generate a document PDF and make it permanent when possible.

        Args:
            draft_data: Draft fields (model or mapping) for the subtype's family
            subtype: work, uni, carer, pathology_bloods or pathology_imaging
            request_id: Owning request; without it the PDF cannot be persisted

        Returns:
            GeneratedPdf; ``permanent`` is False when the temporary URL had
            to be returned

        Raises:
            ValidationError: Unknown subtype or malformed draft data
            TemplateNotConfiguredError: No template id for the subtype
            ConfigurationError: Missing API key
            DocumentGenerationError: The vendor produced no document
        """
        resolved = self.resolve_subtype(subtype)
        template_id = self.template_id_for(resolved)
        self._require_api_key()
        draft = self.coerce_draft(draft_data, resolved)
        family = resolved.family
        request_ref = str(request_id) if request_id else None

        LOGGER.info(
            "Generating PDF",
            extra={"subtype": resolved.value, "document_type": family.value, "request_id": request_ref},
        )
        temporary_url = await self.render_pdf(template_id, self.build_template_data(draft, resolved))
        LOGGER.info(
            f"Generated temporary URL (expires in {self.config.expiration_minutes} min)",
            extra={"request_id": request_ref},
        )

        if not request_ref:
            LOGGER.warning(
                "No request_id provided - returning temporary URL that will expire",
                extra={"subtype": resolved.value},
            )
            return GeneratedPdf(
                url=temporary_url,
                permanent=False,
                temporary_url=temporary_url,
                document_type=family,
                subtype=resolved,
            )

        upload = await self.storage_service.upload_from_temporary_url(
            temporary_url, request_ref, family.value, resolved.value
        )

        if not upload.success:
            LOGGER.warning(
                "Failed to persist PDF - returning temporary URL, patient access will expire "
                f"in {self.config.expiration_minutes} minutes",
                extra={
                    "request_id": request_ref,
                    "subtype": resolved.value,
                    "storage_error": upload.error.code.value if upload.error else None,
                },
            )
            return GeneratedPdf(
                url=temporary_url,
                permanent=False,
                temporary_url=temporary_url,
                document_type=family,
                subtype=resolved,
                storage_error=upload.error,
            )

        return GeneratedPdf(
            url=upload.permanent_url,
            permanent=True,
            temporary_url=temporary_url,
            document_type=family,
            subtype=resolved,
            storage_path=upload.storage_path,
        )
