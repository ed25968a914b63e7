"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time, so the environment is pinned first
os.environ.update({
    "ENVIRONMENT": "test",
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-service-role-key",
    "SUPABASE_STORAGE_BUCKET": "documents",
    "APITEMPLATE_API_KEY": "test-api-key",
    "APITEMPLATE_MEDCERT_WORK_TEMPLATE_ID": "tpl-work",
    "APITEMPLATE_MEDCERT_UNI_TEMPLATE_ID": "tpl-uni",
    "APITEMPLATE_MEDCERT_CARER_TEMPLATE_ID": "tpl-carer",
    "APITEMPLATE_PATHOLOGY_BLOODS_TEMPLATE_ID": "tpl-bloods",
    "APITEMPLATE_ENABLED_SUBTYPES": "",
})
os.environ.pop("APITEMPLATE_PATHOLOGY_IMAGING_TEMPLATE_ID", None)

from typing import Callable, List  # noqa: E402
from unittest.mock import AsyncMock, Mock  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from medidoc.core.config import APITemplateSettings, ClinicSettings, SupabaseSettings  # noqa: E402
from medidoc.services.storage_service import StorageService  # noqa: E402

SUPABASE_URL = "https://test.supabase.co"
PUBLIC_PREFIX = f"{SUPABASE_URL}/storage/v1/object/public/documents"
UPLOAD_PREFIX = f"{SUPABASE_URL}/storage/v1/object/documents"
FIXED_MILLIS = 1700000000000

# Minimal valid PDF header
PDF_BYTES = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<\n/Type /Catalog\n/Pages 2 0 R\n>>\nendobj\n"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    def requests_to(self, method: str, prefix: str) -> List[httpx.Request]:
        return [
            request for request in self.requests
            if request.method == method and str(request.url).startswith(prefix)
        ]


@pytest.fixture
def sample_pdf_content() -> bytes:
    """Sample PDF content for testing.

    Returns:
        bytes: Sample PDF content
    """
    return PDF_BYTES


@pytest.fixture
def public_prefix() -> str:
    """Prefix of every permanent document URL in the test project."""
    return PUBLIC_PREFIX


@pytest.fixture
def upload_prefix() -> str:
    return UPLOAD_PREFIX


@pytest.fixture
def fixed_millis() -> int:
    return FIXED_MILLIS


@pytest.fixture
def supabase_settings() -> SupabaseSettings:
    return SupabaseSettings()


@pytest.fixture
def apitemplate_settings() -> APITemplateSettings:
    return APITemplateSettings()


@pytest.fixture
def clinic_settings() -> ClinicSettings:
    return ClinicSettings()


@pytest.fixture
def make_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    """Factory for recording transports wrapping a request handler."""
    return RecordingTransport


@pytest.fixture
def make_storage_service(supabase_settings):
    """Factory for a storage service talking to a recording transport."""

    def factory(transport: httpx.MockTransport, settings: SupabaseSettings = None) -> StorageService:
        return StorageService(
            httpx.AsyncClient(transport=transport),
            settings or supabase_settings,
            clock=lambda: FIXED_MILLIS,
        )

    return factory


@pytest.fixture
def mock_session():
    """Create a mock database session."""
    session = AsyncMock(spec=AsyncSession)
    session.add = Mock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    return session
