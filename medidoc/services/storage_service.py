"""Storage service for persisting generated PDFs to Supabase storage.

Every stored object lives at ``{request_id}/{document_type}_{subtype}_{unix_ms}.pdf``
in the documents bucket and is uploaded with upsert disabled, so a public
URL always refers to the same bytes. A path collision is retried exactly
once with a fresh timestamp.

None of the upload operations raise: failures come back as a
``StorageUploadResult`` carrying a tagged ``StorageError`` and the caller
decides whether to fail or fall back.
"""

import time
from typing import Callable, List, NamedTuple, Optional, Tuple
from urllib.parse import quote, unquote, urlparse

import httpx

from medidoc.core.config import SupabaseSettings
from medidoc.core.exceptions import AppError
from medidoc.schemas.storage import StorageError, StorageErrorCode, StorageUploadResult
from medidoc.utils.logging import get_logger

LOGGER = get_logger(__name__)

PDF_SIGNATURE = b"%PDF-"
PDF_CONTENT_TYPE = "application/pdf"
LIST_PAGE_SIZE = 100


def _unix_millis() -> int:
    return int(time.time() * 1000)


class _PutOutcome(NamedTuple):
    ok: bool
    duplicate: bool = False
    message: str = ""


class StorageService:
    """Service for managing generated documents in Supabase storage."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        supabase_settings: SupabaseSettings,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the storage service.

        Args:
            http_client: Shared async HTTP client owned by the application
            supabase_settings: Supabase project and bucket settings
            clock: Millisecond clock used for storage path timestamps
        """
        self.http_client = http_client
        self.config = supabase_settings
        self.bucket = supabase_settings.storage_bucket
        self.max_bytes = supabase_settings.max_document_bytes
        self.download_timeout = supabase_settings.download_timeout
        self.clock = clock or _unix_millis
        self.headers = {
            "Authorization": f"Bearer {supabase_settings.service_role_key}",
            "apikey": supabase_settings.service_role_key,
        }

    # ------------------------------------------------------------------
    # Paths and URLs
    # ------------------------------------------------------------------

    @property
    def public_base_url(self) -> str:
        return self.config.public_bucket_url

    def build_storage_path(
        self,
        request_id: str,
        document_type: str,
        subtype: str,
        timestamp_ms: Optional[int] = None,
    ) -> str:
        timestamp = self.clock() if timestamp_ms is None else timestamp_ms
        return f"{request_id}/{document_type}_{subtype}_{timestamp}.pdf"

    def build_public_url(self, storage_path: str) -> str:
        return f"{self.public_base_url}/{quote(storage_path)}"

    def is_permanent_url(self, url: Optional[str]) -> bool:
        """Check whether a URL points into this project's public documents bucket.

        Dot segments are refused: once normalised they can leave the public
        bucket, e.g. for a signed and therefore expiring object URL.
        """
        if not isinstance(url, str) or not self.config.base_url:
            return False
        prefix = f"{self.public_base_url}/"
        candidate = url.strip()
        if not candidate.startswith(prefix) or len(candidate) == len(prefix):
            return False
        path = candidate[len(prefix):].split("?", 1)[0].split("#", 1)[0]
        return not any(unquote(segment) in (".", "..") for segment in path.split("/"))

    def extract_request_id(self, url: Optional[str]) -> Optional[str]:
        """Recover the owning request ID from a permanent document URL.

        Returns:
            The first path segment after the bucket prefix, or None when the
            URL is not one of ours
        """
        if not self.is_permanent_url(url):
            return None
        remainder = url.strip()[len(self.public_base_url) + 1:]
        remainder = remainder.split("?", 1)[0].split("#", 1)[0]
        request_id = unquote(remainder.split("/", 1)[0])
        return request_id or None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_pdf(self, pdf_bytes: Optional[bytes]) -> Optional[StorageError]:
        """Check size and magic bytes before anything touches the network."""
        if not pdf_bytes:
            return StorageError(
                code=StorageErrorCode.MISSING_INPUT,
                message="PDF content is empty",
            )
        if len(pdf_bytes) > self.max_bytes:
            return StorageError(
                code=StorageErrorCode.SIZE_EXCEEDED,
                message=f"PDF is {len(pdf_bytes)} bytes, limit is {self.max_bytes} bytes",
            )
        if bytes(pdf_bytes[: len(PDF_SIGNATURE)]) != PDF_SIGNATURE:
            return StorageError(
                code=StorageErrorCode.INVALID_FORMAT,
                message="Content is not a PDF (missing %PDF- signature)",
            )
        return None

    @staticmethod
    def _validate_identity(
        request_id: Optional[str],
        document_type: Optional[str],
        subtype: Optional[str],
    ) -> Optional[StorageError]:
        if not request_id or not request_id.strip():
            return StorageError(code=StorageErrorCode.MISSING_INPUT, message="request_id is required")
        if "/" in request_id:
            return StorageError(
                code=StorageErrorCode.MISSING_INPUT,
                message="request_id must be a single path segment",
            )
        if not document_type or not subtype:
            return StorageError(
                code=StorageErrorCode.MISSING_INPUT,
                message="document_type and subtype are required",
            )
        return None

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload_buffer(
        self,
        pdf_bytes: bytes,
        request_id: str,
        document_type: str,
        subtype: str,
    ) -> StorageUploadResult:
        """Upload PDF bytes to permanent storage.

        Args:
            pdf_bytes: PDF content, non-empty and within the size limit
            request_id: Owning request ID, first segment of the storage path
            document_type: Document family (med_cert, referral)
            subtype: Document subtype

        Returns:
            StorageUploadResult with the permanent URL or a tagged error
        """
        error = self._validate_identity(request_id, document_type, subtype) or self.validate_pdf(pdf_bytes)
        if error:
            LOGGER.warning(
                f"Rejected PDF upload: {error.message}",
                extra={"request_id": request_id, "code": error.code.value},
            )
            return StorageUploadResult(success=False, error=error)

        return await self._upload_with_retry(bytes(pdf_bytes), request_id.strip(), document_type, subtype)

    async def upload_from_temporary_url(
        self,
        temporary_url: str,
        request_id: str,
        document_type: str,
        subtype: str,
    ) -> StorageUploadResult:
        """Download a PDF from an expiring URL and upload it permanently.

        Nothing is stored unless the download, validation and upload all
        succeed.
        """
        error = self._validate_identity(request_id, document_type, subtype)
        if error:
            return StorageUploadResult(success=False, error=error)

        if not isinstance(temporary_url, str) or not temporary_url.strip():
            return StorageUploadResult.fail(StorageErrorCode.MISSING_INPUT, "temporary_url is required")

        try:
            parsed = urlparse(temporary_url.strip())
        except ValueError as e:
            return StorageUploadResult.fail(
                StorageErrorCode.INVALID_FORMAT,
                f"temporary_url is malformed: {str(e)}",
            )
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return StorageUploadResult.fail(
                StorageErrorCode.INVALID_FORMAT,
                "temporary_url must be an absolute http(s) URL",
            )

        content, download_error = await self._download(temporary_url.strip())
        if download_error:
            LOGGER.error(
                f"Failed to download PDF: {download_error.message}",
                extra={"request_id": request_id, "status_code": download_error.status_code},
            )
            return StorageUploadResult(success=False, error=download_error)

        return await self.upload_buffer(content, request_id, document_type, subtype)

    async def _download(self, url: str) -> Tuple[Optional[bytes], Optional[StorageError]]:
        """Stream a resource into memory, stopping at the size limit."""
        try:
            async with self.http_client.stream(
                "GET", url, timeout=self.download_timeout, follow_redirects=True
            ) as response:
                if not response.is_success:
                    return None, StorageError(
                        code=StorageErrorCode.DOWNLOAD_FAILED,
                        message=f"Download failed with status {response.status_code}",
                        status_code=response.status_code,
                    )

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self.max_bytes:
                    return None, StorageError(
                        code=StorageErrorCode.SIZE_EXCEEDED,
                        message=f"PDF is {declared} bytes, limit is {self.max_bytes} bytes",
                    )

                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) > self.max_bytes:
                        return None, StorageError(
                            code=StorageErrorCode.SIZE_EXCEEDED,
                            message=f"PDF exceeds limit of {self.max_bytes} bytes",
                        )
                return bytes(buffer), None

        except httpx.TimeoutException:
            return None, StorageError(
                code=StorageErrorCode.DOWNLOAD_FAILED,
                message=f"Download timed out after {self.download_timeout}s",
            )
        except httpx.InvalidURL as e:
            return None, StorageError(
                code=StorageErrorCode.INVALID_FORMAT,
                message=f"temporary_url is malformed: {str(e)}",
            )
        except httpx.HTTPError as e:
            return None, StorageError(
                code=StorageErrorCode.DOWNLOAD_FAILED,
                message=f"Download error: {str(e)}",
            )

    async def _upload_with_retry(
        self,
        pdf_bytes: bytes,
        request_id: str,
        document_type: str,
        subtype: str,
    ) -> StorageUploadResult:
        timestamp = self.clock()
        storage_path = self.build_storage_path(request_id, document_type, subtype, timestamp)
        outcome = await self._put_object(storage_path, pdf_bytes)

        if outcome.duplicate:
            LOGGER.warning(
                "Storage path already exists, retrying with a new timestamp",
                extra={"request_id": request_id, "path": storage_path},
            )
            timestamp = max(self.clock(), timestamp + 1)
            storage_path = self.build_storage_path(request_id, document_type, subtype, timestamp)
            outcome = await self._put_object(storage_path, pdf_bytes)
            if outcome.duplicate:
                return StorageUploadResult.fail(
                    StorageErrorCode.UPLOAD_FAILED,
                    f"Storage path collision after retry: {storage_path}",
                )

        if not outcome.ok:
            return StorageUploadResult.fail(StorageErrorCode.UPLOAD_FAILED, outcome.message)

        permanent_url = self.build_public_url(storage_path)
        LOGGER.info(
            "PDF stored permanently",
            extra={"request_id": request_id, "path": storage_path, "size": len(pdf_bytes)},
        )
        return StorageUploadResult.ok(permanent_url=permanent_url, storage_path=storage_path)

    async def _put_object(self, storage_path: str, content: bytes) -> _PutOutcome:
        upload_url = f"{self.config.object_api_url}/{self.bucket}/{quote(storage_path)}"
        try:
            response = await self.http_client.post(
                upload_url,
                headers={
                    **self.headers,
                    "Content-Type": PDF_CONTENT_TYPE,
                    "cache-control": f"max-age={self.config.cache_control}",
                    "x-upsert": "false",
                },
                content=content,
            )
        except httpx.TimeoutException:
            LOGGER.error("Storage upload timed out", extra={"bucket": self.bucket, "path": storage_path})
            return _PutOutcome(ok=False, message="Storage upload timed out")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            LOGGER.error(f"Error uploading file to Supabase: {str(e)}", exc_info=True)
            return _PutOutcome(ok=False, message=f"Storage upload error: {str(e)}")

        if response.status_code == 200:
            return _PutOutcome(ok=True)

        if self._is_duplicate(response):
            return _PutOutcome(ok=False, duplicate=True, message="The resource already exists")

        LOGGER.error(
            f"Failed to upload file to Supabase: {response.text}",
            extra={"bucket": self.bucket, "path": storage_path, "status_code": response.status_code}
        )
        return _PutOutcome(ok=False, message=f"Upload failed: {response.text}")

    @staticmethod
    def _is_duplicate(response: httpx.Response) -> bool:
        if response.status_code == 409:
            return True
        try:
            body = response.json()
        except ValueError:
            return "already exists" in response.text.lower()
        if not isinstance(body, dict):
            return False
        return (
            str(body.get("statusCode")) == "409"
            or body.get("error") == "Duplicate"
            or "already exists" in str(body.get("message", "")).lower()
        )

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_request_documents(self, request_id: str) -> List[str]:
        """List storage paths stored under a request's prefix.

        Args:
            request_id: Request ID

        Returns:
            Storage paths, oldest name first

        Raises:
            AppError: If the listing call fails
        """
        list_url = f"{self.config.object_api_url}/list/{self.bucket}"
        paths: List[str] = []
        offset = 0
        while True:
            try:
                response = await self.http_client.post(
                    list_url,
                    headers=self.headers,
                    json={
                        "prefix": request_id,
                        "limit": LIST_PAGE_SIZE,
                        "offset": offset,
                        "sortBy": {"column": "name", "order": "asc"},
                    },
                )
            except httpx.HTTPError as e:
                LOGGER.error(f"Error listing storage objects: {str(e)}", exc_info=True)
                raise AppError(f"Storage list error: {str(e)}", original_error=e)

            if response.status_code != 200:
                LOGGER.error(
                    f"Failed to list storage objects: {response.text}",
                    extra={"bucket": self.bucket, "prefix": request_id, "status_code": response.status_code}
                )
                raise AppError(f"Storage list failed: {response.text}")

            page = response.json()
            paths.extend(f"{request_id}/{item['name']}" for item in page if item.get("name"))
            if len(page) < LIST_PAGE_SIZE:
                return paths
            offset += LIST_PAGE_SIZE
