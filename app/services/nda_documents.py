import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import InvalidState, InvalidTransition, StaleState, ValidationError
from app.models.nda import NdaRequest, NdaStatus
from app.services.nda_state_machine import (
    SYSTEM_ACTOR,
    NdaAction,
    SideEffect,
    state_machine,
)
from app.services.nda_storage import storage
from app.services.nda_store import nda_requests

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF-"
JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@dataclass(frozen=True)
class SignedLink:
    url: str
    expires_in: int


@dataclass(frozen=True)
class UploadResult:
    request: NdaRequest
    storage_key: str
    side_effects: tuple[SideEffect, ...]


def get_allowed_types() -> set[str]:
    return {t.strip() for t in settings.nda_upload_allowed_types.split(",") if t.strip()}


def validate_signed_upload(content: bytes, content_type: str | None) -> None:
    allowed_types = get_allowed_types()
    if content_type not in allowed_types:
        raise ValidationError(
            f"Invalid file type. Allowed: {', '.join(sorted(allowed_types))}",
            details={"content_type": content_type},
        )
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > settings.nda_upload_max_bytes:
        raise ValidationError(
            f"File too large. Maximum size: {settings.nda_upload_max_bytes // 1024 // 1024}MB",
            details={"size": len(content)},
        )

    detected_type = _detect_content_type_from_magic(content[:16])
    if detected_type != content_type:
        raise ValidationError(
            "File content does not match declared content type.",
            details={"content_type": content_type, "detected": detected_type},
        )


def _detect_content_type_from_magic(file_header: bytes) -> str | None:
    if file_header.startswith(PDF_SIGNATURE):
        return "application/pdf"
    if file_header.startswith(PNG_SIGNATURE):
        return "image/png"
    if file_header.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    return None


class DocumentExchange:
    @staticmethod
    def get_template_link(db: Session, request_id) -> SignedLink:
        nda = nda_requests.get(db, request_id)
        if nda.status == NdaStatus.rejected:
            raise InvalidState(
                "This NDA request was rejected.",
                details={"status": nda.status.value},
                status_code=403,
            )
        ttl = settings.nda_template_link_ttl_seconds
        url = storage.generate_template_url(ttl)
        logger.info("Issued template link for NDA request %s", nda.id)
        return SignedLink(url=url, expires_in=ttl)

    @staticmethod
    def accept_signed_upload(
        db: Session,
        request_id,
        content: bytes,
        content_type: str | None,
        file_name: str | None = None,
        now: datetime | None = None,
    ) -> UploadResult:
        nda = nda_requests.get(db, request_id)
        if nda.signed_document_path:
            raise InvalidState(
                "Signed NDA already uploaded.",
                details={"status": nda.status.value},
            )
        if nda.status != NdaStatus.approved:
            raise InvalidState(
                "NDA upload not allowed yet. Admin must approve the request first.",
                details={"status": nda.status.value},
            )
        validate_signed_upload(content, content_type)

        storage_key = storage.generate_storage_key(str(nda.id), file_name)
        storage.put_object(storage_key, content, content_type)

        try:
            signed = state_machine.apply(
                db,
                nda.id,
                NdaAction.upload_signed,
                SYSTEM_ACTOR,
                now=now,
                signed_document_path=storage_key,
            )
        except (StaleState, InvalidTransition) as e:
            _discard_blob(storage_key)
            raise InvalidState(
                "NDA request changed while the upload was in progress.",
                details={"reason": e.message},
            )

        # Auto-verify on successful upload; there is no manual signature check.
        verified = state_machine.apply(
            db, nda.id, NdaAction.verify, SYSTEM_ACTOR, now=now
        )
        logger.info(
            "Accepted signed NDA for request %s; access until %s",
            nda.id,
            verified.request.access_expires_at,
        )
        return UploadResult(
            request=verified.request,
            storage_key=storage_key,
            side_effects=signed.side_effects + verified.side_effects,
        )

    @staticmethod
    def get_signed_document_link(db: Session, request_id) -> SignedLink:
        nda = nda_requests.get(db, request_id)
        if (
            nda.status not in (NdaStatus.signed, NdaStatus.verified)
            or not nda.signed_document_path
        ):
            raise InvalidState(
                "No signed NDA uploaded yet.",
                details={"status": nda.status.value},
                status_code=403,
            )
        ttl = settings.nda_signed_link_ttl_seconds
        url = storage.generate_download_url(nda.signed_document_path, ttl)
        logger.info("Issued signed document link for NDA request %s", nda.id)
        return SignedLink(url=url, expires_in=ttl)


def _discard_blob(storage_key: str) -> None:
    try:
        storage.delete_object(storage_key)
    except Exception as e:
        logger.warning("Failed to remove orphaned upload %s: %s", storage_key, e)


documents = DocumentExchange()
