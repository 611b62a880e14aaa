from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.api.deps import get_actor, get_db, require_role
from app.models.nda import NdaRequest
from app.schemas.nda import NdaDecision, NdaRequestCreate, NdaRequestRead
from app.services.nda_access import status_label
from app.services.nda_documents import documents
from app.services.nda_state_machine import Actor, allowed_actions
from app.services.nda_store import nda_requests
from app.services.nda_workflow import nda_workflow

router = APIRouter(prefix="/nda", tags=["nda"])


def _to_read(
    request: NdaRequest, actor: Actor, warnings: list[str] | None = None
) -> NdaRequestRead:
    read = NdaRequestRead.model_validate(request)
    return read.model_copy(
        update={
            "status_label": status_label(request),
            "allowed_actions": [
                action.value for action in allowed_actions(request.status, actor)
            ],
            "warnings": warnings or [],
        }
    )


@router.post(
    "/requests", response_model=NdaRequestRead, status_code=status.HTTP_201_CREATED
)
def create_request(
    payload: NdaRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> NdaRequestRead:
    outcome = nda_workflow.submit_request(
        db, payload.idea_id, payload.requester_id, payload.email
    )
    return _to_read(outcome.request, actor, outcome.warnings)


@router.get("/requests/{request_id}", response_model=NdaRequestRead)
def get_request(
    request_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> NdaRequestRead:
    return _to_read(nda_requests.get(db, request_id), actor)


@router.post("/admin-action", response_model=NdaRequestRead)
def admin_action(
    payload: NdaDecision,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_role("admin")),
) -> NdaRequestRead:
    outcome = nda_workflow.decide(db, payload.request_id, payload.action, actor)
    return _to_read(outcome.request, actor, outcome.warnings)


@router.post("/upload", response_model=NdaRequestRead)
def upload_signed(
    request_id: str = Form(alias="requestId"),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> NdaRequestRead:
    content = file.file.read()
    outcome = nda_workflow.upload_signed(
        db,
        request_id,
        content,
        file.content_type,
        file_name=file.filename,
    )
    return _to_read(outcome.request, actor, outcome.warnings)


@router.get("/template")
def template_link(
    request_id: str = Query(alias="requestId"), db: Session = Depends(get_db)
) -> RedirectResponse:
    link = documents.get_template_link(db, request_id)
    return RedirectResponse(url=link.url, status_code=status.HTTP_302_FOUND)


@router.get("/signed-document")
def signed_document_link(
    request_id: str = Query(alias="requestId"), db: Session = Depends(get_db)
) -> RedirectResponse:
    link = documents.get_signed_document_link(db, request_id)
    return RedirectResponse(url=link.url, status_code=status.HTTP_302_FOUND)
