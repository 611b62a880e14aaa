from app.models.nda import (  # noqa: F401
    ACTIVE_STATUSES,
    Idea,
    NdaRequest,
    NdaStatus,
)
