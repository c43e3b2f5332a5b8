from fastapi import APIRouter

from childwatch.services.classifier_client import get_classifier_client

router = APIRouter()


@router.get("/ready")
def readiness_probe():
    # Without a classifier key the service still answers, on keyword fallback
    mode = "classifier" if get_classifier_client().is_configured else "keyword-fallback"
    return {"status": "ready", "moderation": mode}


@router.get("/live")
def liveness_probe():
    return {"status": "alive"}
