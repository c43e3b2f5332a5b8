from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from childwatch.schemas.moderation import PolicyContractError
from childwatch.schemas.parent import ParentCreate, PolicyUpdate
from childwatch.services import monitoring

router = APIRouter()


@router.post("", status_code=201)
def create_parent(parent: ParentCreate):
    """Register a parent account with default sensitivity thresholds."""
    doc = monitoring.get_monitoring_service().create_parent(parent.name, parent.device_tokens)
    return {"parent": doc}


@router.get("/{parent_id}/settings")
def get_parent_settings(parent_id: str):
    try:
        policy = monitoring.get_monitoring_service().get_policy(parent_id)
    except monitoring.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (PolicyContractError, ValidationError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"settings": policy}


@router.put("/{parent_id}/settings")
def update_parent_settings(parent_id: str, update: PolicyUpdate):
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    try:
        policy = monitoring.get_monitoring_service().update_policy(parent_id, changes)
    except monitoring.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (PolicyContractError, ValidationError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"settings": policy}
