from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from kitconsole.config import settings
from kitconsole.templates.validation import PathValidation, validate_install_path
from kitconsole.utils.dependencies import require_development

router = APIRouter(dependencies=[Depends(require_development)])


class PathCheckRequest(BaseModel):
    chosen_url: Optional[str] = Field(None, alias="chosen-url")

    model_config = {"populate_by_name": True}


@router.post("/templates/validate-path", response_model=PathValidation)
async def validate_path(request: PathCheckRequest):
    """Check where a page created from a template would live."""
    views_dir = settings.PROJECT_DIR / "app" / "views"
    return validate_install_path(request.chosen_url, views_dir)
