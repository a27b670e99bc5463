"""
Prompt Template API Routes
Admin endpoints for the system prompt templates rendered by Agent 3:
listing, creation, partial updates, soft or hard deletion, default
selection and a render preview with sample values.
"""

from string import Formatter
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from knock.agents.prompt_assembly import PromptAssemblyStage, count_tokens
from knock.api.deps import get_pool_store
from knock.schemas.data_pool import (
    PromptTemplateCreate, PromptTemplateUpdate, PromptTemplateResponse,
    TemplatePreviewRequest, TemplatePreviewResponse,
)
from knock.services.data_pool import SQLDataPoolStore

router = APIRouter()


class _PreviewVariables(dict):
    """Leaves unknown placeholders in place and remembers their names."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.missing = set()

    def __missing__(self, key):
        self.missing.add(key)
        return "{" + key + "}"


def _section_errors(sections: dict) -> List[str]:
    """Sections whose placeholder syntax str.format cannot parse."""
    errors = []
    for key, source in sections.items():
        try:
            list(Formatter().parse(source))
        except ValueError as e:
            errors.append(f'Section "{key}": {e}')
    return errors


@router.get("", response_model=List[PromptTemplateResponse])
async def list_templates(
    active_only: bool = False,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """List prompt templates, newest first."""
    return pool_store.list_templates(active_only=active_only)


@router.get("/{template_id}", response_model=PromptTemplateResponse)
async def get_template(
    template_id: str,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """Get a template by ID."""
    template = pool_store.get_template(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


@router.post("", response_model=PromptTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: PromptTemplateCreate,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """Create a new prompt template."""
    if data.id and pool_store.get_template(data.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Template already exists: {data.id}")

    errors = _section_errors(data.sections)
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid template syntax", "details": errors},
        )

    return pool_store.create_template(data)


@router.post("/{template_id}/default", response_model=PromptTemplateResponse)
async def set_default_template(
    template_id: str,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """Make a template the default used when a run names none."""
    template = pool_store.set_default_template(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


@router.patch("/{template_id}", response_model=PromptTemplateResponse)
async def update_template(
    template_id: str,
    data: PromptTemplateUpdate,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """Update a template. Changed sections bump the minor version unless one is given."""
    template = pool_store.get_template(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    if data.is_active is False and template.is_default:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot deactivate the default template")

    if data.sections is not None:
        errors = _section_errors(data.sections)
        if errors:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "Invalid template syntax", "details": errors},
            )

    return pool_store.update_template(template_id, data)


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    hard_delete: bool = False,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """Deactivate a template, or remove it with `hard_delete=true`."""
    template = pool_store.get_template(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    if template.is_default:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete the default template")

    pool_store.delete_template(template_id, hard=hard_delete)
    action = "deleted" if hard_delete else "deactivated"
    return {"message": f"Template {action}", "id": template_id}


@router.post("/{template_id}/preview", response_model=TemplatePreviewResponse)
async def preview_template(
    template_id: str,
    data: TemplatePreviewRequest,
    pool_store: SQLDataPoolStore = Depends(get_pool_store),
):
    """Render a template with sample values. Unknown placeholders are left in place and reported."""
    template = pool_store.get_template(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")

    variables = _PreviewVariables({"character_name": data.character_name, **data.variables})
    assembler = PromptAssemblyStage(pool_store)
    sections = assembler.render_sections(template, variables)
    full_prompt = assembler.build_final_prompt(sections, data.character_name)

    return TemplatePreviewResponse(
        template_id=template.id,
        template_name=template.name,
        template_version=template.version,
        sections=sections,
        full_prompt=full_prompt,
        missing_variables=sorted(variables.missing),
        character_count=len(full_prompt),
        token_count=count_tokens(full_prompt),
    )
