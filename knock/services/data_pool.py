"""
Data Pool Store
Access to the experience, archetype and visual pools and the prompt
template registry. Stages read through it, the admin API writes through it.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Optional, List, Iterable, Tuple, Dict, Any

from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from knock.core.config import settings
from knock.core.exceptions import DuplicateRecordError
from knock.models import ExperiencePool, ArchetypePool, VisualPool, PromptTemplate
from knock.schemas.data_pool import (
    ExperienceRecord, ArchetypeRecord, VisualRecord,
    PromptTemplateCreate, PromptTemplateUpdate, PromptTemplateResponse,
)

logger = logging.getLogger(__name__)

# kind -> (model, record schema, id prefix, searchable columns, ordering)
POOLS = {
    "experiences": (
        ExperiencePool, ExperienceRecord, "exp",
        ("title", "description"), (ExperiencePool.weight.desc(), ExperiencePool.id),
    ),
    "archetypes": (
        ArchetypePool, ArchetypeRecord, "arch",
        ("name", "display_name", "description"), (ArchetypePool.name,),
    ),
    "visuals": (
        VisualPool, VisualRecord, "visual",
        ("name", "symbolism"), (VisualPool.weight.desc(), VisualPool.id),
    ),
}


def bump_minor_version(version: str) -> str:
    """'1.0' -> '1.1', '2' -> '2.1'."""
    major, _, minor = (version or "1").partition(".")
    if minor.isdigit():
        return f"{major}.{int(minor) + 1}"
    return f"{version}.1"


class SQLDataPoolStore:
    """Pool and template queries over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db: Session = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def experiences_for_needs(self, needs: Iterable[str], limit: int = 10) -> List[ExperienceRecord]:
        """Active experiences for the given needs, heaviest first."""
        needs = list(needs)
        if not needs:
            return []
        with self._session() as db:
            rows = (
                db.query(ExperiencePool)
                .filter(ExperiencePool.is_active == True)  # noqa: E712
                .filter(ExperiencePool.need_type.in_(needs))
                .order_by(ExperiencePool.weight.desc(), ExperiencePool.id)
                .limit(limit)
                .all()
            )
            return [ExperienceRecord.model_validate(row) for row in rows]

    def experiences_by_ids(self, ids: Iterable[str]) -> List[ExperienceRecord]:
        """Experiences in the order the ids were given; unknown ids are skipped."""
        ids = list(ids)
        if not ids:
            return []
        with self._session() as db:
            rows = db.query(ExperiencePool).filter(ExperiencePool.id.in_(ids)).all()
            by_id = {row.id: ExperienceRecord.model_validate(row) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    def archetypes(self) -> List[ArchetypeRecord]:
        with self._session() as db:
            rows = (
                db.query(ArchetypePool)
                .filter(ArchetypePool.is_active == True)  # noqa: E712
                .order_by(ArchetypePool.name)
                .all()
            )
            return [ArchetypeRecord.model_validate(row) for row in rows]

    def visuals(self) -> List[VisualRecord]:
        with self._session() as db:
            rows = (
                db.query(VisualPool)
                .filter(VisualPool.is_active == True)  # noqa: E712
                .order_by(VisualPool.weight.desc(), VisualPool.id)
                .all()
            )
            return [VisualRecord.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Pool admin
    # ------------------------------------------------------------------

    def list_pool(
        self,
        kind: str,
        search: Optional[str] = None,
        need_type: Optional[str] = None,
        category: Optional[str] = None,
        active_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[BaseModel], int]:
        """One page of a pool plus the total matching the filters."""
        model, record, _, searchable, ordering = POOLS[kind]
        with self._session() as db:
            query = db.query(model)
            if search:
                pattern = f"%{search}%"
                query = query.filter(or_(*[getattr(model, c).ilike(pattern) for c in searchable]))
            if need_type and model is ExperiencePool:
                query = query.filter(ExperiencePool.need_type == need_type)
            if category and model is VisualPool:
                query = query.filter(VisualPool.category == category)
            if active_only:
                query = query.filter(model.is_active == True)  # noqa: E712

            total = query.count()
            rows = query.order_by(*ordering).offset(offset).limit(limit).all()
            return [record.model_validate(row) for row in rows], total

    def get_pool_record(self, kind: str, record_id: str) -> Optional[BaseModel]:
        model, record, *_ = POOLS[kind]
        with self._session() as db:
            row = db.get(model, record_id)
            return record.model_validate(row) if row else None

    def create_pool_record(self, kind: str, data: BaseModel) -> BaseModel:
        """Insert a pool record. Raises DuplicateRecordError on an id or unique-name clash."""
        model, record, prefix, *_ = POOLS[kind]
        values = data.model_dump()
        if not values.get("id"):
            infix = f"{values['need_type']}-" if model is ExperiencePool else ""
            values["id"] = f"{prefix}-{infix}{uuid.uuid4().hex[:8]}"

        with self._session() as db:
            if db.get(model, values["id"]):
                raise DuplicateRecordError(f"Record already exists: {values['id']}")
            row = model(**values)
            db.add(row)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateRecordError(f"Duplicate {kind} record", {"reason": str(e.orig)})
            db.refresh(row)
            logger.info(f"[DataPool] Created {kind} record {row.id}")
            return record.model_validate(row)

    def update_pool_record(self, kind: str, record_id: str, data: BaseModel) -> Optional[BaseModel]:
        """Apply the fields that were sent. None for an unknown id."""
        model, record, *_ = POOLS[kind]
        with self._session() as db:
            row = db.get(model, record_id)
            if not row:
                return None
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(row, field, value)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateRecordError(f"Duplicate {kind} record", {"reason": str(e.orig)})
            db.refresh(row)
            logger.info(f"[DataPool] Updated {kind} record {record_id}")
            return record.model_validate(row)

    def delete_pool_record(self, kind: str, record_id: str) -> bool:
        model, *_ = POOLS[kind]
        with self._session() as db:
            row = db.get(model, record_id)
            if not row:
                return False
            db.delete(row)
            db.commit()
            logger.info(f"[DataPool] Deleted {kind} record {record_id}")
            return True

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def get_template(self, template_id: Optional[str] = None) -> Optional[PromptTemplateResponse]:
        """Template by id, or the active default when no id is given."""
        with self._session() as db:
            if template_id:
                row = db.get(PromptTemplate, template_id)
            else:
                row = (
                    db.query(PromptTemplate)
                    .filter(PromptTemplate.is_default == True, PromptTemplate.is_active == True)  # noqa: E712
                    .first()
                )
                if not row:
                    row = db.get(PromptTemplate, settings.DEFAULT_TEMPLATE_ID)
            return PromptTemplateResponse.model_validate(row) if row else None

    def list_templates(self, active_only: bool = False) -> List[PromptTemplateResponse]:
        with self._session() as db:
            query = db.query(PromptTemplate)
            if active_only:
                query = query.filter(PromptTemplate.is_active == True)  # noqa: E712
            rows = query.order_by(PromptTemplate.created_at.desc()).all()
            return [PromptTemplateResponse.model_validate(row) for row in rows]

    def create_template(self, data: PromptTemplateCreate) -> PromptTemplateResponse:
        with self._session() as db:
            if data.is_default:
                self._clear_default(db)
            template = PromptTemplate(
                id=data.id or f"template-{uuid.uuid4().hex[:8]}",
                name=data.name,
                version=data.version,
                description=data.description,
                sections=data.sections,
                variables=[v.model_dump() for v in data.variables],
                is_active=data.is_active,
                is_default=data.is_default,
            )
            db.add(template)
            db.commit()
            db.refresh(template)
            logger.info(f"[Templates] Created template {template.id} v{template.version}")
            return PromptTemplateResponse.model_validate(template)

    def set_default_template(self, template_id: str) -> Optional[PromptTemplateResponse]:
        with self._session() as db:
            template = db.get(PromptTemplate, template_id)
            if not template:
                return None
            self._clear_default(db)
            template.is_default = True
            template.is_active = True
            db.commit()
            db.refresh(template)
            return PromptTemplateResponse.model_validate(template)

    def update_template(self, template_id: str, data: PromptTemplateUpdate) -> Optional[PromptTemplateResponse]:
        """Apply the fields that were sent. New sections bump the minor version unless one is given."""
        with self._session() as db:
            template = db.get(PromptTemplate, template_id)
            if not template:
                return None
            changes = data.model_dump(exclude_unset=True)
            if "sections" in changes and "version" not in changes and changes["sections"] != template.sections:
                changes["version"] = bump_minor_version(template.version)
            for field, value in changes.items():
                setattr(template, field, value)
            db.commit()
            db.refresh(template)
            logger.info(f"[Templates] Updated template {template.id} v{template.version}")
            return PromptTemplateResponse.model_validate(template)

    def delete_template(self, template_id: str, hard: bool = False) -> bool:
        """Deactivate a template, or remove it when `hard` is set."""
        with self._session() as db:
            template = db.get(PromptTemplate, template_id)
            if not template:
                return False
            if hard:
                db.delete(template)
            else:
                template.is_active = False
            db.commit()
            logger.info(f"[Templates] {'Deleted' if hard else 'Deactivated'} template {template_id}")
            return True

    def _clear_default(self, db: Session):
        db.query(PromptTemplate).filter(PromptTemplate.is_default == True).update(  # noqa: E712
            {PromptTemplate.is_default: False}
        )
