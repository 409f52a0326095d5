from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from coursework.core.response import format_response, serialize
from coursework.db.database import get_db
from coursework.schemas.assignment_schema import (
    CriteriaCreateRequest,
    CriteriaInfo,
    CriteriaReorderRequest,
    CriteriaUpdateRequest,
    CriteriaValidation,
    TemplateCreateRequest,
    TemplateInfo,
    TemplateUpdateRequest,
)
from coursework.services import criteria_service

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_template(body: TemplateCreateRequest, db: Session = Depends(get_db)):
    criteria = [c.model_dump() for c in body.grading_criteria] if body.grading_criteria else None
    template = criteria_service.create_template(
        db,
        course_id=body.course_id,
        title=body.title,
        assignment_type=body.assignment_type,
        grading_mode=body.grading_mode,
        max_points=body.max_points,
        weight_percentage=body.weight_percentage,
        description=body.description,
        instructions=body.instructions,
        criteria=criteria,
    )
    return format_response(status.HTTP_201_CREATED, "Template created", serialize(TemplateInfo, template))


@router.get("/{template_id}")
def get_template(template_id: int, db: Session = Depends(get_db)):
    template = criteria_service.get_template(db, template_id)
    return format_response(status.HTTP_200_OK, "OK", serialize(TemplateInfo, template))


@router.patch("/{template_id}")
def update_template(template_id: int, body: TemplateUpdateRequest, db: Session = Depends(get_db)):
    template = criteria_service.update_template(db, template_id, body.model_dump(exclude_unset=True))
    return format_response(status.HTTP_200_OK, "Template updated", serialize(TemplateInfo, template))


# ----------------------------------------------------
# Grading criteria
# ----------------------------------------------------
@router.post("/{template_id}/criteria", status_code=status.HTTP_201_CREATED)
def add_criteria(template_id: int, body: CriteriaCreateRequest, db: Session = Depends(get_db)):
    criteria = criteria_service.add_criteria(
        db, template_id, body.name, body.max_points, description=body.description
    )
    return format_response(status.HTTP_201_CREATED, "Criteria added", serialize(CriteriaInfo, criteria))


@router.patch("/criteria/{criteria_id}")
def update_criteria(criteria_id: int, body: CriteriaUpdateRequest, db: Session = Depends(get_db)):
    criteria = criteria_service.update_criteria(db, criteria_id, body.model_dump(exclude_unset=True))
    return format_response(status.HTTP_200_OK, "Criteria updated", serialize(CriteriaInfo, criteria))


@router.delete("/criteria/{criteria_id}")
def delete_criteria(criteria_id: int, db: Session = Depends(get_db)):
    criteria_service.delete_criteria(db, criteria_id)
    return format_response(status.HTTP_200_OK, "Criteria deleted")


@router.put("/{template_id}/criteria/reorder")
def reorder_criteria(template_id: int, body: CriteriaReorderRequest, db: Session = Depends(get_db)):
    criteria = criteria_service.reorder_criteria(db, template_id, body.criteria_ids)
    return format_response(status.HTTP_200_OK, "Criteria reordered", serialize(CriteriaInfo, criteria))


@router.get("/{template_id}/criteria/validate")
def validate_criteria(template_id: int, db: Session = Depends(get_db)):
    result = criteria_service.validate_criteria(db, template_id)
    message = "Criteria sum matches max points" if result["is_valid"] else "Criteria sum does not match max points"
    return format_response(status.HTTP_200_OK, message, serialize(CriteriaValidation, result))
