from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from school_portal.core.logging import get_logger
from school_portal.db.models import SchoolSetting, User
from school_portal.schemas.admin import (
    NotificationSettings,
    SchoolInfoSettings,
    SettingsRead,
    SystemSettings,
)

logger = get_logger("services.settings")

SECTIONS: dict[str, type[BaseModel]] = {
    "school": SchoolInfoSettings,
    "system": SystemSettings,
    "notifications": NotificationSettings,
}


def _section_model(section: str) -> type[BaseModel]:
    model = SECTIONS.get(section)
    if model is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown settings section: {section}",
        )
    return model


def get_settings_section(db: Session, section: str) -> SettingsRead:
    """Devuelve la sección guardada, rellenando con los valores por defecto."""
    model = _section_model(section)
    row = db.query(SchoolSetting).filter(SchoolSetting.section == section).first()
    stored = row.data if row else {}

    return SettingsRead(
        section=section,
        values=model(**stored).model_dump(mode="json"),
        updated_by_id=row.updated_by_id if row else None,
        updated_at=row.updated_at if row else None,
    )


def update_settings_section(
    db: Session,
    section: str,
    changes: dict,
    actor: User,
) -> SettingsRead:
    """
    Mezcla los cambios con lo guardado y valida la sección completa.
    Campos desconocidos se rechazan (422).
    """
    model = _section_model(section)

    unknown = set(changes) - set(model.model_fields)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown settings fields: {sorted(unknown)}",
        )

    row = db.query(SchoolSetting).filter(SchoolSetting.section == section).first()
    current = dict(row.data) if row else {}
    current.update(changes)

    try:
        validated = model(**current)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        )

    if row is None:
        row = SchoolSetting(section=section)
        db.add(row)

    row.data = validated.model_dump(mode="json")
    row.updated_by_id = actor.id
    db.commit()
    db.refresh(row)

    logger.info(
        "Settings updated",
        extra={
            "operation": "settings_update",
            "resource": "settings",
            "section": section,
            "fields": sorted(changes),
            "user_id": actor.id,
        },
    )
    return get_settings_section(db, section)
