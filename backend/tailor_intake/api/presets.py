from typing import List, Optional
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlmodel import select

from tailor_intake.db.session import get_session
from tailor_intake.models.intake import PresetField
from tailor_intake.models.preset import MeasurementPreset

logger = logging.getLogger(__name__)
router = APIRouter()


class PresetCreate(BaseModel):
    shop_id: str
    name: str = Field(min_length=1)
    fields: List[PresetField] = Field(default_factory=list)
    base_price: Optional[float] = Field(default=None, ge=0)

    @field_validator("fields")
    @classmethod
    def _unique_names(cls, v: List[PresetField]) -> List[PresetField]:
        names = [f.name for f in v]
        if len(names) != len(set(names)):
            raise ValueError("field names must be unique within a preset")
        return v


@router.get("/detail/{preset_id}")
def get_preset(preset_id: int):
    session = get_session()
    try:
        preset = session.get(MeasurementPreset, preset_id)
        if preset is None:
            raise HTTPException(status_code=404, detail="Preset not found")
        return {"preset": preset.model_dump()}
    finally:
        session.close()


@router.get("/{shop_id}")
def list_presets(shop_id: str):
    session = get_session()
    try:
        rows = session.exec(select(MeasurementPreset).where(MeasurementPreset.shop_id == shop_id).order_by(MeasurementPreset.name)).all()
        return {"presets": [p.model_dump() for p in rows]}
    finally:
        session.close()


@router.post("", status_code=201)
def create_preset(body: PresetCreate):
    session = get_session()
    try:
        preset = MeasurementPreset(
            shop_id=body.shop_id,
            name=body.name.strip(),
            fields=[f.model_dump() for f in body.fields],
            base_price=body.base_price,
        )
        session.add(preset)
        session.commit()
        session.refresh(preset)
        logger.info("Created preset id=%s shop=%s name=%s", preset.id, preset.shop_id, preset.name)
        return {"preset": preset.model_dump()}
    finally:
        session.close()
