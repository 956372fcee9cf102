"""
Preset management API routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from workbench.api.dependencies import get_existing_preset, get_workbench
from workbench.api.models import ParameterValueRequest, PresetListResponse, UpdatePresetRequest
from workbench.entities.errors import InvalidParameterValue
from workbench.entities.models import Preset, PresetInput
from workbench.entities.session import Workbench

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/presets", tags=["presets"])


def preset_snapshot(workbench: Workbench) -> PresetListResponse:
    return PresetListResponse(presets=workbench.presets, active_preset_id=workbench.active_preset_id)


@router.get("", response_model=PresetListResponse)
async def list_presets(workbench: Workbench = Depends(get_workbench)):
    """List presets and the active preset id."""
    return preset_snapshot(workbench)


@router.post("", response_model=Preset, status_code=201)
async def create_preset(body: PresetInput, workbench: Workbench = Depends(get_workbench)):
    """
    Create a preset. The new preset becomes active.
    """
    return workbench.create_preset(body)


@router.patch("/{preset_id}", response_model=Preset)
async def update_preset(
    body: UpdatePresetRequest,
    preset: Preset = Depends(get_existing_preset),
    workbench: Workbench = Depends(get_workbench),
):
    """
    Update preset fields. request_parameters, when given, replaces the whole list.
    """
    updated = workbench.update_preset(preset.id, **body.patch())
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Preset {preset.id} not found")
    return updated


@router.delete("/{preset_id}", response_model=PresetListResponse)
async def delete_preset(
    preset: Preset = Depends(get_existing_preset),
    workbench: Workbench = Depends(get_workbench),
):
    """Delete a preset; the active selection falls back to the first remaining one."""
    workbench.remove_preset(preset.id)
    return preset_snapshot(workbench)


@router.post("/{preset_id}/select", response_model=PresetListResponse)
async def select_preset(
    preset: Preset = Depends(get_existing_preset),
    workbench: Workbench = Depends(get_workbench),
):
    """Make a preset active and record it on the active thread."""
    workbench.select_preset(preset.id)
    return preset_snapshot(workbench)


@router.post("/{preset_id}/duplicate", response_model=Preset, status_code=201)
async def duplicate_preset(
    preset: Preset = Depends(get_existing_preset),
    workbench: Workbench = Depends(get_workbench),
):
    """Copy a preset under a new id; the copy becomes active."""
    copy = workbench.duplicate_preset(preset.id)
    if copy is None:
        raise HTTPException(status_code=404, detail=f"Preset {preset.id} not found")
    return copy


@router.put("/{preset_id}/parameters/{name}", response_model=Preset)
async def set_parameter(
    name: str,
    body: ParameterValueRequest,
    preset: Preset = Depends(get_existing_preset),
    workbench: Workbench = Depends(get_workbench),
):
    """
    Set one request parameter from its JSON text.

    Responds 422 when the text is blank or not a JSON value.
    """
    try:
        updated = workbench.set_preset_parameter(preset.id, name, body.value)
    except InvalidParameterValue as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Preset {preset.id} not found")
    return updated


@router.delete("/{preset_id}/parameters/{name}", response_model=Preset)
async def remove_parameter(
    name: str,
    preset: Preset = Depends(get_existing_preset),
    workbench: Workbench = Depends(get_workbench),
):
    """Remove every request parameter with the given name."""
    updated = workbench.remove_preset_parameter(preset.id, name)
    if updated is None:
        raise HTTPException(status_code=404, detail=f"Preset {preset.id} not found")
    return updated
