from typing import List, Optional

from fastapi import APIRouter, HTTPException

from ipo_ingest.models.scraping import ConfigEntry, ConfigUpdate
from ipo_ingest.services.scraping_service import get_config_provider

router = APIRouter(prefix="/api/configuration", tags=["configuration"])


@router.get("", response_model=List[ConfigEntry])
def api_list_configuration(category: Optional[str] = None):
    try:
        return get_config_provider().list_values(category)
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Error retrieving configurations: {exc}")


@router.get("/scraping")
def api_scraping_configuration():
    try:
        provider = get_config_provider()
        return {"data": provider.get_scraping_config(), "batch": provider.get_batch_config().to_dict()}
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Error retrieving scraping configuration: {exc}")


@router.get("/{key}")
def api_get_configuration(key: str):
    value = get_config_provider().get_value(key)
    if value is None:
        raise HTTPException(status_code=404, detail=f"Configuration with key '{key}' not found")
    return {"key": key, "value": value}


@router.put("/{key}")
def api_update_configuration(key: str, body: ConfigUpdate):
    try:
        updated = get_config_provider().set_value(key, body.value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Error updating configuration: {exc}")
    if not updated:
        raise HTTPException(status_code=404, detail=f"Configuration with key '{key}' not found")
    return {"message": "Configuration updated successfully", "key": key, "value": body.value}
