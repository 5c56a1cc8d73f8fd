"""PDF tool API routes. Files are given as paths on the local machine."""

from __future__ import annotations

from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from pdfier.api.deps import get_services
from pdfier.client.tools import ProtectPermissions, ToolResult
from pdfier.factory import Services

router = APIRouter(prefix="/tools", tags=["tools"])


class MergeRequest(BaseModel):
    file_paths: List[str]


class CompressRequest(BaseModel):
    file_paths: List[str]
    compression_level: Literal["low", "medium", "high"] = "medium"


class PermissionsModel(BaseModel):
    printing: Literal["none", "low", "high"] = "high"
    modifying: bool = False
    copying: bool = False
    form_filling: bool = False


class ProtectRequest(BaseModel):
    file_paths: List[str]
    password: str
    confirm_password: str
    permissions: PermissionsModel = PermissionsModel()


class ToolResponse(BaseModel):
    message: str
    download_urls: List[str]


def _response(message: str, result: ToolResult) -> ToolResponse:
    return ToolResponse(message=message, download_urls=result.download_urls)


@router.post("/merge", response_model=ToolResponse)
async def merge(request: MergeRequest, services: Services = Depends(get_services)):
    result = await services.tools.merge(request.file_paths)
    return _response("PDFs merged successfully!", result)


@router.post("/compress", response_model=ToolResponse)
async def compress(request: CompressRequest, services: Services = Depends(get_services)):
    result = await services.tools.compress(request.file_paths, request.compression_level)
    return _response("PDF compressed successfully!", result)


@router.post("/protect", response_model=ToolResponse)
async def protect(request: ProtectRequest, services: Services = Depends(get_services)):
    if request.password != request.confirm_password:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    permissions = ProtectPermissions(**request.permissions.model_dump())
    result = await services.tools.protect(request.file_paths, request.password, permissions)
    return _response("PDF protected successfully!", result)
