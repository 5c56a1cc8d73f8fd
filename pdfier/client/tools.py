"""Quota-gated PDF tools: merge, compress and protect."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import httpx

from pdfier.client.backend import BackendClient, bearer, parse_json
from pdfier.errors import ToolError, format_detail
from pdfier.session.context import SessionContext, restore_session
from pdfier.session.usage import UsageAccountant

logger = logging.getLogger(__name__)

MERGE_PATH = "/api/v1/tools/pdf/merge"
COMPRESS_PATH = "/api/v1/tools/pdf/compress"
PROTECT_PATH = "/api/v1/tools/pdf/protect"

COMPRESSION_LEVELS = ("low", "medium", "high")
PRINTING_LEVELS = ("none", "low", "high")

NETWORK_ERROR_MESSAGE = "Network error or unable to connect to the server."


@dataclass
class ProtectPermissions:
    """What a reader of the protected PDF may still do."""

    printing: str = "high"
    modifying: bool = False
    copying: bool = False
    form_filling: bool = False

    def to_json(self) -> str:
        return json.dumps({
            "printing": self.printing,
            "modifying": self.modifying,
            "copying": self.copying,
            "formFilling": self.form_filling,
        })


@dataclass
class ToolResult:
    download_urls: List[str]
    payload: dict = field(default_factory=dict)


def collect_pdf_files(paths: Iterable[str | Path], operation: str) -> List[Path]:
    """Keep the PDF files among ``paths``, skipping anything else."""
    pdfs = []
    for raw in paths:
        path = Path(raw)
        if not path.is_file():
            raise ToolError(operation, f"File not found: {path}")
        if path.suffix.lower() != ".pdf":
            logger.warning("Skipping non-PDF file %s", path)
            continue
        pdfs.append(path)
    return pdfs


def _download_urls(payload: dict) -> List[str]:
    urls = payload.get("download_urls") or payload.get("download_url") or []
    if isinstance(urls, str):
        return [urls]
    return [str(u) for u in urls]


class ToolsAPI:
    """Uploads files to the backend tools, booking usage around each call."""

    def __init__(
        self,
        backend: BackendClient,
        session: SessionContext,
        accountant: Optional[UsageAccountant] = None,
    ):
        self.backend = backend
        self.session = session
        self.accountant = accountant or UsageAccountant(session)

    async def merge(self, paths: Iterable[str | Path]) -> ToolResult:
        pdfs = collect_pdf_files(paths, "merge")
        if len(pdfs) < 2:
            raise ToolError("merge", "Please select at least two PDF files to merge.")
        return await self._run("merge", MERGE_PATH, pdfs)

    async def compress(self, paths: Iterable[str | Path], level: str = "medium") -> ToolResult:
        if level not in COMPRESSION_LEVELS:
            raise ToolError("compress", f"Unknown compression level: {level}")
        pdfs = collect_pdf_files(paths, "compress")
        if not pdfs:
            raise ToolError("compress", "Please select a PDF file to compress.")
        return await self._run("compress", COMPRESS_PATH, pdfs, {"compression_level": level})

    async def protect(
        self,
        paths: Iterable[str | Path],
        password: str,
        permissions: Optional[ProtectPermissions] = None,
    ) -> ToolResult:
        permissions = permissions or ProtectPermissions()
        if permissions.printing not in PRINTING_LEVELS:
            raise ToolError("protect", f"Unknown printing permission: {permissions.printing}")
        if not password:
            raise ToolError("protect", "Please enter a password.")
        pdfs = collect_pdf_files(paths, "protect")
        if not pdfs:
            raise ToolError("protect", "Please select a PDF file to protect.")
        data = {"password": password, "permissions": permissions.to_json()}
        return await self._run("protect", PROTECT_PATH, pdfs, data)

    async def download(self, result: ToolResult, dest_dir: str | Path) -> List[Path]:
        """Save every result file of ``result`` into ``dest_dir``."""
        saved = []
        for index, url in enumerate(result.download_urls):
            name = httpx.URL(url).path.rsplit("/", 1)[-1] or f"result_{index + 1}.pdf"
            saved.append(await self.backend.download(url, Path(dest_dir) / name))
        return saved

    async def _run(
        self,
        operation: str,
        path: str,
        pdfs: List[Path],
        data: Optional[dict] = None,
    ) -> ToolResult:
        files = [("files", (p.name, p.read_bytes(), "application/pdf")) for p in pdfs]

        if self.session.user is None or self.session.state.is_initializing:
            await restore_session(self.session)
        reserved = self.accountant.reserve(operation)
        try:
            response = await self.backend.post(
                path,
                headers=bearer(self.session.credentials.get_access()),
                data=data,
                files=files,
            )
        except httpx.HTTPError as e:
            logger.error("%s request failed: %s", operation.capitalize(), e)
            if reserved:
                self.accountant.release()
            raise ToolError(operation, NETWORK_ERROR_MESSAGE) from e

        payload = parse_json(response)
        if not response.is_success:
            logger.error("%s failed with HTTP %s", operation.capitalize(), response.status_code)
            if reserved:
                self.accountant.release()
            detail = format_detail(payload, f"Failed to {operation} PDF.")
            raise ToolError(operation, detail, response.status_code)

        self.accountant.reconcile(payload)
        return ToolResult(download_urls=_download_urls(payload), payload=payload)
