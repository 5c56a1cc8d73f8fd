from __future__ import annotations

from fastapi import Request

from pdfier.factory import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
