"""
TiendaNube app installation routes.

These are opened in a browser by the merchant (and by TiendaNube's redirect),
so they carry no Basic auth and answer with HTML.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from stockbridge.core.exceptions import TiendaNubeAuthError
from stockbridge.core.templates import templates
from stockbridge.integrations.setup import AppServices, get_services

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)


def _error_page(request: Request, status_code: int, heading: str, message: str) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "auth/tn_error.html",
        {"heading": heading, "message": message},
        status_code=status_code,
    )


@router.get("/tiendanube/iniciar", response_class=HTMLResponse)
async def start_tiendanube_auth(request: Request, services: AppServices = Depends(get_services)):
    """Send the merchant to TiendaNube's authorization page"""
    try:
        auth_url = services.tn_auth.authorization_url()
    except TiendaNubeAuthError as e:
        logger.error(f"Cannot start TiendaNube authorization: {e}")
        return _error_page(request, 500, "Configuration error", str(e))

    logger.info(f"Redirecting to TiendaNube authorization: {auth_url}")
    return RedirectResponse(auth_url, status_code=302)


@router.get("/tiendanube/callback", response_class=HTMLResponse)
@router.get("/tn/callback", response_class=HTMLResponse)
async def tiendanube_auth_callback(
    request: Request,
    code: Optional[str] = None,
    services: AppServices = Depends(get_services),
):
    """Exchange the authorization code and show the values to put in .env"""
    if not code:
        return _error_page(
            request, 400, "No authorization code received", "Start the authorization again."
        )

    try:
        credentials = await services.tn_auth.exchange_code(code)
    except TiendaNubeAuthError as e:
        logger.error(f"TiendaNube authorization failed: {e}")
        return _error_page(request, 500, "Could not obtain the access token", str(e))

    return templates.TemplateResponse(request, "auth/tn_credentials.html", credentials)
