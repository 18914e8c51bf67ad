"""
Session routes: token exchange and logout.
"""

import json

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from service_relay.app.routes.relay import RelayHandler
from shared.config import RelayConfig
from shared.errors import ShapeError, ValidationError
from shared.logging import get_logger, set_route

TOKEN_EXCHANGE = "/auth/token"

# Cleared on logout alongside the session cookie
AUXILIARY_COOKIES = ("user_session", "auth_state")

NO_CACHE_HEADERS = {
    "Clear-Site-Data": '"cache", "cookies", "storage"',
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

logger = get_logger("relay.session")


def exchange_payload(body: dict) -> dict:
    """Core service token exchange body for a storefront sign-in request."""
    remember_me = bool(body.get("rememberMe"))
    if body.get("email") and body.get("password"):
        return {"email": body["email"], "password": body["password"], "remember_me": remember_me}
    if body.get("token"):
        return {"token": body["token"], "remember_me": remember_me}
    raise ValidationError("Identity token not provided")


def setup_session_routes(app: FastAPI, handler: RelayHandler, config: RelayConfig):
    """Set up session routes."""

    @app.post("/api/auth/token")
    async def exchange_token(request: Request):
        """Exchange an identity-provider token for a core service session."""
        set_route("auth.token")
        try:
            body = json.loads(await request.body())
        except ValueError:
            raise ValidationError("Invalid request body")
        if not isinstance(body, dict):
            raise ValidationError("Invalid request body")

        payload = exchange_payload(body)
        max_age = config.remember_me_max_age_seconds if payload["remember_me"] else config.token_max_age_seconds

        result = await handler.call("POST", TOKEN_EXCHANGE, None, payload=payload, route="auth.token")
        if result.is_error:
            return result.to_response()

        data = result.body if isinstance(result.body, dict) else {}
        access_token = data.get("access_token")
        if not access_token:
            raise ShapeError("Access token missing from core service response")

        logger.info("Session established", remember_me=payload["remember_me"], max_age=max_age)
        response = JSONResponse(content={
            "access_token": access_token,
            "expires_in": max_age,
            "expiresInSeconds": max_age,
            "user": data.get("user"),
        })
        response.set_cookie(
            config.session_cookie_name,
            access_token,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=config.cookie_secure,
            samesite="lax",
        )
        return response

    @app.api_route("/api/auth/logout", methods=["GET", "POST"])
    async def logout():
        """Expire the session cookies and send the browser to the login page."""
        set_route("auth.logout")
        response = RedirectResponse(url=f"{config.web_address.rstrip('/')}/login", status_code=307)
        for name in (config.session_cookie_name, *AUXILIARY_COOKIES):
            response.delete_cookie(name, path="/")
        response.headers.update(NO_CACHE_HEADERS)
        return response
