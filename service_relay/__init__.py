"""
Storefront relay service package.

The relay sits between the storefront and the core service, enforcing:
- Credential resolution: session cookie first, then the bearer header
- Route templates: public paths mapped onto core service URLs
- Normalization: every response rendered as JSON, with per-route fallbacks

Structure:
- app.main: FastAPI app and route wiring.
- app.auth: Token extraction and read-only claim access.
- app.routing: Endpoint mapping and query rules.
- app.adapters: The httpx relay executor.
- app.domain: Result types, response normalization and payload reshaping.
- app.routes: Template routes and composite handlers.
"""
