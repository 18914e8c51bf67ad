"""
Mock core service providing the marketing, order and token endpoints the
relay consumes.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.logging import get_logger

SIGNING_KEY = "mock-core-signing-key"
ALGORITHM = "HS256"

VALID_OPERATIONS = ("creator", "top_master")
VALID_PAYMENT_METHODS = ("pix",)


def issue_token(customer_id: Any, external_id: Optional[str] = None, hours: int = 24) -> str:
    """Sign a core service session token for a customer."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(customer_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=hours)).timestamp()),
        "type": "access_token",
    }
    if external_id:
        payload["externalId"] = external_id
    return jwt.encode(payload, SIGNING_KEY, algorithm=ALGORITHM)


def identity_token(clerk_id: str) -> str:
    """Identity-provider style token, as the storefront receives it after sign-in."""
    return jwt.encode({"sub": clerk_id}, "identity-provider-key", algorithm=ALGORITHM)


class MockCoreServer:
    """Mock core service implementation."""

    def __init__(self):
        self.logger = get_logger("mock.core_service")
        self.app = FastAPI(title="Mock Core Service", version="1.0.0")
        self.bearer = HTTPBearer(auto_error=False)

        self.customers: Dict[str, Dict[str, Any]] = {
            "1": {
                "id": 1,
                "name": "Ana Souza",
                "email": "ana@example.com",
                "externalId": "clerk_creator",
                "__category__": {"id": 10, "name": "Creator Gold"},
            },
            "2": {
                "id": 2,
                "name": "Clinica Vida",
                "email": "contato@vida.example.com",
                "externalId": "clerk_top_master",
                "__category__": {"id": 20, "name": "Clinica Top Master"},
            },
            "3": {
                "id": 3,
                "name": "Beatriz Lima",
                "email": "bia@example.com",
                "externalId": "clerk_nutri",
                "category": "Nutricionista Parceira",
            },
        }

        self.order_limits: Dict[str, Dict[str, Any]] = {
            "1": {
                "limits": {
                    "frequencyPerMonth": {"hasLimit": True, "limit": 4, "used": 1, "remaining": 3, "period": "month"},
                    "ticketValue": {"hasLimit": True, "limit": 500.0, "used": 100.0, "remaining": 400.0, "period": "month"},
                }
            },
            "2": {
                "limits": {
                    "frequencyPerMonth": {"hasLimit": True, "limit": 2, "used": 2, "remaining": 0, "period": "month"},
                    "ticketValue": {"hasLimit": False},
                }
            },
            "3": {"limits": {"frequencyPerMonth": {"hasLimit": False}, "ticketValue": {"hasLimit": False}}},
        }

        self.categories: List[Dict[str, Any]] = [
            {"id": "10", "name": "Skincare", "slug": "skincare", "itemQuantity": 2},
            {"id": "11", "name": "Suplementos", "slug": "suplementos", "itemQuantity": 2},
        ]

        self.products: List[Dict[str, Any]] = [
            {"id": 101, "sku": "SK-101", "name": "Serum Vitamina C", "description": "Serum facial",
             "category": "10", "warehouses": ["MKT-Creator", "MKT-Top Master"], "inStock": True, "active": True},
            {"id": 102, "sku": "SK-102", "name": "Protetor Solar", "description": "FPS 50",
             "category": "10", "warehouses": ["MKT-Creator"], "inStock": True, "active": True},
            {"id": 201, "sku": "SU-201", "name": "Whey Protein", "description": "Proteina isolada",
             "category": "11", "warehouses": ["MKT-Top Master"], "inStock": True, "active": True},
            {"id": 202, "sku": "SU-202", "name": "Creatina", "description": "Monohidratada",
             "category": "11", "warehouses": ["MKT-Creator", "MKT-Top Master"], "inStock": True, "active": True},
        ]

        self.orders: List[Dict[str, Any]] = [
            {"id": 5001, "customerId": 1, "status": "DELIVERED", "total": 89.9},
        ]

        self.banner = {"imageUrl": "https://cdn.example.com/campaign/banner.png"}

        self._setup_routes()

    def _authenticate(self, credentials: Optional[HTTPAuthorizationCredentials]) -> Dict[str, Any]:
        if credentials is None:
            raise HTTPException(status_code=401, detail="Missing bearer token")
        try:
            return jwt.decode(credentials.credentials, SIGNING_KEY, algorithms=[ALGORITHM])
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")

    def _customer_by_external_id(self, external_id: str) -> Optional[Dict[str, Any]]:
        for customer in self.customers.values():
            if customer.get("externalId") == external_id:
                return customer
        return None

    def _setup_routes(self):
        """Set up mock core service routes."""

        bearer = self.bearer

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {"service": "mock-core-service", "version": "1.0.0"}

        @self.app.post("/auth/token")
        async def exchange_token(request: Request):
            """Exchange an identity-provider token or credentials for a session token."""
            body = await request.json()
            external_id = None
            if body.get("token"):
                try:
                    external_id = jwt.decode(body["token"], options={"verify_signature": False}).get("sub")
                except jwt.InvalidTokenError:
                    raise HTTPException(status_code=401, detail="Invalid identity token")
            elif body.get("email"):
                match = [c for c in self.customers.values() if c.get("email") == body["email"]]
                if not match or body.get("password") != "password123":
                    raise HTTPException(status_code=401, detail="Invalid credentials")
                external_id = match[0].get("externalId")

            customer = self._customer_by_external_id(external_id) if external_id else None
            if customer is None:
                raise HTTPException(status_code=401, detail="Unknown user")

            hours = 24 * 30 if body.get("remember_me") else 24
            return {
                "access_token": issue_token(customer["id"], customer["externalId"], hours=hours),
                "expires_in": hours * 3600,
                "user": {"id": str(customer["id"]), "name": customer["name"], "email": customer["email"], "role": "user"},
            }

        @self.app.get("/marketing/customers/byClerkId/{clerk_id}")
        async def customer_by_clerk_id(clerk_id: str, credentials=Depends(bearer)):
            self._authenticate(credentials)
            customer = self._customer_by_external_id(clerk_id)
            if customer is None:
                raise HTTPException(status_code=404, detail="Customer not found")
            return copy.deepcopy(customer)

        @self.app.get("/marketing/customers/{customer_id}")
        async def customer_by_id(customer_id: str, credentials=Depends(bearer)):
            self._authenticate(credentials)
            if customer_id not in self.customers:
                raise HTTPException(status_code=404, detail="Customer not found")
            customer = copy.deepcopy(self.customers[customer_id])
            customer.pop("__category__", None)
            return customer

        @self.app.get("/marketing/customers/{customer_id}/category")
        async def customer_category(customer_id: str, credentials=Depends(bearer)):
            self._authenticate(credentials)
            customer = self.customers.get(customer_id)
            if customer is None or not isinstance(customer.get("__category__"), dict):
                raise HTTPException(status_code=404, detail="Category not found")
            return customer["__category__"]

        @self.app.get("/marketing/customers/{customer_id}/order-limits")
        async def customer_order_limits(customer_id: str, credentials=Depends(bearer)):
            self._authenticate(credentials)
            if customer_id not in self.order_limits:
                raise HTTPException(status_code=404, detail="Customer not found")
            return self.order_limits[customer_id]

        @self.app.get("/marketing/products/categories")
        async def list_categories(credentials=Depends(bearer)):
            self._authenticate(credentials)
            return {"data": self.categories}

        @self.app.get("/marketing/products/warehouse/categories/count")
        async def count_categories(warehouseName: str = "MKT-Creator"):
            counts = {}
            for product in self.products:
                if warehouseName in product["warehouses"]:
                    counts[product["category"]] = counts.get(product["category"], 0) + 1
            return {"warehouseName": warehouseName, "counts": counts}

        @self.app.get("/marketing/products/warehouse/search")
        async def warehouse_search(
            warehouseName: str = "MKT-Creator",
            category: Optional[str] = None,
            term: Optional[str] = None,
            credentials=Depends(bearer),
        ):
            self._authenticate(credentials)
            products = [p for p in self.products if warehouseName in p["warehouses"]]
            if category:
                products = [p for p in products if p["category"] == category]
            if term:
                products = [p for p in products if term.lower() in p["name"].lower()]
            return {"data": products, "total": len(products)}

        @self.app.get("/marketing/products/search")
        async def search_products(
            category: Optional[str] = None,
            term: Optional[str] = None,
            credentials=Depends(bearer),
        ):
            self._authenticate(credentials)
            names = {c["name"]: c["id"] for c in self.categories}
            products = list(self.products)
            if category:
                products = [p for p in products if p["category"] == names.get(category, category)]
            if term:
                products = [p for p in products if term.lower() in p["name"].lower()]
            return {"products": products}

        @self.app.get("/marketing/products")
        async def list_products(credentials=Depends(bearer)):
            self._authenticate(credentials)
            return {"data": self.products}

        @self.app.get("/marketing/campaign/banner")
        async def campaign_banner(credentials=Depends(bearer)):
            self._authenticate(credentials)
            return self.banner

        @self.app.get("/marketing/orders/customer/{customer_id}")
        async def orders_by_customer(customer_id: str, credentials=Depends(bearer)):
            self._authenticate(credentials)
            return {"orders": [o for o in self.orders if str(o["customerId"]) == customer_id]}

        @self.app.get("/marketing/orders/{order_id}")
        async def get_order(order_id: str, credentials=Depends(bearer)):
            self._authenticate(credentials)
            for order in self.orders:
                if str(order["id"]) == order_id:
                    return order
            return JSONResponse(status_code=404, content={"message": "Order not found", "statusCode": 404})

        @self.app.post("/marketing/orders")
        async def create_order(request: Request, credentials=Depends(bearer)):
            self._authenticate(credentials)
            payload = await request.json()

            errors = []
            if payload.get("operation") not in VALID_OPERATIONS:
                errors.append(f"operation must be one of the following values: {', '.join(VALID_OPERATIONS)}")
            if payload.get("paymentMethod") not in VALID_PAYMENT_METHODS:
                errors.append(f"paymentMethod must be one of the following values: {', '.join(VALID_PAYMENT_METHODS)}")
            if errors:
                return JSONResponse(
                    status_code=400,
                    content={"message": errors, "error": "Bad Request", "statusCode": 400},
                )

            order = {"id": 5000 + len(self.orders) + 1, **payload}
            self.orders.append({"id": order["id"], "customerId": payload.get("customerId"),
                                "status": payload.get("status"), "total": payload.get("total")})
            self.logger.info("Order created", order_id=order["id"], warehouse=payload.get("nome_deposito"))
            return JSONResponse(status_code=201, content=order)


def create_app():
    """Create mock core service application."""
    server = MockCoreServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8081)
