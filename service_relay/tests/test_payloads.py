"""
Unit tests for customer, catalog and checkout reshaping.
"""

import pytest

from service_relay.app.domain.catalog import (
    ALL_PRODUCTS_LABEL,
    as_product_listing,
    categories_with_all,
    extra_category_query,
    filter_by_term,
    map_search_params,
    merge_products,
    search_endpoint,
    warehouse_search_params,
)
from service_relay.app.domain.customers import client_group, normalize_customer
from service_relay.app.domain.orders import (
    build_order_payload,
    evaluate_limits,
    format_address,
    friendly_error,
    validate_checkout,
)
from shared.errors import ValidationError


class TestNormalizeCustomer:
    """Test cases for customer normalization."""

    def test_nested_data_is_lifted(self):
        customer = normalize_customer({"data": {"id": 3, "__category__": {"name": "Creator Gold"}}})
        assert customer["id"] == 3
        assert customer["clientGroup"] == "Creator"
        assert customer["__warehouse__"] == "MKT-Creator"

    def test_string_category(self):
        customer = normalize_customer({"id": 4, "category": "Clinica Top Master"})
        assert customer["__category__"] == {"name": "Clinica Top Master"}
        assert customer["clientGroup"] == "Top Master"
        assert customer["__warehouse__"] == "MKT-Top Master"

    def test_other_group(self):
        customer = normalize_customer({"id": 5, "__category__": "Nutricionista Parceira"})
        assert customer["clientGroup"] == "Outro"
        assert customer["__warehouse__"] == "MKT-Creator"

    def test_without_category(self):
        assert normalize_customer({"id": 6, "name": "Sem categoria"}) == {"id": 6, "name": "Sem categoria"}

    def test_client_group(self):
        assert client_group("Creator Silver") == "Creator"
        assert client_group("Clinica Top Master") == "Top Master"
        assert client_group("Atleta") == "Outro"


class TestCatalog:
    """Test cases for catalog reshaping."""

    def test_categories_with_all(self):
        categories = [{"id": "1", "name": "A", "itemQuantity": 3}, {"id": "2", "name": "B", "itemQuantity": "2"}]
        result = categories_with_all(categories)
        assert result[0] == {"id": "all", "name": ALL_PRODUCTS_LABEL, "slug": "todos", "itemQuantity": 5}
        assert result[1:] == categories

    def test_categories_with_all_empty(self):
        assert categories_with_all([])[0]["itemQuantity"] == 0

    def test_map_search_params(self):
        mapped = map_search_params({"query": "serum", "search": "vitamina", "page": "2", "minPrice": "10"})
        assert mapped == {
            "term": "vitamina",
            "page": "2",
            "limit": "20",
            "minPrice": "10",
            "inStock": "true",
            "active": "true",
        }

    def test_map_search_params_category(self):
        mapped = map_search_params({"categoryName": "Skincare", "limit": "5"})
        assert mapped["category"] == "Skincare"
        assert mapped["limit"] == "100"
        assert search_endpoint(mapped) == "/marketing/products/search"

    def test_all_products_category_is_not_a_filter(self):
        mapped = map_search_params({"categoryName": ALL_PRODUCTS_LABEL, "query": "x"})
        assert "category" not in mapped
        assert mapped["name"] == "x"
        assert search_endpoint(mapped) == "/marketing/products"

    def test_as_product_listing(self):
        assert as_product_listing([1]) == {"data": [1]}
        assert as_product_listing({"data": [1], "total": 1}) == {"data": [1], "total": 1}
        assert as_product_listing({"content": [2]}) == {"data": [2]}
        assert as_product_listing({"unexpected": True})["data"] == []

    def test_filter_by_term(self):
        listing = {"data": [
            {"name": "Serum Vitamina C", "description": "Facial"},
            {"name": "Creatina", "attributes": {"sabor": "Baunilha"}},
        ]}
        assert filter_by_term(listing, "vitamina")["data"] == [listing["data"][0]]
        assert filter_by_term(listing, "BAUNILHA")["data"] == [listing["data"][1]]
        assert filter_by_term(listing, "nothing matches") == listing

    def test_warehouse_search_params(self):
        mapped, ids = warehouse_search_params({"categoryName": "Skincare", "categoryId": "10", "warehouseName": ""})
        assert mapped == {
            "category": "10",
            "warehouseName": "MKT-Creator",
            "inStock": "true",
            "active": "true",
            "page": "0",
            "limit": "12",
        }
        assert ids == []

    def test_warehouse_search_category_ids(self):
        mapped, ids = warehouse_search_params({"categoryIds": '["10", "11"]', "warehouseName": "MKT-Top Master"})
        assert ids == ["10", "11"]
        assert mapped["category"] == "10"
        assert extra_category_query(mapped, "11") == {
            "category": "11",
            "warehouseName": "MKT-Top Master",
            "inStock": "true",
            "active": "true",
            "page": "0",
            "limit": "100",
        }

    def test_invalid_category_ids_ignored(self):
        assert warehouse_search_params({"categoryIds": "not json"})[1] == []
        assert warehouse_search_params({"categoryIds": '{"a": 1}'})[1] == []

    def test_merge_products_deduplicates(self):
        primary = {"data": [{"id": 1, "sku": "A"}], "total": 1}
        merged = merge_products(primary, [[{"id": 2, "sku": "A"}, {"id": 3, "sku": "C"}], [{"id": 4}]])
        assert [p["id"] for p in merged["data"]] == [1, 3, 4]
        assert merged["total"] == 1


class TestCheckout:
    """Test cases for checkout composition."""

    def test_frequency_limit_reached(self):
        limits = {"limits": {"frequencyPerMonth": {"hasLimit": True, "limit": 2, "used": 2, "remaining": 0}}}
        rejection = evaluate_limits(limits, 10.0)
        assert rejection["error"] == "Order limit reached"
        assert rejection["details"]["limit"] == 2

    def test_no_balance(self):
        limits = {"limits": {"ticketValue": {"hasLimit": True, "limit": 100, "used": 100, "remaining": "0"}}}
        assert evaluate_limits(limits, 1.0)["error"] == "Insufficient balance"

    def test_subtotal_exceeds_balance(self):
        limits = {"limits": {"ticketValue": {"hasLimit": True, "remaining": 50}}}
        rejection = evaluate_limits(limits, 80.5)
        assert "R$ 80.50" in rejection["details"]["message"]
        assert "R$ 50.00" in rejection["details"]["message"]

    def test_within_limits(self):
        limits = {"limits": {
            "frequencyPerMonth": {"hasLimit": True, "remaining": 1},
            "ticketValue": {"hasLimit": True, "remaining": 100},
        }}
        assert evaluate_limits(limits, 100.0) is None
        assert evaluate_limits({}, 1000.0) is None

    def test_format_address(self):
        delivery = {"street": "Rua A", "number": "10", "neighborhood": "Centro", "city": "Recife",
                    "state": "PE", "zipCode": "50000-000"}
        assert format_address(delivery) == "Rua A, 10, Centro, Recife - PE, 50000-000"
        assert format_address({**delivery, "complement": "Apto 2"}).endswith(", Apto 2")

    def test_build_order_payload(self):
        checkout = {
            "items": [{"id": 101, "quantity": 2, "price": "19.90"}],
            "payment": {"subtotal": 39.8, "voucherUsed": 0},
            "delivery": {"street": "Rua A", "number": "1", "neighborhood": "B", "city": "C", "state": "D",
                         "zipCode": "E"},
            "observations": "Deixar na portaria",
        }
        customer = {"id": 2, "__category__": {"name": "Clinica Top Master"}}
        payload = build_order_payload(checkout, customer)
        assert payload["customerId"] == 2
        assert payload["operation"] == "top_master"
        assert payload["nome_deposito"] == "MKT-Top Master"
        assert payload["items"] == [{"productId": 101, "quantity": 2, "price": 19.9}]
        assert payload["paymentMethod"] == "pix"
        assert payload["type"] == "simples"
        assert payload["status"] == "PENDING"
        assert payload["notes"] == "Deixar na portaria"

    def test_explicit_warehouse_tag_wins(self):
        customer = {"id": 1, "__category__": {"name": "Clinica Top Master"}, "__warehouse__": "MKT-Creator"}
        payload = build_order_payload({}, customer)
        assert payload["nome_deposito"] == "MKT-Creator"
        assert payload["operation"] == "creator"

    def test_friendly_error(self):
        body = {"message": ["operation must be one of the following values: creator"], "statusCode": 400}
        assert friendly_error(body)["friendlyMessage"] == "Invalid operation type. Please contact support."
        assert friendly_error({"message": "plain"}) == {"message": "plain"}


class TestCheckoutValidation:
    """Test cases for checkout body validation."""

    def test_well_formed_checkout(self):
        validate_checkout({"items": [{"id": 1}], "payment": {"subtotal": 10}, "delivery": {}})
        validate_checkout({})

    @pytest.mark.parametrize("checkout, field", [
        ({"items": "xy"}, "items"),
        ({"items": [1, 2]}, "items"),
        ({"payment": 10}, "payment"),
        ({"delivery": "Rua A, 1"}, "delivery"),
    ])
    def test_malformed_sections(self, checkout, field):
        with pytest.raises(ValidationError) as exc_info:
            validate_checkout(checkout)
        assert exc_info.value.details["field"] == field

    @pytest.mark.parametrize("limits", [{"limits": "none"}, {"limits": {"ticketValue": 5}}, {"limits": None}])
    def test_malformed_limits_are_ignored(self, limits):
        assert evaluate_limits(limits, 100.0) is None
