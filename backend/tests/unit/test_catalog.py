"""
Unit tests for the product catalog.

WHAT: Seller resolution, listing filters, search defaults, product reads and creation
WHY: Product rows from the backend are loosely shaped and must be normalized once
HOW: CatalogService over the fake data service with canned select/RPC results
"""

import pytest

from busqai.dataservice.types import DataServiceResponseError
from busqai.models.marketplace import NamedSeller, ProfileSeller
from busqai.services.catalog import CatalogService, resolve_seller
from busqai.utils.exceptions import AuthRequiredError, NotFoundError, ValidationException


@pytest.fixture
def catalog(buyer_service):
    return CatalogService(buyer_service)


def last_call(service, name):
    return [call for call in service.calls if call[0] == name][-1]


@pytest.mark.unit
class TestResolveSeller:

    def test_bare_name(self):
        assert resolve_seller("Doña Rosa") == NamedSeller(name="Doña Rosa")

    def test_blank_name_gets_default(self):
        assert resolve_seller("   ").display_name == "Seller"

    def test_profile_with_id(self):
        seller = resolve_seller({"id": "seller-1", "full_name": "Rosa Quispe"})

        assert isinstance(seller, ProfileSeller)
        assert seller.id == "seller-1"
        assert seller.display_name == "Rosa Quispe"

    def test_profile_without_id_is_named(self):
        assert resolve_seller({"full_name": "Rosa"}) == NamedSeller(name="Rosa")

    def test_missing_or_unknown(self):
        assert resolve_seller(None) is None
        assert resolve_seller(42) is None


@pytest.mark.unit
class TestListProducts:

    @pytest.mark.asyncio
    async def test_default_listing(self, catalog, buyer_service):
        buyer_service.select_results["products"] = [
            {"id": "p1", "title": "  Basket ", "price": "50", "stock": -2,
             "profiles": {"id": "seller-1", "full_name": "Rosa"}},
            {"title": "no id"},
        ]

        products = await catalog.list_products()

        assert len(products) == 1
        assert products[0].title == "Basket"
        assert products[0].price == 50.0
        assert products[0].stock == 0
        assert products[0].seller == ProfileSeller(id="seller-1", full_name="Rosa")

        _, table, filters, order, limit, offset, single = last_call(buyer_service, "select")
        assert table == "products"
        assert filters == {"is_visible": "eq.true", "is_available": "eq.true"}
        assert order == "created_at.desc"
        assert limit == 20

    @pytest.mark.asyncio
    async def test_text_query_and_filters(self, catalog, buyer_service):
        await catalog.list_products(query="Basket!", category="crafts", max_price=100)

        _, _, filters, order, _, _, _ = last_call(buyer_service, "select")
        assert filters["or"] == "(title.ilike.*basket*,description.ilike.*basket*,category.ilike.*basket*)"
        assert filters["category"] == "ilike.*crafts*"
        assert filters["and"] == "(price.lte.100)"
        assert order == "title.asc"

    @pytest.mark.asyncio
    async def test_numeric_query_becomes_price_window(self, catalog, buyer_service):
        await catalog.list_products(query="50")

        _, _, filters, _, _, _, _ = last_call(buyer_service, "select")
        assert filters["and"] == "(price.gte.40,price.lte.60)"

    @pytest.mark.asyncio
    async def test_non_finite_numbers_are_plain_text(self, catalog, buyer_service):
        for term in ("inf", "Infinity", "nan"):
            await catalog.list_products(query=term, max_price=float("inf"))

            _, _, filters, _, _, _, _ = last_call(buyer_service, "select")
            assert "and" not in filters
            assert filters["or"].startswith(f"(title.ilike.*{term.lower()}*")

    @pytest.mark.asyncio
    async def test_limit_is_capped(self, catalog, buyer_service):
        await catalog.list_products(limit=500, offset=10)

        _, _, _, _, limit, offset, _ = last_call(buyer_service, "select")
        assert limit == 50
        assert offset == 10

    @pytest.mark.asyncio
    async def test_permission_denied_requires_sign_in(self, catalog, buyer_service):
        buyer_service.select_results["products"] = DataServiceResponseError("HTTP 401", status_code=401)

        with pytest.raises(AuthRequiredError):
            await catalog.list_products()


@pytest.mark.unit
class TestSearch:

    @pytest.mark.asyncio
    async def test_search_defaults(self, catalog, buyer_service):
        buyer_service.rpc_results["search_products"] = [
            {"id": "p1", "title": "Basket", "price": 50, "seller_name": "Rosa", "distance_km": 1.2},
            {"title": "broken"},
        ]

        results = await catalog.search_products("basket", user_lat=-17.78, user_lng=-63.18)

        assert [r.id for r in results] == ["p1"]
        assert results[0].seller == NamedSeller(name="Rosa")
        _, function, params, retry = last_call(buyer_service, "rpc")
        assert function == "search_products"
        assert retry is True
        assert params["p_max_distance_km"] == 50.0
        assert params["p_limit"] == 20
        assert params["p_offset"] == 0
        assert params["p_user_lat"] == -17.78

    @pytest.mark.asyncio
    async def test_record_view(self, catalog, buyer_service):
        await catalog.record_view("p1")

        assert last_call(buyer_service, "rpc")[1:3] == ("increment_product_view", {"p_product_id": "p1"})


@pytest.mark.unit
class TestProducts:

    @pytest.mark.asyncio
    async def test_get_product_not_found(self, catalog, buyer_service):
        buyer_service.select_results["products"] = DataServiceResponseError(
            "HTTP 406", status_code=406, code="PGRST116"
        )

        with pytest.raises(NotFoundError):
            await catalog.get_product("missing")

    @pytest.mark.asyncio
    async def test_create_product(self, seller_service):
        catalog = CatalogService(seller_service)

        product = await catalog.create_product(
            "Basket", "Hand-woven", "crafts", 50.0, 3,
            "https://cdn.test/basket.jpg", -17.78, -63.18, "Mercado Los Pozos"
        )

        table, row = seller_service.inserted[0]
        assert table == "products"
        assert row["seller_id"] == "seller-1"
        assert row["is_available"] is True
        assert product.price == 50.0

    @pytest.mark.asyncio
    async def test_create_product_validation(self, seller_service, backend):
        catalog = CatalogService(seller_service)

        with pytest.raises(ValidationException):
            await catalog.create_product("Basket", "", "crafts", 0, 3, "", 0, 0, "")
        with pytest.raises(ValidationException):
            await catalog.create_product("Basket", "", "crafts", 10, -1, "", 0, 0, "")

        from tests.fixtures.fake_data_service import FakeDataService
        with pytest.raises(AuthRequiredError):
            await CatalogService(FakeDataService(backend)).create_product("Basket", "", "crafts", 10, 1, "", 0, 0, "")
        assert seller_service.inserted == []
