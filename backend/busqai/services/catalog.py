"""
Product catalog service.

WHAT: Search, popular products, product listing with filters, view counting, product creation
WHY: Buyers discover products before opening a negotiation
HOW: Search and popularity run as backend RPCs; the plain listing is a filtered select
     with the seller profile embedded and resolved into the Seller tagged union
"""

import math
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..core.config import settings
from ..dataservice.provider import DataService
from ..dataservice.types import DataServiceResponseError
from ..models.marketplace import NamedSeller, Product, ProductSearchResult, ProfileSeller
from ..utils.exceptions import AuthRequiredError, NotFoundError, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SELLER_NAME = "Seller"

_SEARCH_TERM_PATTERN = re.compile(r"[^0-9a-záéíóúüñ\s]", re.IGNORECASE)


def resolve_seller(raw: Any) -> NamedSeller | ProfileSeller | None:
    """
    Coerce the seller field of a product row into the Seller union.

    Rows carry either a bare name, an embedded profile object, or nothing.

    Args:
        raw: Seller value as returned by the backend

    Returns:
        NamedSeller, ProfileSeller, or None when absent
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        name = raw.strip()
        return NamedSeller(name=name or DEFAULT_SELLER_NAME)
    if isinstance(raw, dict):
        name = (raw.get("full_name") or "").strip() or DEFAULT_SELLER_NAME
        if raw.get("id"):
            return ProfileSeller(id=str(raw["id"]), full_name=name)
        return NamedSeller(name=name)
    logger.warning(f"Unrecognized seller shape: {type(raw).__name__}")
    return None


def _to_product(row: Dict[str, Any]) -> Optional[Product]:
    """Build a Product from a listing row; None for rows that cannot be used."""
    if not row or not row.get("id"):
        logger.warning("Skipping product row without id")
        return None

    data = {key: value for key, value in row.items() if value is not None and key not in ("profiles", "seller")}
    for text_field in ("title", "description", "category", "address"):
        if isinstance(data.get(text_field), str):
            data[text_field] = data[text_field].strip()
            if not data[text_field]:
                data.pop(text_field)
    for number_field in ("price", "stock"):
        if number_field in data:
            try:
                data[number_field] = max(0, float(data[number_field]) if number_field == "price" else int(data[number_field]))
            except (TypeError, ValueError):
                data.pop(number_field)

    data["seller"] = resolve_seller(row.get("profiles", row.get("seller")))
    try:
        return Product.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Skipping malformed product {row.get('id')}: {e}")
        return None


class CatalogService:
    """Read and publish products."""

    def __init__(self, data_service: DataService):
        self.data_service = data_service

    async def search_products(
        self,
        query: str = "",
        *,
        user_lat: float | None = None,
        user_lng: float | None = None,
        category: str | None = None,
        max_price: float | None = None,
        max_distance_km: float | None = None,
        limit: int | None = None,
        offset: int = 0
    ) -> List[ProductSearchResult]:
        """
        Full-text and distance search.

        Returns:
            Ranked search results
        """
        rows = await self.data_service.rpc("search_products", {
            "p_query": query or "",
            "p_user_lat": user_lat,
            "p_user_lng": user_lng,
            "p_category": category,
            "p_max_price": max_price,
            "p_max_distance_km": max_distance_km or settings.SEARCH_DEFAULT_DISTANCE_KM,
            "p_limit": limit or settings.SEARCH_DEFAULT_LIMIT,
            "p_offset": offset or 0,
        }, retry=True)

        results = []
        for row in rows or []:
            try:
                result = ProductSearchResult.model_validate(row)
            except ValidationError as e:
                logger.warning(f"Skipping malformed search result: {e}")
                continue
            if result.seller is None and result.seller_name:
                result.seller = NamedSeller(name=result.seller_name)
            results.append(result)

        logger.info(f"Search '{query}' returned {len(results)} products")
        return results

    async def popular_products(
        self,
        user_lat: float | None = None,
        user_lng: float | None = None,
        limit: int = 10
    ) -> List[ProductSearchResult]:
        """Most viewed products near the user."""
        rows = await self.data_service.rpc("get_popular_products", {
            "p_user_lat": user_lat,
            "p_user_lng": user_lng,
            "p_limit": limit,
        }, retry=True)
        return [ProductSearchResult.model_validate(row) for row in rows or []]

    async def record_view(self, product_id: str) -> None:
        """Increment the product view counter."""
        await self.data_service.rpc("increment_product_view", {"p_product_id": product_id})

    async def list_products(
        self,
        query: str | None = None,
        category: str | None = None,
        max_price: float | None = None,
        limit: int | None = None,
        offset: int | None = None
    ) -> List[Product]:
        """
        List visible, available products.

        WHAT: Filtered product listing
        WHY: Browse view without the search RPC
        HOW: PostgREST filters; a numeric query becomes a +/-20% price window

        Raises:
            AuthRequiredError: Backend refused the read for lack of permission
        """
        filters: Dict[str, str] = {"is_visible": "eq.true", "is_available": "eq.true"}
        price_filters: List[str] = []

        term = _SEARCH_TERM_PATTERN.sub("", (query or "").strip().lower()).strip()
        if term:
            filters["or"] = f"(title.ilike.*{term}*,description.ilike.*{term}*,category.ilike.*{term}*)"
            try:
                price = float(term)
            except ValueError:
                price = 0.0
            if math.isfinite(price) and price > 0:
                price_filters += [f"gte.{price * 0.8:g}", f"lte.{price * 1.2:g}"]

        if category:
            filters["category"] = f"ilike.*{category}*"
        if max_price and math.isfinite(max_price) and max_price > 0:
            price_filters.append(f"lte.{max_price:g}")
        if price_filters:
            # PostgREST accepts repeated column filters through and=()
            filters["and"] = "(" + ",".join(f"price.{clause}" for clause in price_filters) + ")"

        capped = min(limit or settings.SEARCH_DEFAULT_LIMIT, settings.PRODUCT_LIST_MAX_LIMIT)
        order = "title.asc" if term else "created_at.desc"

        try:
            rows = await self.data_service.select(
                "products",
                filters=filters,
                columns="*,profiles!inner(id,full_name,avatar,phone)",
                order=order,
                limit=capped,
                offset=offset
            )
        except DataServiceResponseError as e:
            if e.is_permission_denied:
                raise AuthRequiredError("browsing products") from e
            raise

        products = [product for product in map(_to_product, rows or []) if product is not None]
        logger.info(f"Listed {len(products)} products (limit {capped})")
        return products

    async def get_product(self, product_id: str) -> Product:
        """
        Fetch one product with its seller.

        Raises:
            NotFoundError: No such product
        """
        try:
            row = await self.data_service.select(
                "products",
                filters={"id": f"eq.{product_id}"},
                columns="*,profiles(id,full_name)",
                single=True
            )
        except DataServiceResponseError as e:
            if e.is_not_found:
                raise NotFoundError("product", product_id) from e
            raise

        product = _to_product(row)
        if product is None:
            raise NotFoundError("product", product_id)
        return product

    async def create_product(
        self,
        title: str,
        description: str,
        category: str,
        price: float,
        stock: int,
        image_url: str,
        latitude: float,
        longitude: float,
        address: str
    ) -> Product:
        """
        Publish a product for the signed-in seller.

        The image URL comes from the media service upload.

        Raises:
            AuthRequiredError: No signed-in user
            ValidationException: Non-positive price or negative stock
        """
        seller_id = self.data_service.user_id
        if seller_id is None:
            raise AuthRequiredError("publishing a product")
        if price <= 0:
            raise ValidationException("Price must be greater than zero", [{"field": "price", "error": "not_positive"}])
        if stock < 0:
            raise ValidationException("Stock cannot be negative", [{"field": "stock", "error": "negative"}])

        row = await self.data_service.insert("products", {
            "seller_id": seller_id,
            "title": title,
            "description": description,
            "category": category,
            "price": price,
            "stock": stock,
            "image_url": image_url,
            "latitude": latitude,
            "longitude": longitude,
            "address": address,
            "is_visible": True,
            "is_available": True,
            "view_count": 0,
            "chat_count": 0,
            "sale_count": 0,
        })
        logger.info(f"Product {row.get('id')} created by seller {seller_id}")
        return Product.model_validate(row)
