"""
Example usage of the generic repository in FastAPI endpoints.

This file demonstrates how an application wires a concrete entity (model,
filter, update and composer) onto MongoRepository and exposes it through
routes.
"""

from fastapi import APIRouter, Depends, FastAPI
from pydantic import BaseModel, ConfigDict, Field

from mongo_repository import ApplicationLifetime, FilterBase, MongoRepository
from mongo_repository.api.errors import register_exception_handlers
from mongo_repository.api.lifespan import repository_lifespan
from mongo_repository.core.db import get_database
from mongo_repository.repos.composer import (
    always_true,
    combine_filters,
    eq_filter,
    from_to_filter,
    set_update,
)
from mongo_repository.repos.fields import FieldRegistry

# ============================================================================
# Entity definitions (per-application glue)
# ============================================================================


class Product(BaseModel):
    id: int
    name: str
    category_id: int | None = None
    price: int = 0
    created_at: int = 0


class Category(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="_id")
    title: str


class ProductWithCategory(BaseModel):
    id: int
    name: str
    price: int = 0
    category: Category


class ProductFilter(FilterBase):
    id: int | None = None
    name: str | None = None
    category_id: int | None = None


class ProductUpdate(BaseModel):
    name: str | None = None
    price: int | None = None


class ProductComposer:
    """Products filter by id, name and category; range filters default to created_at."""

    def compose_filter(self, filter: ProductFilter, fields: FieldRegistry) -> dict:
        clauses = [always_true()]
        if filter.id is not None:
            clauses.append(eq_filter("id", filter.id, fields))
        if filter.name is not None:
            clauses.append({"name": {"$regex": filter.name, "$options": "i"}})
        if filter.category_id is not None:
            clauses.append(eq_filter("category_id", filter.category_id, fields))
        clauses.append(from_to_filter("created_at", filter, fields))
        return combine_filters(*clauses)

    def compose_update(self, update: ProductUpdate, fields: FieldRegistry) -> dict:
        return set_update({"name": update.name, "price": update.price}, fields)


# ============================================================================
# Wiring
# ============================================================================

lifetime = ApplicationLifetime()


def get_product_repository() -> MongoRepository[Product, ProductFilter, ProductUpdate]:
    return MongoRepository(
        get_database(), "products", Product, ProductComposer(), cancel=lifetime.stopping
    )


router = APIRouter(prefix="/api/v1", tags=["examples"])


# ============================================================================
# Example 1: Paginated listing
# ============================================================================


@router.get("/products")
async def list_products(
    filter: ProductFilter = Depends(),
    repo: MongoRepository = Depends(get_product_repository),
):
    """
    List products one page at a time.

    ``?sort=price-desc&pageIndex=2&pageSize=20&from=1700000000`` is handled by
    the repository; unknown sort tokens silently fall back to newest first.
    """
    page = await repo.find_with_pagination(filter)
    return page.to_response()


# ============================================================================
# Example 2: Insert (duplicate ids surface as 409 via the error handler)
# ============================================================================


@router.post("/products", status_code=201)
async def create_product(
    product: Product, repo: MongoRepository = Depends(get_product_repository)
):
    await repo.insert_one(product)
    return product


# ============================================================================
# Example 3: Partial update returning the new state
# ============================================================================


@router.patch("/products/{product_id}")
async def update_product(
    product_id: int,
    update: ProductUpdate,
    repo: MongoRepository = Depends(get_product_repository),
):
    return await repo.find_one_and_update(
        ProductFilter(id=product_id), update, return_updated=True
    )


# ============================================================================
# Example 4: Join products to their category
# ============================================================================


@router.get("/products-with-category")
async def list_products_with_category(
    filter: ProductFilter = Depends(),
    repo: MongoRepository = Depends(get_product_repository),
):
    page, count = repo.aggregate_with_pagination(filter)
    joined = repo.lookup(
        page,
        "categories",
        local_field="category_id",
        foreign_field="_id",
        as_field="category",
        result_type=ProductWithCategory,
    )
    result = await repo.to_pagination(joined, filter, count)
    return result.to_response()


def create_app() -> FastAPI:
    app = FastAPI(title="Products", lifespan=repository_lifespan(lifetime))
    register_exception_handlers(app)
    app.include_router(router)
    return app
