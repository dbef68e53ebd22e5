"""
Product catalog, stock movements and customer returns.
"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from carworld.core.database import get_db
from carworld.models.product import ProductStatus, TransactionType, ReturnStatus
from carworld.models.user import User
from carworld.modules.auth.dependencies import require_permission
from carworld.schemas.common import MessageResponse
from carworld.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ResolveByIdsRequest,
    ProductImportRequest,
    ProductImportResponse,
    DeleteDuplicatesResponse,
    InventoryTransactionCreate,
    InventoryTransactionResponse,
    ProductReturnCreate,
    ProductReturnUpdate,
    ProductReturnResponse,
)
from carworld.services.activity_logger import log_activity
from carworld.services.inventory_service import inventory_service
from carworld.utils.pagination import paginate, paginated

router = APIRouter(prefix="/products", tags=["Products"])
inventory_router = APIRouter(prefix="/inventory", tags=["Inventory"])
returns_router = APIRouter(prefix="/product-returns", tags=["Product Returns"])


# ============================================
# Products
# ============================================

@router.get("")
async def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[ProductStatus] = None,
    brand: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("products", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = inventory_service.list_products_query(search, category, status, brand)
    data = await paginate(db, query, page, page_size)
    return paginated(data, ProductResponse)


@router.get("/low-stock", response_model=List[ProductResponse])
async def low_stock_products(
    current_user: User = Depends(require_permission("products", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await inventory_service.low_stock(db)


@router.get("/categories")
async def product_categories(
    current_user: User = Depends(require_permission("products", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await inventory_service.categories(db)


@router.post("/resolve-by-ids", response_model=List[ProductResponse])
async def resolve_products(
    data: ResolveByIdsRequest,
    current_user: User = Depends(require_permission("products", "read")),
    db: AsyncSession = Depends(get_db)
):
    """Look up many products at once; unknown ids are skipped"""
    return await inventory_service.resolve_by_ids(db, data.ids)


@router.post("/import", response_model=ProductImportResponse)
async def import_products(
    request: Request,
    data: ProductImportRequest,
    current_user: User = Depends(require_permission("products", "create")),
    db: AsyncSession = Depends(get_db)
):
    """Bulk create; invalid rows are reported and the rest still imported"""
    result = await inventory_service.import_products(db, data.products)
    await log_activity(
        db, current_user, "import", "product",
        f"Imported {result['created']} products ({result['failed']} failed)",
        details={"created": result["created"], "failed": result["failed"]}, request=request,
    )
    return result


@router.post("/delete-duplicates", response_model=DeleteDuplicatesResponse)
async def delete_duplicate_products(
    request: Request,
    current_user: User = Depends(require_permission("products", "delete")),
    db: AsyncSession = Depends(get_db)
):
    result = await inventory_service.delete_duplicates(db)
    await log_activity(
        db, current_user, "delete", "product",
        f"Removed {result['deleted']} duplicate products", details=result, request=request,
    )
    return result


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    request: Request,
    data: ProductCreate,
    current_user: User = Depends(require_permission("products", "create")),
    db: AsyncSession = Depends(get_db)
):
    product = await inventory_service.create_product(db, data)
    await log_activity(db, current_user, "create", "product", f"Created product {product.name}", product.id, request=request)
    return product


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    current_user: User = Depends(require_permission("products", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await inventory_service.get_product(db, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    request: Request,
    data: ProductUpdate,
    current_user: User = Depends(require_permission("products", "update")),
    db: AsyncSession = Depends(get_db)
):
    product = await inventory_service.update_product(db, product_id, data)
    await log_activity(
        db, current_user, "update", "product", f"Updated product {product.name}", product.id,
        details={"fields": sorted(data.model_dump(exclude_unset=True))}, request=request,
    )
    return product


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    request: Request,
    current_user: User = Depends(require_permission("products", "delete")),
    db: AsyncSession = Depends(get_db)
):
    await inventory_service.delete_product(db, product_id)
    await log_activity(db, current_user, "delete", "product", f"Deleted product {product_id}", product_id, request=request)
    return MessageResponse(message="Product deleted")


# ============================================
# Inventory transactions
# ============================================

@inventory_router.get("/transactions")
async def list_transactions(
    product_id: Optional[str] = None,
    type: Optional[TransactionType] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(require_permission("inventory", "read")),
    db: AsyncSession = Depends(get_db)
):
    query = inventory_service.list_transactions_query(product_id, type, start_date, end_date)
    data = await paginate(db, query, page, page_size)
    return paginated(data, InventoryTransactionResponse)


@inventory_router.post(
    "/transactions",
    response_model=InventoryTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_transaction(
    request: Request,
    data: InventoryTransactionCreate,
    current_user: User = Depends(require_permission("inventory", "create")),
    db: AsyncSession = Depends(get_db)
):
    """IN and RETURN add stock, OUT removes it, ADJUSTMENT sets the absolute level"""
    transaction = await inventory_service.record_transaction(db, data, current_user.id)
    await log_activity(
        db, current_user, "stock_" + data.type.value.lower(), "inventory",
        f"{data.type.value} {data.quantity} units: {data.reason}",
        transaction.id,
        details={"product_id": data.product_id, "previous": transaction.previous_stock, "new": transaction.new_stock},
        request=request,
    )
    return transaction


# ============================================
# Returns
# ============================================

@returns_router.get("")
async def list_returns(
    status: Optional[ReturnStatus] = None,
    product_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_permission("inventory", "read")),
    db: AsyncSession = Depends(get_db)
):
    data = await paginate(db, inventory_service.list_returns_query(status, product_id), page, page_size)
    return paginated(data, ProductReturnResponse)


@returns_router.post("", response_model=ProductReturnResponse, status_code=status.HTTP_201_CREATED)
async def create_return(
    request: Request,
    data: ProductReturnCreate,
    current_user: User = Depends(require_permission("inventory", "create")),
    db: AsyncSession = Depends(get_db)
):
    product_return = await inventory_service.create_return(db, data)
    await log_activity(
        db, current_user, "create", "product_return",
        f"Logged return of {data.quantity} units: {data.reason}", product_return.id, request=request,
    )
    return product_return


@returns_router.get("/{return_id}", response_model=ProductReturnResponse)
async def get_return(
    return_id: str,
    current_user: User = Depends(require_permission("inventory", "read")),
    db: AsyncSession = Depends(get_db)
):
    return await inventory_service.get_return(db, return_id)


@returns_router.put("/{return_id}", response_model=ProductReturnResponse)
async def update_return(
    return_id: str,
    request: Request,
    data: ProductReturnUpdate,
    current_user: User = Depends(require_permission("inventory", "update")),
    db: AsyncSession = Depends(get_db)
):
    product_return = await inventory_service.update_return(db, return_id, data, current_user.id)
    await log_activity(
        db, current_user, "update", "product_return",
        f"Return {product_return.id} is now {product_return.status.value}", product_return.id, request=request,
    )
    return product_return
