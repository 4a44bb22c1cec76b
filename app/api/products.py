from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlmodel import Session

from app.api.deps import require_admin_user
from app.api.responses import ok, raise_for
from app.core.database import get_db
from app.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from app.models import Product, User
from app.schemas import ProductCreate, ProductUpdate
from app.services import products as product_service

router = APIRouter(prefix="/products", tags=["products"])


def _product_out(product: Product) -> dict:
    data = product.model_dump()
    data["in_stock"] = product.in_stock
    return data


@router.get("/")
@limiter.limit(READ_LIMIT)
def list_products(
    request: Request,
    category: str | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    products = product_service.list_products(db, category=category, skip=skip, limit=limit)
    return ok("Productos obtenidos exitosamente", {"products": [_product_out(p) for p in products]})


@router.get("/{product_id}")
@limiter.limit(READ_LIMIT)
def get_product(
    request: Request,
    product_id: int,
    db: Session = Depends(get_db),
):
    product = product_service.get_product(db, product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return ok("Producto obtenido exitosamente", {"product": _product_out(product)})


@router.post("/", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_product(
    request: Request,
    body: ProductCreate,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = raise_for(product_service.create_product(db, body, admin.id))
    return ok("Producto creado exitosamente", {"product": _product_out(result["product"])})


@router.put("/{product_id}")
@limiter.limit(WRITE_LIMIT)
def update_product(
    request: Request,
    product_id: int,
    body: ProductUpdate,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = product_service.update_product(db, product_id, body, admin.id)
    raise_for(result, 404 if result.get("error") == "Producto no encontrado" else 400)
    return ok("Producto actualizado exitosamente", {"product": _product_out(result["product"])})
