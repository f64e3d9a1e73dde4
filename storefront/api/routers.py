from fastapi import APIRouter
from storefront.api import version_prefix
from storefront.cart.routes import carts_router
from storefront.catalog.routes import (characters_admin_router, characters_public_router, comics_admin_router,
                                       comics_public_router, companies_admin_router, companies_public_router)
from storefront.orders.routes import orders_router
from storefront.common.routes import home_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(comics_public_router, prefix="/comics",tags=["comics"])
public_routers.include_router(companies_public_router, prefix="/companies",tags=["companies"])
public_routers.include_router(characters_public_router, prefix="/characters",tags=["characters"])
public_routers.include_router(carts_router,prefix="/cart",tags=["cart"])
public_routers.include_router(orders_router,tags=["orders"])
public_routers.include_router(home_router,tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin")

admin_routers.include_router(comics_admin_router, prefix="/comics",tags=["comics-admin"])
admin_routers.include_router(companies_admin_router, prefix="/companies",tags=["companies-admin"])
admin_routers.include_router(characters_admin_router, prefix="/characters",tags=["characters-admin"])
