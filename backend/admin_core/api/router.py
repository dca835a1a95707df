from fastapi import APIRouter

from .admin import actions as admin_actions
from .admin import queries as admin_queries
from .admin import roles as admin_roles

router = APIRouter()

# Fixed paths first: /admin/{resource}/... would otherwise capture them.
_admin_routers = [
    admin_roles.router,
    admin_queries.router,
    admin_actions.router,
]

for _router in _admin_routers:
    router.include_router(_router)
