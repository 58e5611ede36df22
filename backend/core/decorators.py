from enum import Enum
from bson import ObjectId
from bson.errors import InvalidId
from jose import jwt, JWTError
from functools import wraps
from fastapi import Request, HTTPException, status
from core.base_database import BaseDatabase
from core.config import JWT_SECRET_KEY, ALGORITHM
from core.logger import Logger

logger = Logger(__name__)

class AuthScope(str, Enum):
    USER = "user"

class TenantRole(str, Enum):
    ADMIN = "admin"
    MARKETING = "marketing"
    SUPPORT = "support"
    ACCOUNTANT = "accountant"
    OWNER = "owner"

async def get_user_from_token_data(token_data: dict):
    """Retrieve user object based on decoded JWT token data."""
    email = token_data.get("email")
    users_collection = BaseDatabase.mongodb.get_collection("users")
    user = await users_collection.find_one({"email": email, "$or": [{"archived": {"$exists": False}}, {"archived": False}]})
    return user

def _find_request(args, kwargs):
    return kwargs.get("request") or next((a for a in args if isinstance(a, Request)), None)

def auth_required(_func=None, scope: AuthScope = AuthScope.USER):
    """
    Decorator for routes that require authentication.
    Can be used on async FastAPI endpoints.

    Can be used as:
        @auth_required
        or
        @auth_required(scope=AuthScope.USER)
    """
    def decorator(f):
        @wraps(f)
        async def wrapper(*args, **kwargs):
            request = _find_request(args, kwargs)
            if not request:
                raise RuntimeError("Request object not found. Ensure route includes 'request: Request'.")

            # If middleware already attached user, use it
            user = getattr(request.state, "user", None)
            if user:
                logger.debug(f"Authenticated user: {user.get('email') if isinstance(user, dict) else user}")
                return await f(*args, **kwargs)

            auth_header = request.headers.get("Authorization")
            if not auth_header or not auth_header.startswith("Bearer "):
                logger.warning("Unauthorized request (missing token)")
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

            token = auth_header[len("Bearer "):]
            try:
                payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[ALGORITHM])
            except JWTError as e:
                logger.warning(f"Invalid token: {e}")
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

            user_obj = await get_user_from_token_data(payload)
            if not user_obj:
                logger.warning("Unauthorized request (invalid token)")
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
            request.state.user = user_obj

            return await f(*args, **kwargs)
        return wrapper

    # Support both @auth_required and @auth_required(scope=...)
    if _func is None:
        return decorator
    else:
        return decorator(_func)

async def get_tenant_and_role(tenant_id: str, user: dict):
    """Return the tenant document and the user's role in it, or (None, None)."""
    try:
        tenant_oid = ObjectId(tenant_id)
    except (InvalidId, TypeError):
        return None, None
    tenants_collection = BaseDatabase.mongodb.get_collection("tenants")
    tenant = await tenants_collection.find_one({"_id": tenant_oid, "$or": [{"archived": {"$exists": False}}, {"archived": False}]})
    if not tenant:
        return None, None
    if str(tenant.get("owner_id")) == str(user.get("_id")):
        return tenant, TenantRole.OWNER.value
    members_collection = BaseDatabase.mongodb.get_collection("tenant_members")
    membership = await members_collection.find_one({"tenant_id": tenant_id, "user_id": str(user.get("_id"))})
    if not membership:
        return tenant, None
    return tenant, membership.get("role")

def tenant_role_required(*roles: TenantRole, feature: str = None):
    """
    Restrict a tenant-scoped route to members holding one of `roles`.
    The tenant owner always passes. Must be stacked under @auth_required;
    the route needs `request: Request` and a `tenant_id` path parameter.

    Example usage:
        @auth_required
        @tenant_role_required(TenantRole.ADMIN, TenantRole.SUPPORT, feature="churn_analytics")
    """
    allowed = {r.value for r in roles} | {TenantRole.OWNER.value}

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            request = _find_request(args, kwargs)
            if not request:
                raise RuntimeError("Request object not found in function arguments")
            user = getattr(request.state, "user", None)
            if not user:
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

            tenant_id = kwargs.get("tenant_id")
            tenant, role = await get_tenant_and_role(tenant_id, user)
            if not tenant:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
            if feature and feature not in tenant.get("features", []):
                logger.warning(f"Feature '{feature}' disabled for tenant={tenant_id}")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
            if role not in allowed:
                logger.warning(f"User {user.get('_id')} with role={role} denied on tenant={tenant_id}")
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

            request.state.tenant = tenant
            return await func(*args, **kwargs)
        return wrapper
    return decorator
