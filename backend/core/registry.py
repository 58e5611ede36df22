from typing import Dict
from core.logger import Logger

logger = Logger(__name__)

class ServiceRegistry:
    _apis: Dict[str, object] = {}

    @classmethod
    def register_api(cls, name: str, router):
        """Register an API router for the module."""
        if name in cls._apis:
            logger.warning(f"API name conflict for name {name}, {router.prefix} is already registered under route {cls._apis[name].prefix}, overwriting.")
        cls._apis[name] = router

    @classmethod
    def get_all_apis(cls):
        """Get all registered API routers."""
        return cls._apis.values()
