from core.loader import load_from_directory
from core.registry import ServiceRegistry


def test_churn_router_is_discovered():
    load_from_directory("modules")
    prefixes = [router.prefix for router in ServiceRegistry.get_all_apis()]
    assert "/api/churn" in prefixes
