import importlib
import pkgutil
import sys
from pathlib import Path

from core.logger import Logger
logger = Logger(__name__)

BASE_PATHS = ("modules",)
SUBMODULES = ("service", "api")


def load_from_directory(base_path: str = "modules", submodules=None, recursive=True):
    """
    Dynamically import project packages and their known submodules (service, api)
    so that module-level registrations run.
    """
    submodules = submodules or SUBMODULES

    base_dir = (Path(__file__).resolve().parent.parent / base_path)
    logger.info(f"Scanning base path: {base_dir}")

    if not base_dir.exists():
        logger.warning(f"Directory not found: {base_dir}")
        return

    if str(base_dir.parent) not in sys.path:
        sys.path.insert(0, str(base_dir.parent))

    walker = pkgutil.walk_packages([str(base_dir)], prefix=f"{base_path}.") if recursive else pkgutil.iter_modules([str(base_dir)], prefix=f"{base_path}.")

    for module_info in walker:
        if not module_info.ispkg:
            continue
        name = module_info.name
        try:
            importlib.import_module(name)
            logger.debug(f"Imported module: {name}")

            for sub in submodules:
                submodule_path = f"{name}.{sub}"
                try:
                    importlib.import_module(submodule_path)
                    logger.info(f"Loaded submodule: {submodule_path}")
                except ModuleNotFoundError as e:
                    if e.name != submodule_path:
                        logger.error(f"Failed to load {submodule_path}: {e}")
                    continue
                except Exception as e:
                    logger.error(f"Failed to load {submodule_path}: {e}")

        except Exception as e:
            logger.error(f"Error loading module {name}: {e}")

def auto_load_all():
    for base in BASE_PATHS:
        load_from_directory(base)
