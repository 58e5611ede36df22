from core.base_database import BaseDatabase

from core.logger import Logger
logger = Logger(__name__)

class BaseService(BaseDatabase):
    name: str = "base"

    def __init__(self):
        logger.info(f"Initializing service: {self.name}")
        super().__init__()
