from bson import ObjectId
from datetime import datetime, date
from core.base_database import BaseDatabase
from core.logger import Logger

logger = Logger(__name__)

class BaseUtils(BaseDatabase):
    def __init__(self):
        pass

    def sanitize_mongo_doc(self, doc):
        # Handle dicts
        if isinstance(doc, dict):
            return {k: self.sanitize_mongo_doc(v) for k, v in doc.items()}

        # Handle lists
        elif isinstance(doc, list):
            return [self.sanitize_mongo_doc(item) for item in doc]

        # Handle Mongo ObjectId
        elif isinstance(doc, ObjectId):
            return str(doc)

        # Handle datetime/date safely → convert to ISO string
        elif isinstance(doc, (datetime, date)):
            return doc.isoformat()

        # Fallback: primitive type
        else:
            return doc

    def fix_dates_for_mongo(self, doc):
        if isinstance(doc, dict):
            return {k: self.fix_dates_for_mongo(v) for k, v in doc.items()}
        elif isinstance(doc, list):
            return [self.fix_dates_for_mongo(v) for v in doc]
        elif isinstance(doc, date) and not isinstance(doc, datetime):
            # convert pure date to datetime at midnight
            return datetime.combine(doc, datetime.min.time())
        else:
            return doc

    def to_date(self, value):
        """Coerce a Mongo datetime / ISO string / date into a calendar date (None passes through)."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        raise ValueError(f"Unsupported date value: {value!r}")
