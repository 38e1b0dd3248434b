# utils/json_provider.py
import uuid
from datetime import date, datetime

from flask.json.provider import DefaultJSONProvider


class CustomJSONProvider(DefaultJSONProvider):
    """JSON provider that emits ISO-8601 timestamps and plain-string UUIDs"""
    sort_keys = False

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.strftime('%Y-%m-%d')
        if isinstance(obj, uuid.UUID):
            return str(obj)
        return super().default(obj)
