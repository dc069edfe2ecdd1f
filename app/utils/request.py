from flask import request

from app.errors import ValidationError


def get_json_body():
    """JSON object body, or an empty dict for a missing/invalid body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def text_field(data, name, default='', strip=True):
    """
    String value of data[name]; numbers are accepted and stringified.

    Missing or null values give ``default``. Objects, lists and booleans
    raise ValidationError(INVALID_FIELD).
    """
    value = data.get(name)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(f'{name} must be a string', code='INVALID_FIELD')
    value = str(value)
    return value.strip() if strip else value


def page_args(default_limit=20, max_limit=100):
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', default_limit, type=int)
    if page < 1:
        page = 1
    if limit < 1 or limit > max_limit:
        limit = default_limit
    return page, limit
