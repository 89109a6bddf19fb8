from flask import request

from core.errors import ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def text_fields(data, *names):
    """Optional string fields of a JSON body, "" when absent. Other types are a 400."""
    values = []
    for name in names:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{name} must be a string")
        values.append(value or "")
    return values[0] if len(values) == 1 else values
