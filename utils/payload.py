from flask import request

from utils.errors import ValidationError


def json_body() -> dict:
    """The request's JSON object; a missing or unparsable body reads as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid request")
    return data
