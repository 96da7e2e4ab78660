import json

from pydantic import ValidationError

from app.schemas.orders import CreateOrderIn
from app.services.errors import ErrorKind, ServiceError

MALFORMED_BODY = "Corps de requête invalide"
INVALID_ORDER = "Données de commande invalides"

# pydantic's built-in errors; the rules in app.schemas.orders raise their own French messages
_BUILTIN_MESSAGES = {
    "missing": 'Le champ "{field}" est requis',
    "literal_error": 'Valeur non autorisée pour "{field}"',
}
_TYPE_MESSAGE = 'Type invalide pour "{field}"'
_TYPE_ERRORS = {"string_type", "list_type", "model_type", "model_attributes_type", "dict_type", "bool_type"}


def parse_json_body(raw: bytes):
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ServiceError(MALFORMED_BODY, ErrorKind.VALIDATION) from exc


def _detail(err: dict) -> str:
    names = [part for part in err["loc"] if isinstance(part, str)]
    field = names[-1] if names else "commande"
    if err["type"] in _BUILTIN_MESSAGES:
        return _BUILTIN_MESSAGES[err["type"]].format(field=field)
    if err["type"] in _TYPE_ERRORS:
        return _TYPE_MESSAGE.format(field=field)
    return err["msg"]


def validate_order_intake(data) -> CreateOrderIn:
    """Schema-validate a decoded body; one detail message per violated rule."""
    try:
        return CreateOrderIn.model_validate(data)
    except ValidationError as exc:
        details = [_detail(err) for err in exc.errors(include_url=False)]
        raise ServiceError(INVALID_ORDER, ErrorKind.VALIDATION, details) from exc
