"""Request payload validation for user create/update.

Both entry points collect every failed rule into one ordered list of
human-readable messages and raise ``ValidationError`` with it. They have no
side effects.
"""

from typing import Any

import pydantic

from api.models import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    CreateUserRequest,
    UpdateUserRequest,
)
from domain.model.errors import ValidationError
from domain.model.user import (
    FederatedCredential,
    NewUser,
    PasswordCredential,
    Phone,
    Role,
    UserChanges,
)

CREDENTIAL_XOR_MESSAGE = 'Either password or provider must be provided, but not both'
PROVIDER_ID_REQUIRED_MESSAGE = 'Provider ID is required when provider is specified'
PROVIDER_ID_FORBIDDEN_MESSAGE = 'Provider ID should only be provided with a provider'
NOT_AN_OBJECT_MESSAGE = 'Request body must be a JSON object'

_LABELS = {
    'email': 'Email',
    'name': 'Name',
    'role': 'Role',
    'isVerified': 'isVerified',
    'phone': 'Phone',
    'phone.countryCode': 'Country code',
    'phone.number': 'Phone number',
    'password': 'Password',
    'provider': 'Provider',
    'providerId': 'Provider ID',
}

_PATTERN_MESSAGES = {
    'phone.countryCode': 'Country code format is invalid (use format: +1)',
    'phone.number': 'Phone number format is invalid (use format: 1234567890)',
}

_ROLE_VALUES = ', '.join(r.value for r in Role)


def _format_error(error: dict) -> str:
    """Turn one pydantic error into a readable message."""
    field = '.'.join(str(part) for part in error['loc'])
    label = _LABELS.get(field, field)
    kind = error['type']
    ctx = error.get('ctx') or {}

    if kind == 'missing':
        return f'{label} is required'
    if kind == 'extra_forbidden':
        return f'"{field}" is not allowed'
    if kind == 'string_type':
        return f'{label} should be a string'
    if kind == 'string_too_short':
        if field == 'name':
            return f'Name should be at least {NAME_MIN_LENGTH} characters long'
        if field == 'password':
            return f'Password should be at least {PASSWORD_MIN_LENGTH} characters long'
        return f'{label} should not be empty'
    if kind == 'string_too_long':
        limit = {'name': NAME_MAX_LENGTH, 'password': PASSWORD_MAX_LENGTH}.get(field, ctx.get('max_length'))
        return f'{label} should not exceed {limit} characters'
    if kind == 'string_pattern_mismatch':
        return _PATTERN_MESSAGES.get(field, f'{label} format is invalid')
    if kind == 'enum':
        return f'Role must be one of the following: {_ROLE_VALUES}'
    if kind in ('bool_type', 'bool_parsing'):
        return f'{label} should be a boolean'
    if kind in ('model_type', 'model_attributes_type', 'dict_type'):
        return 'Phone should be an object with countryCode and number'
    if kind == 'email_pattern':
        return error['msg']
    if field == 'email':
        return 'Email should be a valid email address'
    return f"{label}: {error['msg']}"


def _field_messages(model: type[pydantic.BaseModel], payload: dict) -> tuple[list[str], Any]:
    try:
        return [], model.model_validate(payload)
    except pydantic.ValidationError as e:
        return [_format_error(err) for err in e.errors()], None


def _present(payload: dict, key: str) -> bool:
    return payload.get(key) is not None


def _credential_messages(payload: dict) -> list[str]:
    """Check the password/provider exclusivity on the raw payload."""
    messages = []
    has_password = _present(payload, 'password')
    has_provider = _present(payload, 'provider')
    if has_password == has_provider:
        messages.append(CREDENTIAL_XOR_MESSAGE)
    if has_provider and not _present(payload, 'providerId'):
        messages.append(PROVIDER_ID_REQUIRED_MESSAGE)
    if not has_provider and _present(payload, 'providerId'):
        messages.append(PROVIDER_ID_FORBIDDEN_MESSAGE)
    return messages


def validate_create_user(payload: Any) -> NewUser:
    """Validate a create payload and build a NewUser with a tagged credential.

    Raises:
        ValidationError: with every failed rule, in field order
    """
    if not isinstance(payload, dict):
        raise ValidationError([NOT_AN_OBJECT_MESSAGE])

    messages, request = _field_messages(CreateUserRequest, payload)
    messages.extend(m for m in _credential_messages(payload) if m not in messages)
    if messages:
        raise ValidationError(messages)

    if request.provider is not None:
        credential = FederatedCredential(provider=request.provider, provider_id=request.provider_id)
    else:
        credential = PasswordCredential(password=request.password)

    return NewUser(
        email=request.email,
        name=request.name,
        role=request.role,
        is_verified=request.is_verified,
        phone=Phone(country_code=request.phone.country_code, number=request.phone.number),
        credential=credential,
    )


def validate_update_user(payload: Any) -> UserChanges:
    """Validate a partial update payload.

    Raises:
        ValidationError: with every failed rule, in field order
    """
    if not isinstance(payload, dict):
        raise ValidationError([NOT_AN_OBJECT_MESSAGE])

    messages, request = _field_messages(UpdateUserRequest, payload)
    if messages:
        raise ValidationError(messages)

    phone = request.phone
    return UserChanges(
        email=request.email,
        name=request.name,
        role=request.role,
        is_verified=request.is_verified,
        country_code=phone.country_code if phone else None,
        phone_number=phone.number if phone else None,
        password=request.password,
    )
