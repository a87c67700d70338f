"""
Módulo de validação e sanitização de inputs.
"""
import html
import re
from datetime import datetime
from typing import Any, Optional

from .exceptions import ValidationError

DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
)


def sanitize_string(value: str, max_length: int = None, min_length: int = 0, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise ValidationError("Valor deve ser uma string")
    value = value.strip()
    if allow_empty and len(value) == 0:
        return value
    if min_length > 0 and len(value) < min_length:
        raise ValidationError(f"String deve ter no mínimo {min_length} caracteres")
    if max_length and len(value) > max_length:
        raise ValidationError(f"String deve ter no máximo {max_length} caracteres")
    value = re.sub(r'[\x00-\x1f\x7f-\x9f]', '', value)
    return html.escape(value)


def validate_integer(value: Any, min_value: int = None, max_value: int = None, allow_none: bool = False) -> Optional[int]:
    if value is None and allow_none:
        return None
    if isinstance(value, bool):
        raise ValidationError("Valor deve ser um número inteiro válido")
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError("Valor deve ser um número inteiro válido")
    if isinstance(value, float) and value != int_value:
        raise ValidationError("Valor deve ser um número inteiro válido")
    if min_value is not None and int_value < min_value:
        raise ValidationError(f"Valor deve ser no mínimo {min_value}")
    if max_value is not None and int_value > max_value:
        raise ValidationError(f"Valor deve ser no máximo {max_value}")
    return int_value


def validate_float(value: Any, min_value: float = None, max_value: float = None, allow_none: bool = False) -> Optional[float]:
    if value is None and allow_none:
        return None
    if isinstance(value, bool):
        raise ValidationError("Valor deve ser um número decimal válido")
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise ValidationError("Valor deve ser um número decimal válido")
    if min_value is not None and float_value < min_value:
        raise ValidationError(f"Valor deve ser no mínimo {min_value}")
    if max_value is not None and float_value > max_value:
        raise ValidationError(f"Valor deve ser no máximo {max_value}")
    return float_value


def validate_boolean(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in ('true', '1', 'yes', 'sim', 'on'):
            return True
        if normalized in ('false', '0', 'no', 'nao', 'não', 'off', ''):
            return False
    raise ValidationError("Valor booleano inválido")


def parse_datetime(value: Any, field_name: str = "data") -> datetime:
    """Converte string ISO (ou datetime) em datetime ingênuo no horário local."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Campo '{field_name}' deve ser uma data válida")
    raw = value.strip()
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if parsed.tzinfo:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed
    except ValueError:
        pass
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    raise ValidationError(f"Formato de data inválido em '{field_name}'. Use YYYY-MM-DD ou ISO 8601")


def parse_datetime_safe(value):
    """Auxiliar para ler datas vindas do banco (string ou datetime)."""
    if value is None or value == '':
        return None
    try:
        return parse_datetime(value)
    except ValidationError:
        return None
