"""Typed form payloads and list filters, validated before any request is sent."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taller_client.errors import FieldIssue, ValidationError

PAGE_SIZES: tuple[int, ...] = (10, 25, 50)
NO_FILTER_VALUES = frozenset({"", "all", "todos"})

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class FormModel(BaseModel):
    """Base for outgoing payloads: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )


def _optional_email(value: str | None) -> str | None:
    if value is None or value == "":
        return None
    if not _EMAIL_RE.match(value):
        raise ValueError("invalid email format")
    return value.lower()


class ClienteForm(FormModel):
    nombre: str = Field(min_length=1, max_length=100)
    nif: str = Field(min_length=1, max_length=20)
    tipo: Literal["particular", "empresa"] = "particular"
    apellidos: str | None = Field(default=None, max_length=100)
    razon_social: str | None = Field(default=None, max_length=200)
    email: str | None = None
    movil: str | None = Field(default=None, max_length=20)
    telefono: str | None = Field(default=None, max_length=20)
    direccion: str | None = None
    codigo_postal: str | None = Field(default=None, max_length=10)
    ciudad: str | None = None
    provincia: str | None = None
    notas: str | None = None
    rgpd_consentimiento: bool = False

    @field_validator("nif")
    @classmethod
    def _upper_nif(cls, value: str) -> str:
        return value.upper()

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str | None) -> str | None:
        return _optional_email(value)


class VehiculoForm(FormModel):
    cliente_id: int = Field(gt=0)
    matricula: str = Field(min_length=1, max_length=20)
    marca: str = Field(min_length=1, max_length=100)
    modelo: str = Field(min_length=1, max_length=100)
    vin: str | None = Field(default=None, max_length=50)
    version: str | None = None
    combustible: str | None = None
    km: int | None = Field(default=None, ge=0)
    color: str | None = None
    observaciones: str | None = None

    @field_validator("matricula")
    @classmethod
    def _normalize_plate(cls, value: str) -> str:
        return value.replace(" ", "").upper()


class CitaForm(FormModel):
    cliente_id: int = Field(gt=0)
    vehiculo_id: int = Field(gt=0)
    fecha_hora: datetime
    motivo: str = Field(min_length=1)
    estado: Literal["pendiente", "confirmada", "en_curso", "completada", "cancelada"] = (
        "pendiente"
    )
    canal: str = "telefono"
    notas: str | None = None


class CampanaForm(FormModel):
    nombre: str = Field(min_length=1)
    tipo: str = "promocion"
    estado: str = "borrador"
    descripcion: str | None = None
    dias_anticipacion: int = Field(default=0, ge=0)


class LoginForm(FormModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=6)


def _issue_field(location: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in location) or "__root__"


def validate_form(model: type[BaseModel], data: Mapping[str, Any]) -> dict[str, Any]:
    """Validate ``data`` against ``model`` and return the wire payload."""
    try:
        instance = model.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        issues = [
            FieldIssue(field=_issue_field(tuple(error["loc"])), message=error["msg"])
            for error in exc.errors()
        ]
        raise ValidationError(issues) from exc
    return instance.model_dump(by_alias=True, exclude_none=True, mode="json")


class ListFilters(BaseModel):
    """Filter state for one list page."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    search: str = ""
    estado: str = ""
    page: int = Field(default=1, ge=1)
    page_size: int = 10

    @field_validator("page_size")
    @classmethod
    def _known_page_size(cls, value: int) -> int:
        if value not in PAGE_SIZES:
            raise ValueError(f"page size must be one of {', '.join(map(str, PAGE_SIZES))}")
        return value

    def query_params(self) -> dict[str, str]:
        """Server-side filters that are set; paging stays client-side."""
        params: dict[str, str] = {}
        if self.search:
            params["search"] = self.search
        if self.estado.lower() not in NO_FILTER_VALUES:
            params["estado"] = self.estado
        return params
