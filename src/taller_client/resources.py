"""Catalog of backend resources and the read keys each write invalidates."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from taller_client.errors import ConfigError
from taller_client.forms import CampanaForm, CitaForm, ClienteForm, VehiculoForm
from taller_client.keys import RequestKey
from taller_client.mutations import Mutation

API_PREFIX = "/api"


@dataclass(frozen=True)
class Resource:
    """One REST collection under ``/api``.

    ``related`` lists other resource paths whose cached reads depend on this
    one; every write here invalidates the resource's own prefix plus those.
    """

    name: str
    path: str
    related: tuple[str, ...] = ()
    form: type[BaseModel] | None = None
    writable: bool = True
    extra_actions: tuple[tuple[str, str, str], ...] = field(default_factory=tuple)

    @property
    def invalidates(self) -> tuple[RequestKey, ...]:
        return tuple(RequestKey.of(path) for path in (self.path, *self.related))

    def list_key(self, filters: dict[str, Any] | None = None, **extra: Any) -> RequestKey:
        merged = {**(filters or {}), **extra}
        cleaned = {name: value for name, value in merged.items() if value not in (None, "")}
        if not cleaned:
            return RequestKey.of(self.path)
        return RequestKey.of(self.path, cleaned)

    def detail_key(self, resource_id: int | str) -> RequestKey:
        return RequestKey.of(self.path, resource_id)

    def _require_writable(self) -> None:
        if not self.writable:
            raise ConfigError(f"resource {self.name!r} is read-only")

    def create(self) -> Mutation:
        self._require_writable()
        return Mutation.define(
            f"{self.name}.create", "POST", self.path, invalidates=self.invalidates, form=self.form
        )

    def update(self) -> Mutation:
        self._require_writable()
        return Mutation.define(
            f"{self.name}.update",
            "PUT",
            f"{self.path}/{{id}}",
            invalidates=self.invalidates,
            form=self.form,
        )

    def delete(self) -> Mutation:
        self._require_writable()
        return Mutation.define(
            f"{self.name}.delete", "DELETE", f"{self.path}/{{id}}", invalidates=self.invalidates
        )

    def action(self, action_name: str) -> Mutation:
        for name, method, suffix in self.extra_actions:
            if name == action_name:
                return Mutation.define(
                    f"{self.name}.{name}",
                    method,
                    f"{self.path}/{suffix}",
                    invalidates=self.invalidates,
                )
        raise KeyError(f"resource {self.name!r} has no action {action_name!r}")

    def mutations(self) -> list[Mutation]:
        if not self.writable:
            return []
        declared = [self.create(), self.update(), self.delete()]
        declared.extend(self.action(name) for name, _, _ in self.extra_actions)
        return declared


class ResourceCatalog:
    """Resources by name, checked so that every invalidation targets a known path."""

    def __init__(self, resources: Iterable[Resource]) -> None:
        self._by_name: dict[str, Resource] = {}
        for resource in resources:
            if resource.name in self._by_name:
                raise ConfigError(f"duplicate resource name: {resource.name}")
            self._by_name[resource.name] = resource
        self.check_invalidations()

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)

    def __getitem__(self, name: str) -> Resource:
        try:
            return self._by_name[name]
        except KeyError as exc:
            raise ConfigError(f"unknown resource: {name}") from exc

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def paths(self) -> set[str]:
        return {resource.path for resource in self._by_name.values()}

    def for_path(self, path: str) -> Resource | None:
        normalized = path.rstrip("/")
        for resource in self._by_name.values():
            if resource.path == normalized:
                return resource
        return None

    def check_invalidations(self) -> None:
        known = self.paths()
        for resource in self._by_name.values():
            unknown = sorted(set(resource.related) - known)
            if unknown:
                raise ConfigError(
                    f"resource {resource.name!r} invalidates unknown paths: {', '.join(unknown)}"
                )


def _api(path: str) -> str:
    return f"{API_PREFIX}/{path}"


def default_catalog() -> ResourceCatalog:
    """Workshop resources exposed by the backend."""
    dashboard = _api("stats/dashboard")
    return ResourceCatalog(
        [
            Resource("clientes", _api("clientes"), related=(dashboard,), form=ClienteForm),
            Resource(
                "vehiculos",
                _api("vehiculos"),
                related=(_api("clientes"), dashboard),
                form=VehiculoForm,
            ),
            Resource("citas", _api("citas"), related=(dashboard,), form=CitaForm),
            Resource("ordenes", _api("ordenes"), related=(dashboard,)),
            Resource(
                "presupuestos",
                _api("presupuestos"),
                related=(_api("ordenes"),),
                extra_actions=(("aprobar", "POST", "{id}/aprobar"),),
            ),
            Resource("facturas", _api("facturas"), related=(_api("ordenes"), dashboard)),
            Resource("cobros", _api("cobros"), related=(_api("facturas"), dashboard)),
            Resource("articulos", _api("articulos")),
            Resource("proveedores", _api("proveedores")),
            Resource("pedidos-compra", _api("pedidos-compra"), related=(_api("articulos"),)),
            Resource(
                "recepciones",
                _api("recepciones"),
                related=(_api("pedidos-compra"), _api("articulos"), _api("movimientos-almacen")),
            ),
            Resource("ubicaciones", _api("ubicaciones")),
            Resource(
                "movimientos-almacen", _api("movimientos-almacen"), related=(_api("articulos"),)
            ),
            Resource("campanas", _api("campanas"), form=CampanaForm),
            Resource("cupones", _api("cupones")),
            Resource("encuestas", _api("encuestas")),
            Resource(
                "respuestas-encuestas", _api("respuestas-encuestas"), related=(_api("encuestas"),)
            ),
            Resource("catalogo-residuos", _api("catalogo-residuos")),
            Resource("contenedores-residuos", _api("contenedores-residuos")),
            Resource("gestores-residuos", _api("gestores-residuos")),
            Resource(
                "registros-residuos",
                _api("registros-residuos"),
                related=(_api("contenedores-residuos"),),
            ),
            Resource(
                "recogidas-residuos",
                _api("recogidas-residuos"),
                related=(_api("contenedores-residuos"), _api("documentos-di")),
            ),
            Resource("documentos-di", _api("documentos-di")),
            Resource("users", _api("users")),
            Resource("dashboard", dashboard, writable=False),
            Resource("config-empresa", _api("config/empresa")),
            Resource("config-carapi", _api("config/carapi")),
        ]
    )
