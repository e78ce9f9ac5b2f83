import functools
import typing as t
from pathlib import Path

import pydantic as p
import yaml
from pydantic_settings import PydanticBaseSettingsSource
from pydantic_settings import SettingsError

import gradebook.lib.util as util
from gradebook.model import DeploymentEnvironment


class CurrentState(t.TypedDict, total=False):
    root: t.Required[p.AnyUrl]
    env: t.Required[DeploymentEnvironment]
    override: t.Required[tuple[str, ...]]


def parse_overrides(override: t.Iterable[str]) -> dict[str, t.Any]:
    """Turn ``a.b.c=value`` strings into a nested dict; values are parsed as YAML."""
    od: dict[str, t.Any] = {}
    for o in override:
        if "=" not in o:
            raise ValueError(f"override must look like key.path=value: {o!r}")
        k, v = [s.strip() for s in o.split("=", 1)]

        target = od
        path = k.split(".")
        for key in path[:-1]:
            target = target.setdefault(key, {})
        target[path[-1]] = yaml.safe_load(v)
    return od


class SettingsSource(PydanticBaseSettingsSource):
    skip_keys: t.ClassVar[frozenset[str]] = frozenset({"env", "root", "override"})

    @functools.cached_property
    def parsed_options(self) -> dict[str, t.Any]:
        current_state = t.cast(CurrentState, self.current_state)
        return parse_overrides(current_state.get("override", ()))

    def __call__(self) -> dict[str, t.Any]:
        # we expect init kwargs to have config root and env in them
        data: dict[str, t.Any] = {}

        for field_name, field in self.settings_cls.model_fields.items():
            if field_name in self.skip_keys:
                continue
            try:
                field_value, field_key, value_is_complex = self.get_field_value(field, field_name)
                field_value = self.prepare_field_value(field_name, field, field_value, value_is_complex)
            except KeyError:
                continue
            except ValueError as e:
                raise SettingsError(f"error parsing value for field {field_name!r} from source {self!r}") from e

            data[field_key] = field_value
        return data


class YAMLCascadingSettingsSource(SettingsSource):
    """Read ``<root>/<field>.yaml``, deep-merged with ``<root>/env.d/<env>/<field>.yaml``.

    Command-line overrides are merged in last, so they win over both files.
    """

    @functools.cached_property
    def load_paths(self) -> list[Path]:
        current_state = t.cast(CurrentState, self.current_state)
        root = current_state["root"]
        assert root.scheme == "file" and root.path is not None, "root is not a legible location of YAML files"
        env = current_state["env"]
        paths = [Path(root.path)]
        if env is not DeploymentEnvironment.Local:
            # we don't have a special directory for local/ that's just root
            paths.append(Path(root.path) / "env.d" / env.value)
        return paths

    def get_field_value(self, field: p.fields.FieldInfo, field_name: str) -> tuple[t.Any, str, bool]:
        yamls: list[str] = []
        for path in self.load_paths:
            fn = path / f"{field_name}.yaml"
            if fn.exists():
                yamls.append(fn.read_text(encoding="utf8"))
        if not yamls:
            raise KeyError(field_name)
        return yamls, field_name, True

    def prepare_field_value(
        self, field_name: str, field: p.fields.FieldInfo, value: t.Any, value_is_complex: bool
    ) -> t.Any:
        if not isinstance(value, list):
            raise ValueError(field_name)
        merged: dict[str, t.Any] = {}
        for doc in t.cast(list[str], value):
            loaded = yaml.safe_load(doc) or {}
            if not isinstance(loaded, dict):
                raise ValueError(field_name)
            merged = util.deep_update(merged, t.cast(dict[str, t.Any], loaded))
        if isinstance(ov := self.parsed_options.get(field_name), dict):
            merged = util.deep_update(merged, t.cast(dict[str, t.Any], ov))
        return merged


class OverrideSettingsSource(SettingsSource):
    """Supply overridden fields that have no YAML file of their own."""

    def get_field_value(self, field: p.fields.FieldInfo, field_name: str) -> tuple[t.Any, str, bool]:
        if field_name not in self.parsed_options:
            raise KeyError(field_name)
        return self.parsed_options[field_name], field_name, isinstance(self.parsed_options[field_name], dict)

    def prepare_field_value(
        self, field_name: str, field: p.fields.FieldInfo, value: t.Any, value_is_complex: bool
    ) -> t.Any:
        return value
