"""Options spec (v1) for strongex.

Lets a run be described once and reused (CI, scripts) instead of repeating CLI
switches. Small and strict, like the rest of the config surface:
  - JSON only ('@file.json' or an inline object)
  - explicit schema id
  - unknown keys are rejected

CLI switches win over the options file; the options file wins over the defaults.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from strongex.errors import UsageError
from strongex.files import TYPE_DEFAULT, is_valid_filetype

SPEC_ID_V1 = "strongex.options.v1"
DEBUG_ENV = "STRONGEX_DEBUG"


class OptionsSpecError(UsageError):
    pass


def env_bool(name: str, default: bool = False) -> bool:
    v = os.environ.get(name)
    if v is None or not v.strip():
        return default
    return v.strip().lower() not in {"0", "false", "no", "off"}


def _load_json_arg(options_arg: str) -> dict[str, Any]:
    s = options_arg.strip()
    if not s:
        raise OptionsSpecError("options: argomento vuoto")

    if s.startswith("@"):
        p = Path(s[1:]).expanduser()
        if not p.is_file():
            raise OptionsSpecError(f"options: file non trovato: {p}")
        try:
            obj = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise OptionsSpecError(f"options: JSON non valido in {p}: {e}") from e
        where = str(p)
    else:
        try:
            obj = json.loads(s)
        except ValueError as e:
            raise OptionsSpecError(f"options: JSON inline non valido: {e}") from e
        where = "inline"

    if not isinstance(obj, dict):
        raise OptionsSpecError(f"options: il JSON ({where}) deve essere un oggetto")
    return obj


def _optional_bool(obj: dict[str, Any], key: str) -> bool | None:
    if key not in obj:
        return None
    v = obj.get(key)
    if isinstance(v, bool):
        return v
    raise OptionsSpecError(f"options: campo '{key}' deve essere booleano")


def parse_filetype(v: Any) -> int:
    """Accept 0xffd, 4093, "ffd" or "0xffd"."""
    if isinstance(v, bool):
        raise OptionsSpecError("options: filetype non può essere booleano")
    if isinstance(v, int):
        ft = v
    elif isinstance(v, str) and v.strip():
        try:
            ft = int(v.strip(), 16)
        except ValueError as e:
            raise OptionsSpecError(f"options: filetype non esadecimale: {v!r}") from e
    else:
        raise OptionsSpecError(f"options: filetype non valido: {v!r}")
    if not is_valid_filetype(ft):
        raise OptionsSpecError(f"options: filetype fuori range 0..0xfff: {ft:#x}")
    return ft


@dataclass(frozen=True)
class OptionsSpecV1:
    include_all: bool | None = None
    update: bool | None = None
    verbose: bool | None = None
    default_filetype: int = TYPE_DEFAULT


def load_options_spec(options_arg: str) -> OptionsSpecV1:
    obj = _load_json_arg(options_arg)

    allowed = {"spec", "all", "update", "verbose", "default_filetype"}
    extra = sorted(set(obj.keys()) - allowed)
    if extra:
        raise OptionsSpecError(f"options: chiavi non supportate: {', '.join(extra)}")

    spec_id = obj.get("spec")
    if spec_id != SPEC_ID_V1:
        raise OptionsSpecError(f"options: spec non supportata: {spec_id!r} (attesa {SPEC_ID_V1!r})")

    default_filetype = TYPE_DEFAULT
    if "default_filetype" in obj:
        default_filetype = parse_filetype(obj["default_filetype"])

    return OptionsSpecV1(
        include_all=_optional_bool(obj, "all"),
        update=_optional_bool(obj, "update"),
        verbose=_optional_bool(obj, "verbose"),
        default_filetype=default_filetype,
    )


@dataclass(frozen=True)
class RunOptions:
    """Fully resolved options for one run."""

    source: Path
    out: Path
    include_all: bool = False
    update: bool = False
    verbose: bool = False
    default_filetype: int = TYPE_DEFAULT


def resolve_options(
    source: str | Path,
    out: str | Path,
    *,
    include_all: bool = False,
    update: bool = False,
    verbose: bool = False,
    spec: OptionsSpecV1 | None = None,
) -> RunOptions:
    """Merge CLI switches with an optional spec.

    Switches are flags, so only a switch that is *set* overrides the options.
    """
    spec = spec or OptionsSpecV1()
    return RunOptions(
        source=Path(source),
        out=Path(out),
        include_all=bool(include_all or spec.include_all),
        update=bool(update or spec.update),
        verbose=bool(verbose or spec.verbose),
        default_filetype=spec.default_filetype,
    )
