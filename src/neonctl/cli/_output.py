"""Output writer: JSON, YAML or a plain text table."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping, Sequence
from typing import Any

import click
import yaml

OUTPUT_FORMATS = ("table", "json", "yaml")


def to_record(obj: Any) -> dict[str, Any]:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    return dict(obj)


def format_records(
    data: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    *,
    fields: Sequence[str],
    output_format: str = "table",
) -> str:
    if output_format == "json":
        return json.dumps(data, indent=2, default=str)
    if output_format == "yaml":
        return yaml.safe_dump(data, sort_keys=False, default_flow_style=False).rstrip("\n")

    rows = [data] if isinstance(data, Mapping) else list(data)
    widths = [
        max([len(f)] + [len(_cell(row.get(f))) for row in rows]) for f in fields
    ]
    lines = [
        " | ".join(f.ljust(w) for f, w in zip(fields, widths, strict=True)).rstrip(),
        "-+-".join("-" * w for w in widths),
    ]
    for row in rows:
        lines.append(
            " | ".join(
                _cell(row.get(f)).ljust(w) for f, w in zip(fields, widths, strict=True)
            ).rstrip()
        )
    return "\n".join(lines)


def write(
    data: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    *,
    fields: Sequence[str],
    output_format: str = "table",
) -> None:
    click.echo(format_records(data, fields=fields, output_format=output_format))


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
