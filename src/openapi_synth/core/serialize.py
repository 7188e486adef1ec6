import json
from pathlib import Path
from typing import Any

import yaml


class _DocumentDumper(yaml.SafeDumper):
    """Safe dumper that never emits anchors for repeated sub-schemas."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def to_yaml(document: dict[str, Any]) -> str:
    return yaml.dump(
        document,
        Dumper=_DocumentDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )


def to_json(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def render(document: dict[str, Any], fmt: str = "yaml") -> str:
    if fmt == "json":
        return to_json(document)
    if fmt in ("yaml", "yml"):
        return to_yaml(document)
    raise ValueError(f"Unsupported output format: {fmt}")


def save_document(document: dict[str, Any], path: str | Path, fmt: str = "yaml") -> Path:
    target = Path(path)
    content = render(document, fmt)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target
