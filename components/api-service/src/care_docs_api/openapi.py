"""Export the FastAPI OpenAPI document to the docs folder."""

from __future__ import annotations

import sys
from pathlib import Path

import yaml

from care_docs_api.main import app

DEFAULT_OUTPUT = (
    Path(__file__).resolve().parents[4] / "docs" / "api" / "api_spec.yaml"
)


def write_openapi(output_path: Path = DEFAULT_OUTPUT) -> Path:
    """Write the app OpenAPI document as YAML and return the written path."""
    document = app.openapi()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        yaml.safe_dump(document, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
    return output_path


def main() -> None:
    output = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_OUTPUT
    print(f"Wrote {write_openapi(output)}")


if __name__ == "__main__":
    main()
