#!/usr/bin/env python3
"""Export OpenAPI schema to JSON and YAML files.

Usage:
    python scripts/export_openapi.py

Output:
    docs/api/openapi.json
    docs/api/openapi.yaml
"""

import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def export_openapi() -> None:
    """Export the app's OpenAPI schema to docs/api."""
    import yaml

    # Import app after path setup
    from adorable.api.main import app

    schema = app.openapi()

    docs_dir = Path(__file__).parent.parent / "docs" / "api"
    docs_dir.mkdir(parents=True, exist_ok=True)

    json_path = docs_dir / "openapi.json"
    with open(json_path, "w") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    print(f"Exported: {json_path}")

    yaml_path = docs_dir / "openapi.yaml"
    with open(yaml_path, "w") as f:
        yaml.dump(schema, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
    print(f"Exported: {yaml_path}")

    tags: dict[str, int] = {}
    for operations in schema.get("paths", {}).values():
        for operation in operations.values():
            for tag in operation.get("tags", ["untagged"]):
                tags[tag] = tags.get(tag, 0) + 1

    print("\nOpenAPI Schema Summary:")
    print(f"  Title: {schema.get('info', {}).get('title', 'unknown')}")
    print(f"  API Version: {schema.get('info', {}).get('version', 'unknown')}")
    print(f"  Endpoints: {len(schema.get('paths', {}))}")
    for tag, count in sorted(tags.items()):
        print(f"    {tag}: {count} operations")


if __name__ == "__main__":
    export_openapi()
