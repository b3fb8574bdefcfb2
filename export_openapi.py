import json
import sys
from pathlib import Path

from visitor_geo.main import app

DEFAULT_OUTPUT = Path("openapi") / "visitor-geo.openapi.json"


def main() -> None:
    """Write the OpenAPI schema of the visitor geolocation API, for the admin UI client."""
    out_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_OUTPUT
    schema = app.openapi()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(schema, indent=2))
    print(f"Wrote {out_path} paths={len(schema.get('paths', {}))}")  # noqa: T201


if __name__ == "__main__":
    main()
