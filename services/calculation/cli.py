import json
import sys
from pathlib import Path

from services.errors import ValidationError
from .engine import compute, result_to_dict
from .inputs import parse_inputs


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python -m services.calculation.cli <inputs.json | ->")
        sys.exit(2)
    src = args[0]
    raw = sys.stdin.read() if src == "-" else Path(src).read_text()
    try:
        inputs = parse_inputs(json.loads(raw))
    except json.JSONDecodeError as e:
        print(f"error: invalid JSON: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"error: {e.message}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps({
        "inputs": inputs.to_dict(),
        "results": result_to_dict(compute(inputs)),
    }, indent=2))


if __name__ == "__main__":
    main()
