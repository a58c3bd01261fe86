"""Generate JSON schemas for persisted records and save to schemas/ directory."""

import json
from pathlib import Path

from porepbench.kernel.measure import Report
from porepbench.kernel.protocol import Statement
from porepbench.kernel.validator import Validator
from porepbench.prover.miner import Miner


def generate_schemas():
    """Generate JSON schemas for every record written to the store or to disk."""
    schemas_dir = Path(__file__).parent.parent / "schemas"
    schemas_dir.mkdir(exist_ok=True)

    models = {
        "statement.schema.json": Statement,
        "validator.schema.json": Validator,
        "miner.schema.json": Miner,
        "report.schema.json": Report,
    }
    for filename, model in models.items():
        schema = model.model_json_schema(mode="serialization")
        if model is Miner:
            # the miner singleton is stored without its collections
            schema["properties"].pop("store", None)
        out = schemas_dir / filename
        with open(out, 'w', encoding='utf-8') as f:
            json.dump(schema, f, indent=2, ensure_ascii=False)
        print(f"Generated: {out}")

    print("\nSchema generation complete!")


if __name__ == "__main__":
    generate_schemas()
