import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

import jsonschema
from jsonschema.exceptions import ValidationError, best_match
from jsonschema.validators import validator_for

logger = logging.getLogger(__name__)


class ContractError(Exception):
    """Raised when data violates its data contract."""

    pass


def load_schema(schema_name: str) -> Dict[str, Any]:
    """Load a JSON schema from the package."""
    schema_path = Path(__file__).parent.parent / "schemas" / f"{schema_name}.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_name}")

    with open(schema_path, "r", encoding="utf-8") as f:
        return dict(json.load(f))


def validate_output(data: Any, schema_name: str, mode: str = "FILING") -> None:
    """
    Validate data against a JSON schema.

    Args:
        data: The document to validate.
        schema_name: Name of the schema file (without .json extension).
        mode: 'FILING' (raises error) or 'REVIEW' (logs warning).

    Raises:
        ContractError: If validation fails and mode is FILING.
    """
    try:
        schema = load_schema(schema_name)
        jsonschema.validate(instance=data, schema=schema)
    except (ValidationError, FileNotFoundError) as e:
        msg = f"Data Contract Violation ({schema_name}): {e}"
        if mode == "FILING":
            raise ContractError(msg) from e
        logger.warning(msg)


def validate_records(records: Iterable[Any], schema_name: str) -> List[str]:
    """
    Check each input record against a schema without stopping.

    Returns one message per invalid record, naming its position and the first violation.
    """
    schema = load_schema(schema_name)
    validator_cls = validator_for(schema)
    validator = validator_cls(schema)

    problems: List[str] = []
    for position, record in enumerate(records):
        error = best_match(validator.iter_errors(record))
        if error is None:
            continue
        msg = f"{schema_name}[{position}]: {error.message}"
        logger.warning("Data Contract Violation (%s)", msg)
        problems.append(msg)
    return problems
