"""Configuration loading from pyproject.toml."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, NonNegativeFloat, PositiveInt, ValidationError

from ._errors import SchemaflowError


class ConfigError(SchemaflowError):
    """Error in schemaflow configuration."""


class SchemaflowConfig(BaseModel):
    """Settings read from the ``[tool.schemaflow]`` table.

    Attributes:
        max_batches: Batches one external change may trigger before the
            chain is aborted as divergent.
        float_tolerance: Relative tolerance under which two floats count as
            equal when suppressing no-op updates.
        clear_hidden_values: Whether a node's value is cleared when its
            ``visible`` gate turns false.

    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_batches: PositiveInt = 100
    float_tolerance: NonNegativeFloat = 1e-9
    clear_hidden_values: bool = True


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    current = (start_dir or Path.cwd()).resolve()
    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def load_config(pyproject_path: Path) -> SchemaflowConfig:
    """Load and validate [tool.schemaflow] config from pyproject.toml.

    Raises:
        ConfigError: If the file is not valid TOML or the table is invalid.

    """
    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("schemaflow", {})
    if not isinstance(section, dict):
        msg = "Invalid [tool.schemaflow] configuration: expected a table"
        raise ConfigError(msg)

    try:
        return SchemaflowConfig.model_validate(section)
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        msg = f"Invalid [tool.schemaflow] configuration in {pyproject_path}: {errors}"
        raise ConfigError(msg) from e


def get_config(start_dir: Path | None = None) -> SchemaflowConfig:
    """Get config from pyproject.toml in the given directory or its parents.

    Returns:
        The loaded config, or the defaults when no pyproject.toml is found.

    """
    pyproject_path = find_pyproject_toml(start_dir)
    if pyproject_path is None:
        return SchemaflowConfig()
    return load_config(pyproject_path)
