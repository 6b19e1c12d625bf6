from pathlib import Path
from typing import Dict, Iterable, Optional, Type, TypeVar

import pydantic
import yaml
from instrukt_ai_logging import get_logger
from pydantic import BaseModel

from rulesmith.config.schema import RecipeConfig, RecipesFile, RulesmithConfig
from rulesmith.constants import PROJECT_CONFIG_FILE, RECIPES_FILENAME
from rulesmith.errors import ConfigError
from rulesmith.utils import expand_env_vars

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning("Unknown keys in %s at %s: %s", path, config_path, list(model.model_extra.keys()))

    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)
        elif isinstance(field_value, dict):
            for key, value in field_value.items():
                if isinstance(value, BaseModel):
                    _warn_unknown_keys(value, f"{path}.{field_name}.{key}", config_path)
        elif isinstance(field_value, list):
            for idx, value in enumerate(field_value):
                if isinstance(value, BaseModel):
                    _warn_unknown_keys(value, f"{path}.{field_name}[{idx}]", config_path)


def load_config(path: Path, model_class: Type[T]) -> T:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to the YAML file.
        model_class: The Pydantic model class to use for validation.

    Returns:
        The validated configuration model; defaults when the file is missing.

    Raises:
        ConfigError: When the file exists but is not valid YAML or does not
            match the model.
    """
    if not path.exists():
        return model_class()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e

    expanded = expand_env_vars(raw)
    try:
        model = model_class.model_validate(expanded)
    except pydantic.ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e
    _warn_unknown_keys(model, "root", path)
    return model


def load_project_config(path: Optional[Path] = None) -> RulesmithConfig:
    """Load tool configuration, defaulting to ``./rulesmith.yml``."""
    return load_config(path or Path(PROJECT_CONFIG_FILE), RulesmithConfig)


def recipe_files(config: RulesmithConfig, base_dir: Optional[Path] = None) -> list[Path]:
    """Recipe store files in merge order: base file first, user overrides last."""
    base = base_dir or Path.cwd()
    rules_dir = (base / Path(config.rules_dir).expanduser()).resolve()
    primary = Path(config.recipes_file).expanduser() if config.recipes_file else rules_dir / RECIPES_FILENAME
    if not primary.is_absolute():
        primary = base / primary
    files = [primary]
    if config.user_recipes_file:
        files.append(Path(config.user_recipes_file).expanduser())
    return files


def load_recipes(paths: Iterable[Path]) -> Dict[str, RecipeConfig]:
    """Merge recipe definitions from several files; later files win per recipe name."""
    merged: Dict[str, RecipeConfig] = {}
    for path in paths:
        store = load_config(path, RecipesFile)
        if store.recipes:
            logger.debug("recipes_loaded", path=str(path), count=len(store.recipes))
        merged.update(store.recipes)
    return merged
