from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rulesmith.constants import (
    AGENTS_DIR,
    BIN_DIR,
    COMMANDS_DIR,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_OUTPUT_FILE,
    DEFAULT_SEARCH_PATHS,
    MCP_DEFINITIONS_FILE,
    MCP_SETTINGS_FILE,
    SCRIPTS_DIR,
    SKILLS_DIR,
    USER_RECIPES_FILE,
)


class SubagentBinding(BaseModel):
    model_config = ConfigDict(extra="allow")
    # Both are required for generation; empty values are skipped with a warning.
    name: str = ""
    recipe: str = ""
    model: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.name.strip()) and bool(self.recipe.strip())


class GitHubSource(BaseModel):
    """``{github: owner/repo, branch: main, rules: [...]}`` source entry."""

    model_config = ConfigDict(extra="allow")
    github: str
    branch: str = "main"
    rules: List[str] = []


class LocalSource(BaseModel):
    """``{local: path}`` or ``{local: [paths]}`` source entry."""

    model_config = ConfigDict(extra="allow")
    local: Union[str, List[str]]

    @property
    def paths(self) -> List[str]:
        return [self.local] if isinstance(self.local, str) else list(self.local)


SourceEntry = Union[str, GitHubSource, LocalSource]


class RecipeConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    description: Optional[str] = None
    files: List[str] = []
    sources: List[SourceEntry] = []
    remote_sources: List[str] = []
    mcp_servers: List[str] = []
    subagents: List[SubagentBinding] = []
    model: Optional[str] = None
    omit_command_prefix: Optional[Union[str, List[str]]] = None
    # Set when the recipe was declared as a bare list of files.
    agent_recipe: bool = False

    @model_validator(mode="before")
    @classmethod
    def normalize_list_recipe(cls, data: object) -> object:
        if isinstance(data, list):
            return {"files": data, "agent_recipe": True}
        if data is None:
            return {}
        return data

    @field_validator("files", "remote_sources", "mcp_servers", mode="before")
    @classmethod
    def none_as_empty(cls, v: object) -> object:
        return [] if v is None else v

    @property
    def omit_prefixes(self) -> List[str]:
        if self.omit_command_prefix is None:
            return []
        if isinstance(self.omit_command_prefix, str):
            return [self.omit_command_prefix]
        return list(self.omit_command_prefix)


class RecipesFile(BaseModel):
    model_config = ConfigDict(extra="allow")
    recipes: Dict[str, RecipeConfig] = {}

    @field_validator("recipes", mode="before")
    @classmethod
    def none_as_empty(cls, v: object) -> object:
        return {} if v is None else v


class RulesmithConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    rules_dir: str = "."
    recipes_file: Optional[str] = None  # defaults to <rules_dir>/recipes.yml
    user_recipes_file: Optional[str] = USER_RECIPES_FILE
    search_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_SEARCH_PATHS))
    output_file: str = DEFAULT_OUTPUT_FILE
    agents_dir: str = AGENTS_DIR
    commands_dir: str = COMMANDS_DIR
    skills_dir: str = SKILLS_DIR
    bin_dir: str = BIN_DIR
    scripts_dir: str = SCRIPTS_DIR
    mcp_settings_file: str = MCP_SETTINGS_FILE
    mcp_definitions_file: str = MCP_DEFINITIONS_FILE
    fetch_timeout: float = Field(default=DEFAULT_FETCH_TIMEOUT, gt=0)
    github_token_env: str = "GITHUB_TOKEN"
