"""Constants used across rulesmith.

Conventional output locations and fixed values for generated artifacts.
"""

MAIN_MODULE = "__main__"

# Default output locations (relative to the working directory)
DEFAULT_OUTPUT_FILE = "CLAUDE.local.md"
AGENTS_DIR = ".claude/agents"
COMMANDS_DIR = ".claude/commands"
SKILLS_DIR = ".claude/skills"
BIN_DIR = ".rulesmith/bin"
SCRIPTS_DIR = ".claude/scripts"
MCP_SETTINGS_FILE = ".mcp.json"

# Recipe store
RECIPES_FILENAME = "recipes.yml"
USER_RECIPES_FILE = "~/.config/rulesmith/recipes.yml"
MCP_DEFINITIONS_FILE = "~/.config/rulesmith/mcp.json"
PROJECT_CONFIG_FILE = "rulesmith.yml"
STATS_FILENAME = "stats.md"
DEFAULT_SEARCH_PATHS = ["~/rulesmith"]

# Path segments that drive classification
SKILLS_SEGMENT = "skills"
COMMANDS_SEGMENT = "commands"
BIN_SEGMENT = "bin"
EXECUTABLE_SUFFIX = ".sh"

# Document assembly
BLOCK_SEPARATOR = "\n\n---\n\n"
SKILL_FILENAME = "SKILL.md"

# Subagent frontmatter
AGENT_TOOLS = "Bash, Read, Write, Edit, Glob, Grep"
AGENT_PERMISSION_MODE = "bypassPermissions"
INHERIT_MODEL = "inherit"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Ignore-file bookkeeping
IGNORE_SECTION_HEADER = "# rulesmith generated files"

# Remote fetching
GITHUB_RAW_HOST = "raw.githubusercontent.com"
GITHUB_API_URL = "https://api.github.com"
GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
DEFAULT_FETCH_TIMEOUT = 30.0
USER_AGENT = "rulesmith"

# Token counting
TOKEN_ENCODING = "cl100k_base"
