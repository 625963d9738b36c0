"""
Prompt loading and formatting utilities.

Prompts are markdown files under dxdebate/prompts/<category>/<name>.md
with {placeholder} variables.
"""

import re
from functools import lru_cache
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"
_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@lru_cache(maxsize=None)
def load_prompt(name: str, category: str = "roles") -> str:
    """
    Load a prompt template from a markdown file.

    Args:
        name: Prompt name (e.g., "hypothesis")
        category: Prompt category (e.g., "roles", "workflow")

    Returns:
        The prompt template as a string

    Raises:
        FileNotFoundError: If the prompt file doesn't exist
    """
    prompt_path = PROMPTS_DIR / category / f"{name}.md"

    if not prompt_path.exists():
        raise FileNotFoundError(
            f"Prompt file not found: {prompt_path}. "
            f"Expected prompt '{name}' in category '{category}'."
        )

    return prompt_path.read_text()


def format_prompt(template: str, **kwargs) -> str:
    """
    Substitute {variable} placeholders.

    Unknown placeholders are left as they are, so JSON examples in a
    template survive formatting. Substituted values are not scanned again.
    """
    def substitute(match: re.Match) -> str:
        key = match.group(1)
        return str(kwargs[key]) if key in kwargs else match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


def render_prompt(name: str, category: str = "workflow", **kwargs) -> str:
    """Load and format a prompt in one step."""
    return format_prompt(load_prompt(name, category), **kwargs)


def get_available_roles() -> list[str]:
    """Role names that have a system prompt on disk."""
    roles_dir = PROMPTS_DIR / "roles"
    if not roles_dir.exists():
        return []
    return sorted(p.stem for p in roles_dir.glob("*.md"))
