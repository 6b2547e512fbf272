"""
Prompt Management Module

Loads generation prompts from the .txt templates next to this file. Templates
use str.format placeholders; literal JSON braces are doubled.
"""

from __future__ import annotations

from pathlib import Path

PROMPTS_DIR = Path(__file__).parent

FLOW_PROMPTS = {
    "title": "idea_title",
    "summary": "idea_summary",
    "outline": "idea_outline",
    "mind_map": "idea_mindmap",
    "node_expansion": "mindmap_node",
    "suggestions": "ai_suggestions",
    "business_plan": "business_plan",
}


class PromptLoader:
    """Load and cache prompt templates from files"""

    def __init__(self, prompts_dir: Path = PROMPTS_DIR):
        self._dir = prompts_dir
        self._cache: dict[str, str] = {}

    def load_prompt(self, prompt_name: str) -> str:
        """
        Load a prompt template from file.

        Args:
            prompt_name: Name of the prompt file (without .txt extension)
        """
        if prompt_name not in self._cache:
            prompt_path = self._dir / f"{prompt_name}.txt"

            if not prompt_path.exists():
                raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

            with open(prompt_path, encoding="utf-8") as f:
                self._cache[prompt_name] = f.read()

        return self._cache[prompt_name]

    def render(self, flow: str, **kwargs) -> str:
        """Render the template registered for a generation flow."""
        template = self.load_prompt(FLOW_PROMPTS[flow])
        return template.format(**kwargs)

    def reload(self) -> None:
        """Clear cache and reload prompts from disk"""
        self._cache.clear()
