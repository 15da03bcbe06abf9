"""Prompt templates for the generative extractors, stored as .txt files beside this module."""
from pathlib import Path
import typing as t


PROMPTS_DIR = Path(__file__).resolve().parent


def load_prompt(prompt_name: str, prompts_dir: t.Optional[str] = None) -> str:
    """
    Load a prompt from a text file.

    Args:
        prompt_name: Name of the prompt file (without .txt extension)
        prompts_dir: Optional custom path to prompts directory.
                    Defaults to this module's directory.

    Returns:
        The content of the prompt file as a string.

    Raises:
        FileNotFoundError: If the prompt file doesn't exist.
    """
    prompt_file = Path(prompts_dir or PROMPTS_DIR) / f"{prompt_name}.txt"

    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

    return prompt_file.read_text(encoding="utf-8")


def render_prompt(prompt_name: str, **values: t.Any) -> str:
    """
    Load a prompt template and fill its ``{placeholders}``.

    Literal braces in the template are written doubled (``{{``/``}}``).
    """
    return load_prompt(prompt_name).format(**values)
