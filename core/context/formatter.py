from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from core.contracts.models import AIContext
from utils.errors import FormatterError

MAX_FILE_CHARS = 5000
MAX_DIFF_CHARS = 2000


def clip(text: str, limit: int) -> str:
    """Cuts `text` to `limit` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def localtime(value: datetime) -> str:
    return value.astimezone().strftime("%c")


class ContextFormatter:
    """Renders an AIContext as the Markdown block injected into the system message."""

    def __init__(
        self,
        template_dir: Optional[str] = None,
        template_name: str = "context.md.j2",
        max_file_chars: int = MAX_FILE_CHARS,
        max_diff_chars: int = MAX_DIFF_CHARS,
    ):
        if template_dir is None:
            template_dir = str(Path(__file__).parent / "templates")

        self.template_dir = template_dir
        self.template_name = template_name
        self.max_file_chars = max_file_chars
        self.max_diff_chars = max_diff_chars
        try:
            self.env = Environment(
                loader=FileSystemLoader(self.template_dir),
                trim_blocks=True,
                lstrip_blocks=True,
                undefined=StrictUndefined,
            )
            self.env.filters["clip"] = clip
            self.env.filters["localtime"] = localtime
        except Exception as e:
            raise FormatterError(f"Failed to initialize Jinja2 environment: {e}") from e

    def render(self, context: AIContext) -> str:
        try:
            template = self.env.get_template(self.template_name)
            rendered = template.render(
                ctx=context,
                max_file_chars=self.max_file_chars,
                max_diff_chars=self.max_diff_chars,
            )
        except Exception as e:
            raise FormatterError(f"Failed to render template {self.template_name}: {e}") from e
        return rendered.strip()
