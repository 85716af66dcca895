"""Jinja2 rendering for locally-built emails.

Templates live in templates/ next to this module, as `<name>.html` and
`<name>.txt` pairs. Gateway-hosted templates (e.g. the magic link email)
are referenced by id instead and never rendered here.
"""

from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

TEMPLATES_DIR = Path(__file__).parent / "templates"


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def render_template(template_name: str, /, **variables: object) -> str:
    """Render one template file.

    Raises:
        jinja2.TemplateNotFound: unknown template
        jinja2.UndefinedError: a variable used by the template was not passed
    """
    return _environment().get_template(template_name).render(**variables)


def render_email(base_name: str, /, **variables: object) -> tuple[str, str]:
    """Render the html and plain text variants of an email."""
    return (
        render_template(f"{base_name}.html", **variables),
        render_template(f"{base_name}.txt", **variables),
    )
