"""
Email template rendering: ``{{key}}`` placeholders filled from a data map.
"""
import logging
import os
import re
from dataclasses import dataclass

from markupsafe import escape

from app.errors import TemplateRenderError
from app.notifications import get_template

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r'{{(.*?)}}')


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    sender: str
    html: str


def fill_placeholders(text, data, escape_values=True):
    """
    Replace every {{key}} with data[key].

    Keys missing from data (or mapped to None) become the empty string;
    this never raises on a missing key. With escape_values the substituted
    values are HTML-escaped, so a value carrying pre-formatted HTML (a table
    row, a <br>) shows up as literal text. Wrap such a value in
    markupsafe.Markup to insert it unescaped.
    """
    def _replace(match):
        value = data.get(match.group(1).strip())
        if value is None:
            return ''
        return str(escape(value)) if escape_values else str(value)

    return PLACEHOLDER_RE.sub(_replace, text)


class TemplateRenderer:
    def __init__(self, template_dir, sender_domain):
        self.template_dir = template_dir
        self.sender_domain = sender_domain

    def load(self, descriptor):
        path = os.path.join(self.template_dir, descriptor.file)
        try:
            with open(path, encoding='utf-8') as fh:
                html = fh.read()
        except OSError as e:
            logger.error(f"Failed to read template file {path}: {e}")
            raise TemplateRenderError(f"Failed to read template file {descriptor.file}") from e
        if not html:
            raise TemplateRenderError(f"Template file {descriptor.file} is empty")
        return html

    def render(self, template, data=None) -> RenderedEmail:
        """Raises TemplateNotFoundError before touching the filesystem."""
        data = data or {}
        descriptor = get_template(template)
        html = fill_placeholders(self.load(descriptor), data)
        return RenderedEmail(
            subject=fill_placeholders(descriptor.subject, data, escape_values=False),
            sender=descriptor.sender_address(self.sender_domain),
            html=html,
        )
