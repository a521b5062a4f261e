"""TemplateRenderer — locale fallback, cached lookup, Jinja2 substitution."""

from __future__ import annotations

import logging
from typing import Any

import jinja2
from jinja2.sandbox import SandboxedEnvironment

from ..exceptions import TemplateNotFoundError, TemplateRenderError
from ..models import EmailMessage, RenderedEmail
from ..ports.templates import Template
from .cache import TemplateCache

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """
    Renders a pending :class:`EmailMessage` into a :class:`RenderedEmail`.

    Lookup order is the message locale, then ``default_locale``. Undefined
    variables render as empty strings. The subject must render; a malformed
    HTML or text body falls back to its unrendered source.
    """

    def __init__(self, cache: TemplateCache, *, default_locale: str = "et") -> None:
        self._cache = cache
        self.default_locale = default_locale
        self._text_env = SandboxedEnvironment(autoescape=False, undefined=jinja2.Undefined)
        self._html_env = SandboxedEnvironment(autoescape=True, undefined=jinja2.Undefined)
        self._compiled: dict[tuple[bool, str], jinja2.Template] = {}

    @property
    def cache(self) -> TemplateCache:
        return self._cache

    async def resolve(self, template_id: str, locale: str) -> Template:
        """Fetch the template for ``locale``, falling back to the default locale."""
        template = await self._cache.get(template_id, locale)
        if template is None and locale != self.default_locale:
            logger.debug(
                "Template %s missing for locale %s, trying %s",
                template_id,
                locale,
                self.default_locale,
            )
            template = await self._cache.get(template_id, self.default_locale)
        if template is None:
            raise TemplateNotFoundError(template_id, locale, self.default_locale)
        return template

    async def render(self, message: EmailMessage) -> RenderedEmail:
        template = await self.resolve(message.template_id, message.locale)
        data = message.template_data

        subject = self._render_field(template, "subject", template.subject, data, critical=True)
        html_body = self._render_field(
            template, "html_body", template.html_body, data, html=True
        )
        text_body = self._render_field(template, "text_body", template.text_body, data)

        logger.debug(
            "Rendered template %s v%d (%s) for event %s",
            template.template_id,
            template.version,
            template.locale,
            message.event_id,
        )
        return RenderedEmail.from_message(
            message, subject=subject, html_body=html_body, text_body=text_body
        )

    def _render_field(
        self,
        template: Template,
        field: str,
        source: str,
        data: dict[str, Any],
        *,
        html: bool = False,
        critical: bool = False,
    ) -> str:
        if not source or not source.strip():
            return ""
        try:
            return self._compile(source, html=html).render(data)
        except (jinja2.TemplateError, TypeError, ValueError) as e:
            if critical:
                raise TemplateRenderError(template.template_id, field, str(e)) from e
            logger.warning(
                "Failed to render %s of template %s, using unrendered source: %s",
                field,
                template.template_id,
                e,
            )
            return source

    def _compile(self, source: str, *, html: bool) -> jinja2.Template:
        key = (html, source)
        compiled = self._compiled.get(key)
        if compiled is None:
            env = self._html_env if html else self._text_env
            compiled = env.from_string(source)
            self._compiled[key] = compiled
        return compiled
