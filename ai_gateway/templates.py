from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from ai_gateway.constants import DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


class PromptTemplate(BaseModel):
    name: str
    content: str
    language: str = DEFAULT_LANGUAGE
    provider: str | None = None
    version: int = 1

    @property
    def variables(self) -> list[str]:
        return list(dict.fromkeys(_PLACEHOLDER.findall(self.content)))


class PromptTemplateManager:
    def __init__(self, templates: list[PromptTemplate] | None = None) -> None:
        self._templates: dict[tuple[str, str, str | None], PromptTemplate] = {}
        for template in templates or []:
            self.register(template)

    def register(self, template: PromptTemplate) -> None:
        key = (template.name, template.language, template.provider)
        existing = self._templates.get(key)
        if existing is not None and existing.version > template.version:
            logger.debug(
                "Keeping template %s v%d over v%d", template.name, existing.version, template.version
            )
            return
        self._templates[key] = template

    async def get_template(
        self, name: str, language: str = DEFAULT_LANGUAGE, provider_hint: str | None = None
    ) -> PromptTemplate | None:
        """Provider-specific before generic, requested language before the default one."""
        languages = [language] if language == DEFAULT_LANGUAGE else [language, DEFAULT_LANGUAGE]
        providers = [provider_hint, None] if provider_hint else [None]
        for lang in languages:
            for provider in providers:
                template = self._templates.get((name, lang, provider))
                if template is not None:
                    return template
        logger.debug("No template named %s for language=%s", name, language)
        return None

    async def render_template(self, template: PromptTemplate, variables: dict[str, Any]) -> str:
        def _replace(match: re.Match[str]) -> str:
            key = match.group(1)
            if key in variables:
                return str(variables[key])
            return match.group(0)

        rendered = _PLACEHOLDER.sub(_replace, template.content)
        leftover = _PLACEHOLDER.findall(rendered)
        if leftover:
            logger.warning(
                "Template %s rendering left unreplaced placeholders: %s",
                template.name,
                ", ".join(sorted(set(leftover))),
            )
        return rendered

    def templates(self) -> list[PromptTemplate]:
        return list(self._templates.values())


def load_templates(path: str | None) -> list[PromptTemplate]:
    if not path:
        return []
    file = Path(path)
    if not file.is_file():
        logger.warning("Template file not found: %s", path)
        return []
    try:
        data = yaml.safe_load(file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load templates from %s: %s", path, e)
        return []

    raw = data.get("templates") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        logger.warning("Template file missing 'templates' list: %s", path)
        return []

    loaded: list[PromptTemplate] = []
    for i, entry in enumerate(raw):
        try:
            loaded.append(PromptTemplate.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping invalid template entry %d in %s: %s", i, path, e)
    logger.info("Loaded %d template(s) from %s", len(loaded), path)
    return loaded
