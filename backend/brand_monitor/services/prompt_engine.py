"""
Prompt Generation Engine
Versioned YAML templates plus model-backed generation of analysis questions
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from brand_monitor.adapters.llm import BaseLLMAdapter
from brand_monitor.config import get_settings
from brand_monitor.schemas import BrandPrompt, Company
from brand_monitor.utils import generate_prompt_id

logger = logging.getLogger(__name__)

JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


class PromptGenerationError(ValueError):
    """The model did not return a usable list of prompts"""


class PromptEngine:
    """
    Renders every prompt the analysis sends to a model from versioned
    templates, so a run is reproducible from the template version alone.
    """

    TEMPLATES_DIR = Path(__file__).parent.parent / "prompts" / "templates"

    def __init__(self, version: Optional[str] = None):
        self.version = version or get_settings().PROMPT_TEMPLATE_VERSION
        self._templates_cache: Dict[str, dict] = {}

    def load_templates_from_yaml(self) -> Dict[str, dict]:
        """Load all templates of this engine's version, keyed by name"""
        if self._templates_cache:
            return self._templates_cache

        version_dir = self.TEMPLATES_DIR / self.version
        if not version_dir.exists():
            raise ValueError(f"Template version {self.version} not found")

        for yaml_file in sorted(version_dir.glob("*.yaml")):
            with open(yaml_file, "r") as f:
                data = yaml.safe_load(f)
                for template in data.get("templates", []):
                    template["version"] = data["version"]
                    template["prompt_type"] = data["type"]
                    self._templates_cache[template["name"]] = template

        return self._templates_cache

    def get_template(self, name: str) -> str:
        templates = self.load_templates_from_yaml()
        if name not in templates:
            raise KeyError(f"Unknown prompt template: {name}")
        return templates[name]["template"]

    def _render_template(
        self,
        template_text: str,
        context: Dict[str, Any]
    ) -> str:
        """
        Render a template with the given context.
        Uses simple {variable} substitution; other braces are left alone.
        """
        rendered = template_text

        for key, value in context.items():
            placeholder = f"{{{key}}}"
            if placeholder in rendered:
                if isinstance(value, (list, tuple)):
                    value = ", ".join(str(v) for v in value)
                rendered = rendered.replace(placeholder, str(value))

        return rendered.strip()

    def render(self, name: str, **context: Any) -> str:
        return self._render_template(self.get_template(name), context)

    # ------------------------------------------------------------------
    # Prompts used while interpreting answers
    # ------------------------------------------------------------------

    def answer_system_prompt(self) -> str:
        return self.render("answer_system")

    def extraction_prompt(self, response_text: str, brand_name: str, competitors: List[str]) -> str:
        return self.render(
            "ranking_extraction",
            brand_name=brand_name,
            competitors=competitors or ["none"],
            response_text=response_text,
        )

    def simple_followup_prompt(self, response_text: str, brand_name: str, competitors: List[str]) -> str:
        return self.render(
            "simple_followup",
            brand_name=brand_name,
            competitors=competitors or ["none"],
            response_text=response_text,
        )

    # ------------------------------------------------------------------
    # Discovery and generation
    # ------------------------------------------------------------------

    def _company_context(self, company: Company) -> Dict[str, Any]:
        scraped = company.scraped_data
        return {
            "company_name": company.name,
            "industry": company.industry or "technology",
            "description": company.description or (scraped.description if scraped else None) or "No description provided",
            "keywords": (scraped.keywords if scraped else None) or ["Not specified"],
            "products": (scraped.main_products if scraped else None) or ["Not specified"],
        }

    def competitor_discovery_prompt(self, company: Company) -> str:
        return self.render("competitor_discovery", **self._company_context(company))

    def prompt_generation_prompt(self, company: Company, competitors: List[str], count: int) -> str:
        context = self._company_context(company)
        context["competitors"] = competitors or ["Not specified"]
        context["prompt_count"] = count
        return self.render("prompt_generation", **context)

    def build_prompts(self, texts: Iterable[str], category: str = "ranking") -> List[BrandPrompt]:
        """Wrap prompt texts, dropping blanks and duplicates"""
        prompts = []
        seen = set()
        for text in texts:
            text = (text or "").strip()
            if not text or text.lower() in seen:
                continue
            seen.add(text.lower())
            prompts.append(BrandPrompt(
                id=generate_prompt_id(text, self.version),
                prompt=text,
                category=category,
            ))
        return prompts

    def custom_prompts(self, texts: Iterable[str]) -> List[BrandPrompt]:
        """User-supplied prompts skip generation entirely"""
        return self.build_prompts(texts, category="custom")

    def parse_generated_prompts(self, text: str) -> List[str]:
        match = JSON_ARRAY_PATTERN.search(text or "")
        if not match:
            raise PromptGenerationError("No JSON array found in AI response")
        try:
            items = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise PromptGenerationError(f"AI generated invalid prompt format: {e}")
        if not isinstance(items, list):
            raise PromptGenerationError("AI generated invalid prompt format")

        return [
            item["prompt"]
            for item in items
            if isinstance(item, dict) and isinstance(item.get("prompt"), str)
        ]

    async def generate_prompts(
        self,
        company: Company,
        competitors: List[str],
        model: BaseLLMAdapter,
        limit: Optional[int] = None,
    ) -> List[BrandPrompt]:
        """
        Ask a model for the questions buyers in this market would ask.

        Raises:
            PromptGenerationError: The reply held no usable prompts
            LLMAdapterError: The model call itself failed
        """
        limit = limit or get_settings().MAX_ANALYSIS_PROMPTS
        request = self.prompt_generation_prompt(company, competitors, limit)

        text = await model.generate_text(request, temperature=0.4, max_tokens=2000)
        prompts = self.build_prompts(self.parse_generated_prompts(text))[:limit]
        if not prompts:
            raise PromptGenerationError("AI response contained no prompts")

        logger.info(f"Generated {len(prompts)} prompts for {company.name}")
        return prompts
