"""LLM-backed resume analysis via LangChain + OpenAI."""

import json
import logging

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from resumeopt.core.config import Settings
from resumeopt.core.errors import AnalysisError
from resumeopt.models.schemas import DetailedAtsAnalysis, OptimizationAnalysis
from resumeopt.prompts.resume_analysis import (
    PROMPT_VERSION,
    build_detailed_ats_prompt,
    build_job_optimization_prompt,
)
from resumeopt.services.cache_service import AnalysisCache, cache_key

logger = logging.getLogger(__name__)


def strip_code_fences(raw_text: str) -> str:
    """Strip markdown code fences if the model wraps the JSON."""
    text = raw_text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # drop opening fence
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def parse_llm_json(raw_text: str, model: type[BaseModel]) -> BaseModel:
    try:
        return model.model_validate(json.loads(strip_code_fences(raw_text)))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error("LLM returned invalid JSON (%s): %s", exc, raw_text[:500])
        raise AnalysisError("AI analysis returned an unreadable result") from exc


class LLMAnalyzer:
    """Produces detailed ATS and job-optimization analyses for resume text."""

    def __init__(self, settings: Settings, cache: AnalysisCache | None = None) -> None:
        self.settings = settings
        self.cache = cache

    def get_llm(self) -> ChatOpenAI:
        return ChatOpenAI(
            model=self.settings.openai_model,
            api_key=self.settings.openai_api_key,
            temperature=0,
            max_tokens=1500,
        )

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        if not self.settings.openai_api_key:
            raise AnalysisError("AI analysis is not configured")
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        try:
            response = await self.get_llm().ainvoke(messages)
        except Exception as exc:
            logger.exception("LLM call failed")
            raise AnalysisError("AI analysis failed") from exc

        usage = response.response_metadata.get("token_usage", {})
        logger.info("LLM response: %d tokens, %s", usage.get("total_tokens", 0), response.content[:200])
        return response.content

    async def _analyze(self, kind: str, model: type[BaseModel], prompts: tuple[str, str], *inputs: str):
        key = cache_key(kind, PROMPT_VERSION, *inputs)
        if self.cache is not None:
            cached = await self.cache.get(key, model)
            if cached is not None:
                logger.info("Cache hit for %s analysis", kind)
                return cached

        result = parse_llm_json(await self._complete(*prompts), model)
        if self.cache is not None:
            await self.cache.set(key, result)
        return result

    async def detailed_ats(self, resume_text: str) -> DetailedAtsAnalysis:
        return await self._analyze(
            "detailed_ats",
            DetailedAtsAnalysis,
            build_detailed_ats_prompt(resume_text),
            resume_text,
        )

    async def job_optimization(self, resume_text: str, job_description: str) -> OptimizationAnalysis:
        if not job_description.strip():
            raise AnalysisError("Job description text is required for optimization analysis")
        return await self._analyze(
            "job_opt",
            OptimizationAnalysis,
            build_job_optimization_prompt(resume_text, job_description),
            resume_text,
            job_description,
        )
