# resolve/services/ai_service.py
"""
AI content generation for cases and applications via AWS Bedrock (Claude).

When AI_PROVIDER is not "bedrock" (or AWS credentials are missing) every
call raises UpstreamUnavailableError carrying a degraded placeholder
analysis, so callers can show something without advancing the workflow.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.utils.exceptions import UpstreamError, UpstreamUnavailableError

SERVICE_NAME = "AI document generation"

DEGRADED_ANALYSIS: Dict[str, Any] = {
    "caseType": "AI Analysis Unavailable",
    "jurisdiction": "AI provider not configured",
    "legalFramework": ["Configuration Required"],
    "strengthOfCase": "unknown",
    "riskLevel": "unknown",
    "estimatedTimeframe": "AI analysis not available",
    "keyIssues": ["AI provider credentials required for analysis"],
    "recommendedActions": ["Manual legal review recommended"],
    "legalProtections": ["Manual legal consultation recommended"],
    "successProbability": 0,
    "degraded": True,
}

DOCUMENT_TITLES = {
    "strategy_pack": "Strategy Pack",
    "demand_letter": "Letter of Demand",
    "notice_to_complete": "Notice to Complete",
    "adjudication_application": "Adjudication Application",
}

SYSTEM_PROMPT = (
    "You are an expert advisor in Australian construction and trade law, "
    "including the Security of Payment Acts (SOPA) and the Building and "
    "Construction Industry Payment Acts of each state."
)


@dataclass
class AIResult:
    analysis: Dict[str, Any]
    content_text: str
    strategy_pack: Optional[Dict[str, Any]] = None
    degraded: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)


def _extract_json(text: str) -> Dict[str, Any]:
    """Parse a JSON object from a model reply, tolerating markdown fences."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"```json\s*(\{.*?\})\s*```", text, re.DOTALL)
        if not match:
            match = re.search(r"\{.*\}", text, re.DOTALL)
        if not match:
            raise UpstreamError(SERVICE_NAME, "response did not contain JSON")
        try:
            parsed = json.loads(match.group(1) if match.lastindex else match.group())
        except json.JSONDecodeError as exc:
            raise UpstreamError(SERVICE_NAME, f"malformed JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise UpstreamError(SERVICE_NAME, "expected a JSON object")
    return parsed


def _format_amount(amount) -> str:
    return f"${amount}" if amount is not None else "Not specified"


class AIService:
    """Generates case analysis, strategy packs and legal letters."""

    def __init__(self) -> None:
        self.provider = (settings.AI_PROVIDER or "disabled").strip().lower()
        self.model_id = settings.BEDROCK_MODEL_ID
        self._client = None

    @property
    def enabled(self) -> bool:
        return self.provider == "bedrock" and bool(settings.AWS_ACCESS_KEY_ID)

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "bedrock-runtime",
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            )
        return self._client

    # ------------------------------------------------------------------
    # Low-level Bedrock call
    # ------------------------------------------------------------------

    def _invoke(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        body = json.dumps(
            {
                "anthropic_version": "bedrock-2023-05-31",
                "max_tokens": max_tokens or settings.AI_MAX_TOKENS,
                "temperature": settings.AI_TEMPERATURE,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
            }
        )
        try:
            response = self.client.invoke_model(
                modelId=self.model_id,
                contentType="application/json",
                accept="application/json",
                body=body,
            )
            result = json.loads(response["body"].read())
        except (ClientError, BotoCoreError) as exc:
            logger.error("Bedrock invoke failed: %s", exc)
            raise UpstreamError(SERVICE_NAME, str(exc)) from exc
        except (json.JSONDecodeError, KeyError) as exc:
            raise UpstreamError(SERVICE_NAME, f"unreadable response: {exc}") from exc

        text_parts = [
            block.get("text", "")
            for block in result.get("content", [])
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        text = "".join(text_parts).strip()
        if not text:
            raise UpstreamError(SERVICE_NAME, "empty response")
        return text

    def _require_enabled(self) -> None:
        if not self.enabled:
            logger.warning("AI provider disabled; returning degraded placeholder")
            raise UpstreamUnavailableError(SERVICE_NAME, placeholder=dict(DEGRADED_ANALYSIS))

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def _analysis_prompt(self, facts: Dict[str, Any]) -> str:
        return (
            "Analyze this case and provide strategic guidance.\n\n"
            "Case Details:\n"
            f"- Trade: {facts.get('trade') or 'Not specified'}\n"
            f"- State: {facts.get('state') or 'Not specified'}\n"
            f"- Issue Type: {facts.get('issue_type')}\n"
            f"- Amount: {_format_amount(facts.get('amount'))}\n"
            f"- Description: {facts.get('description')}\n\n"
            "Return ONLY a JSON object with this structure:\n"
            "{\n"
            '  "caseType": "string",\n'
            '  "jurisdiction": "string",\n'
            '  "legalFramework": ["SOPA", "BCIPA"],\n'
            '  "strengthOfCase": "weak|moderate|strong",\n'
            '  "riskLevel": "low|medium|high",\n'
            '  "estimatedTimeframe": "string",\n'
            '  "keyIssues": ["string"],\n'
            '  "recommendedActions": ["string"],\n'
            '  "legalProtections": ["string"],\n'
            '  "successProbability": 0\n'
            "}"
        )

    def _strategy_prompt(self, facts: Dict[str, Any], analysis: Dict[str, Any]) -> str:
        return (
            "Based on the case analysis, generate a strategy pack for this Australian tradesperson.\n\n"
            f"Case: {facts.get('title') or facts.get('issue_type')}\n"
            f"Issue: {facts.get('issue_type')}\n"
            f"Amount: {_format_amount(facts.get('amount'))}\n"
            f"Analysis: {json.dumps(analysis, default=str)}\n"
            f"Intake: {json.dumps(facts.get('intake_data') or {}, default=str)}\n\n"
            "Return ONLY a JSON object with:\n"
            "{\n"
            '  "executiveSummary": "string",\n'
            '  "strategyOverview": "string",\n'
            '  "stepByStepPlan": [{"step": 1, "action": "string", "description": "string", '
            '"timeframe": "string", "priority": "high|medium|low"}],\n'
            '  "legalOptions": [{"option": "string", "description": "string", "pros": ["string"], '
            '"cons": ["string"], "cost": "string", "timeframe": "string"}],\n'
            '  "timeline": {"immediateActions": ["string"], "shortTerm": ["string"], '
            '"mediumTerm": ["string"], "longTerm": ["string"]},\n'
            '  "riskMitigation": ["string"],\n'
            '  "expectedOutcomes": "string"\n'
            "}"
        )

    def _document_prompt(self, document_type: str, facts: Dict[str, Any], analysis: Dict[str, Any]) -> str:
        title = DOCUMENT_TITLES.get(document_type, document_type)
        return (
            f"Generate a {title} for this Australian trade case.\n\n"
            "Case Details:\n"
            f"- Type: {facts.get('issue_type')}\n"
            f"- Amount: {_format_amount(facts.get('amount'))}\n"
            f"- Description: {facts.get('description')}\n\n"
            f"Analysis: {json.dumps(analysis, default=str)}\n\n"
            "Use professional legal formatting, reference the relevant state legislation "
            "and state clear demands. Return only the document text."
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def review_application(self, facts: Dict[str, Any]) -> Dict[str, Any]:
        """Admin pre-review of an application. Returns the analysis JSON."""
        self._require_enabled()
        analysis = _extract_json(self._invoke(self._analysis_prompt(facts)))
        analysis["_meta"] = {"model": self.model_id, "analyzed_at": datetime.utcnow().isoformat()}
        return analysis

    def generate(self, facts: Dict[str, Any], document_type: str = "strategy_pack") -> AIResult:
        """
        Analyze the case facts and draft the requested deliverable.

        Raises UpstreamUnavailableError when AI is not configured and
        UpstreamError when the model output cannot be used.
        """
        self._require_enabled()

        analysis = _extract_json(self._invoke(self._analysis_prompt(facts)))
        meta = {"model": self.model_id, "generated_at": datetime.utcnow().isoformat()}

        if document_type == "strategy_pack":
            pack = _extract_json(self._invoke(self._strategy_prompt(facts, analysis), max_tokens=8192))
            if not pack.get("executiveSummary"):
                raise UpstreamError(SERVICE_NAME, "strategy pack missing executiveSummary")
            text = strategy_pack_to_text(pack)
            logger.info("Generated strategy pack with model=%s", self.model_id)
            return AIResult(analysis=analysis, content_text=text, strategy_pack=pack, meta=meta)

        text = self._invoke(self._document_prompt(document_type, facts, analysis))
        logger.info("Generated %s with model=%s", document_type, self.model_id)
        return AIResult(analysis=analysis, content_text=text, meta=meta)


def strategy_pack_to_text(pack: Dict[str, Any]) -> str:
    lines = [pack.get("executiveSummary", ""), ""]
    if pack.get("strategyOverview"):
        lines += ["Strategy Overview", pack["strategyOverview"], ""]
    steps = pack.get("stepByStepPlan") or []
    if steps:
        lines.append("Step-by-Step Plan")
        for step in steps:
            lines.append(
                f"{step.get('step', '-')}. {step.get('action', '')}: {step.get('description', '')} "
                f"({step.get('timeframe', 'n/a')}, {step.get('priority', 'medium')} priority)"
            )
        lines.append("")
    if pack.get("riskMitigation"):
        lines.append("Risk Mitigation")
        lines += [f"- {item}" for item in pack["riskMitigation"]]
        lines.append("")
    if pack.get("expectedOutcomes"):
        lines += ["Expected Outcomes", pack["expectedOutcomes"]]
    return "\n".join(lines).strip()


ai_service = AIService()
