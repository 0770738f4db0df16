"""Sufficiency gatekeeper - pre-flight check before drafting or reasoning.

Fail-open: any model, transport or parse problem yields SUFFICIENT/100.
"""

import json
import logging
from typing import Any, Optional

from ..core.models import ModelGateway, ModelKey
from . import prompts
from .decisions import invoke_json
from .state import Jurisdiction, SufficiencyStatus, SufficiencyVerdict

logger = logging.getLogger(__name__)


def _coerce_score(value: Any, default: int) -> int:
    try:
        score = int(float(value))
    except (TypeError, ValueError):
        return default
    return max(0, min(100, score))


def _coerce_fields(value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(item) for item in value if str(item).strip()]
    return None


def normalize_verdict(payload: dict) -> SufficiencyVerdict:
    """Turn model JSON into a verdict. Unknown statuses fail open."""
    status = str(payload.get("status", "")).strip().upper()

    if status == SufficiencyStatus.NEEDS_INFO.value:
        clarification = payload.get("clarification_prompt")
        if not isinstance(clarification, str) or not clarification.strip():
            clarification = prompts.DEFAULT_CLARIFICATION
        return SufficiencyVerdict(
            status=SufficiencyStatus.NEEDS_INFO,
            sufficiency_score=_coerce_score(payload.get("sufficiency_score"), 0),
            missing_fields=_coerce_fields(payload.get("missing_fields")) or [],
            clarification_prompt=clarification,
        )

    if status != SufficiencyStatus.SUFFICIENT.value:
        logger.warning(f"Unknown sufficiency status {status!r}, failing open")
        return SufficiencyVerdict.sufficient()

    return SufficiencyVerdict(
        status=SufficiencyStatus.SUFFICIENT,
        sufficiency_score=_coerce_score(payload.get("sufficiency_score"), 100),
    )


class SufficiencyGatekeeper:
    """Decides whether a request carries enough information to proceed."""

    CONTEXT_EXCERPT = 500

    def __init__(self, gateway: ModelGateway, model_key: ModelKey = ModelKey.GENERAL):
        self.gateway = gateway
        self.model_key = model_key

    async def check(
        self,
        prompt: str,
        context: str = "",
        jurisdiction: Optional[Jurisdiction] = None,
    ) -> SufficiencyVerdict:
        try:
            system_prompt = prompts.P_GATEKEEPER.format(
                jurisdiction=json.dumps(jurisdiction.to_dict()) if jurisdiction else prompts.NO_JURISDICTION,
                context=(context or "")[:self.CONTEXT_EXCERPT],
                prompt=prompt,
            )
            parsed, _ = await invoke_json(
                self.gateway,
                "check_sufficiency",
                self.model_key,
                [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
            )
            if not parsed.ok:
                logger.warning(f"Sufficiency check failed ({parsed.kind.value}), failing open")
                return SufficiencyVerdict.sufficient()

            verdict = normalize_verdict(parsed.value)
            logger.info(f"Sufficiency: {verdict.status.value} (score={verdict.sufficiency_score})")
            return verdict

        except Exception as e:
            logger.error(f"Sufficiency check error, failing open: {e}")
            return SufficiencyVerdict.sufficient()
