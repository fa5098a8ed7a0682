"""Judging service backed by an OpenAI-compatible chat completion API."""

import asyncio
import json
import logging
import re
from typing import Any, List

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)

from ..config import JudgingConfig
from ..errors import JudgingServiceError
from .base import Judge, JudgeScore, JudgingRequest, JudgingService, validate_judge_scores

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (RateLimitError, APIConnectionError, APITimeoutError, InternalServerError)


class OpenAIJudgingService(JudgingService):
    """Asks one chat completion per judge persona and parses its JSON scores."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 1500,
        timeout: float = 60.0,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        client: Any | None = None,
    ):
        if client is None and not api_key:
            raise JudgingServiceError("OpenAI judging service requires an API key")

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        # The SDK's own retries are disabled; backoff happens here.
        self._client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    @classmethod
    def from_config(cls, config: JudgingConfig) -> "OpenAIJudgingService":
        return cls(
            api_key=config.resolve_api_key(),
            model=config.model,
            base_url=config.base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay,
        )

    async def judge(self, request: JudgingRequest) -> List[JudgeScore]:
        logger.info(
            f"Judging debate {request.debate.id} with {len(request.judges)} judges"
        )
        labels = {
            f"Participant {index}": user_id
            for index, user_id in enumerate(request.participant_ids, start=1)
        }
        transcript = self._format_transcript(request, labels)

        results = await asyncio.gather(
            *(self._evaluate(judge, transcript, labels) for judge in request.judges)
        )
        return validate_judge_scores(request, list(results))

    def _format_transcript(self, request: JudgingRequest, labels: dict[str, str]) -> str:
        """Format debate transcript for judge evaluation."""
        debate = request.debate
        label_for = {user_id: label for label, user_id in labels.items()}
        lines = [f"DEBATE TOPIC: {debate.topic}"]
        if debate.description:
            lines.append(f"DESCRIPTION: {debate.description}")

        for user_id in request.participant_ids:
            position = debate.position_of(user_id)
            side = f" arguing {position.value}" if position and not debate.is_group else ""
            lines.append(f"{label_for[user_id]}{side}")

        current_round = 0
        for statement in sorted(request.statements, key=lambda s: (s.round, s.created_at)):
            if statement.round != current_round:
                current_round = statement.round
                lines.append(f"\n=== ROUND {current_round} ===")
            label = label_for.get(statement.author_id, statement.author_id)
            lines.append(f"\n{label}:")
            lines.append(statement.content)

        return "\n".join(lines)

    def _build_prompt(self, judge: Judge, transcript: str, labels: dict[str, str]) -> str:
        score_lines = ",\n".join(f'    "{label}": <0-100>' for label in labels)
        return f"""You are {judge.name}, a {judge.personality} debate judge.
{judge.system_prompt}

Score every participant from 0 to 100 on the strength of their arguments.
Respond with JSON in exactly this shape:
{{
  "scores": {{
{score_lines}
  }},
  "reasoning": "<two or three sentences>"
}}

DEBATE TRANSCRIPT:
{transcript}

Provide your evaluation as valid JSON only, no additional text:"""

    async def _evaluate(
        self, judge: Judge, transcript: str, labels: dict[str, str]
    ) -> JudgeScore:
        prompt = self._build_prompt(judge, transcript, labels)
        content = await self._complete(prompt)
        return self._parse_evaluation(judge, content, labels)

    async def _complete(self, prompt: str) -> str:
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                )
                return response.choices[0].message.content or ""
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_retries:
                    logger.error(f"Judging request failed after {attempt + 1} attempts: {e}")
                    raise JudgingServiceError(f"Judging service unavailable: {e}") from e
                delay = self.retry_base_delay * (2**attempt)
                logger.warning(f"Judging request failed ({e}), retrying in {delay:.2f}s")
                await asyncio.sleep(delay)
            except Exception as e:
                logger.error(f"Judging request failed: {e}")
                raise JudgingServiceError(f"Judging request failed: {e}") from e

        raise JudgingServiceError("Judging service unavailable")

    def _parse_evaluation(
        self, judge: Judge, evaluation: str, labels: dict[str, str]
    ) -> JudgeScore:
        """Parse a judge's response into scores keyed by user id."""
        logger.debug(f"Raw evaluation from {judge.name}: {evaluation}")

        markdown_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", evaluation, re.DOTALL)
        if markdown_match:
            json_text = markdown_match.group(1)
        else:
            json_match = re.search(r"\{.*\}", evaluation, re.DOTALL)
            json_text = json_match.group() if json_match else evaluation.strip()

        try:
            data = json.loads(json_text)
            raw_scores = data["scores"]
            scores = {
                labels[label]: float(raw_scores[label]) for label in labels
            }
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Could not parse evaluation from {judge.name}: {e}")
            raise JudgingServiceError(
                f"Judge {judge.name} returned an unparseable evaluation"
            ) from e

        return JudgeScore(
            judge_id=judge.id, scores=scores, reasoning=str(data.get("reasoning", ""))
        )
