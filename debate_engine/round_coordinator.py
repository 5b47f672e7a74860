"""Exposition and cross-examination round management."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .capabilities import CapabilityInvoker, DebateCapabilities
from .events import ProgressEmitter
from .exceptions import CapabilityError, PartialDebaterFailure
from .models import Argument, DocumentContext, Exchange, Posture, Round, Transcript
from .types import ExchangeType, ProgressEventType, RoundType

logger = logging.getLogger(__name__)

DEFAULT_QUORUM = 2


class RoundCoordinator:
    """Drives the exposition round and the round-robin cross-examination rounds.

    Exchanges are appended to their round as they complete. Within a
    cross-examination round every active debater questions every other active
    debater once, dispatched in ascending (asker, askee) index order; answers
    given by the same debater are serialized.
    """

    def __init__(
        self,
        capabilities: DebateCapabilities,
        invoker: CapabilityInvoker,
        emitter: ProgressEmitter,
        *,
        quorum: int = DEFAULT_QUORUM,
        max_concurrent_exchanges: int = 4,
        question_index: int | None = None,
        on_round_change: Callable[[int], None] | None = None,
    ):
        self.capabilities = capabilities
        self.invoker = invoker
        self.emitter = emitter
        self.quorum = quorum
        self.max_concurrent_exchanges = max_concurrent_exchanges
        self.question_index = question_index
        self.on_round_change = on_round_change

    def _exchange(self, exchange_type: ExchangeType, from_debater: str, content: str, **kwargs) -> Exchange:
        return Exchange(
            type=exchange_type,
            from_debater=from_debater,
            content=content,
            question_index=self.question_index,
            **kwargs,
        )

    async def _begin_round(self, transcript: Transcript, round_type: RoundType) -> Round:
        self.invoker.cancel_token.raise_if_cancelled()
        debate_round = transcript.start_round(round_type)
        if self.on_round_change:
            self.on_round_change(debate_round.round_number)
        logger.info(f"Round {debate_round.round_number} ({round_type.value}) started")
        await self.emitter.emit(
            ProgressEventType.ROUND,
            {
                "round_number": debate_round.round_number,
                "round_type": round_type.value,
                "phase": "started",
                "exchange_count": 0,
            },
        )
        return debate_round

    async def _end_round(self, debate_round: Round) -> None:
        await self.emitter.emit(
            ProgressEventType.ROUND,
            {
                "round_number": debate_round.round_number,
                "round_type": debate_round.round_type.value,
                "phase": "completed",
                "exchange_count": len(debate_round.exchanges),
            },
        )

    async def _record_failure(
        self, debate_round: Round, exchange: Exchange, stage: str
    ) -> None:
        debate_round.exchanges.append(exchange)
        await self.emitter.emit(
            ProgressEventType.ERROR,
            {
                "stage": stage,
                "debater_id": exchange.from_debater,
                "round_number": debate_round.round_number,
                "message": exchange.error,
            },
        )

    # ------------------------------------------------------------------
    # Exposition
    # ------------------------------------------------------------------

    async def run_exposition(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        document_context: DocumentContext,
    ) -> tuple[dict[str, Argument], list[Posture]]:
        """Generate all initial arguments concurrently.

        Returns the arguments keyed by debater id and the viable postures.
        Raises PartialDebaterFailure when fewer than ``quorum`` debaters
        produced an argument.
        """
        debate_round = await self._begin_round(transcript, RoundType.EXPOSITION)

        results = await asyncio.gather(
            *(self._argue(debate_round, p, topics, document_context) for p in postures),
            return_exceptions=True,
        )

        arguments: dict[str, Argument] = {}
        viable: list[Posture] = []
        failed: list[str] = []
        for posture, result in zip(postures, results):
            if isinstance(result, Argument):
                arguments[posture.debater_id] = result
                viable.append(posture)
            elif isinstance(result, CapabilityError):
                failed.append(posture.debater_id)
            else:
                raise result

        await self._end_round(debate_round)

        if len(viable) < self.quorum:
            raise PartialDebaterFailure(
                failed, [p.debater_id for p in viable], self.quorum
            )
        if failed:
            logger.warning(
                f"Continuing with {len(viable)} debaters; exposition failed for {', '.join(failed)}"
            )
        return arguments, viable

    async def _argue(
        self,
        debate_round: Round,
        posture: Posture,
        topics: list[str],
        document_context: DocumentContext,
    ) -> Argument:
        async def attempt() -> Argument:
            argument = await self.capabilities.generate_argument(posture, topics, document_context)
            if not argument.per_topic and not argument.overall_position.strip():
                raise CapabilityError("generate_argument", "empty argument")
            return argument

        try:
            argument = await self.invoker.call(
                f"generate_argument[{posture.debater_id}]", attempt
            )
        except CapabilityError as e:
            failure = self._exchange(
                ExchangeType.EXPOSITION, posture.debater_id, "", topics=list(topics), error=str(e)
            )
            await self._record_failure(debate_round, failure, "exposition")
            raise

        argument.debater_id = posture.debater_id
        exchange = self._exchange(
            ExchangeType.EXPOSITION,
            posture.debater_id,
            argument.render(),
            topics=[t.topic for t in argument.per_topic] or list(topics),
        )
        debate_round.exchanges.append(exchange)
        await self._emit_argument_content(argument)
        return argument

    async def _emit_argument_content(self, argument: Argument) -> None:
        for item in argument.per_topic:
            for field_name in ("claim", "reasoning"):
                text = getattr(item, field_name)
                if text:
                    await self.emitter.emit(
                        ProgressEventType.CONTENT,
                        {
                            "debater_id": argument.debater_id,
                            "field": field_name,
                            "topic": item.topic,
                            "text": text,
                        },
                    )
        if argument.overall_position:
            await self.emitter.emit(
                ProgressEventType.CONTENT,
                {
                    "debater_id": argument.debater_id,
                    "field": "overall_position",
                    "text": argument.overall_position,
                },
            )

    # ------------------------------------------------------------------
    # Cross-examination
    # ------------------------------------------------------------------

    async def run_cross_examination(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        document_context: DocumentContext,
        rounds: int,
    ) -> None:
        answer_locks = {p.debater_id: asyncio.Lock() for p in postures}
        ordered = sorted(postures, key=lambda p: p.index)
        pairs = [
            (asker, askee)
            for asker in ordered
            for askee in ordered
            if asker.debater_id != askee.debater_id
        ]

        for _ in range(rounds):
            debate_round = await self._begin_round(transcript, RoundType.CROSS_EXAMINATION)
            slots = asyncio.Semaphore(self.max_concurrent_exchanges)
            results = await asyncio.gather(
                *(
                    self._examine(
                        debate_round,
                        transcript,
                        asker,
                        askee,
                        topics,
                        document_context,
                        slots,
                        answer_locks[askee.debater_id],
                    )
                    for asker, askee in pairs
                ),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result
            await self._end_round(debate_round)

    async def _examine(
        self,
        debate_round: Round,
        transcript: Transcript,
        asker: Posture,
        askee: Posture,
        topics: list[str],
        document_context: DocumentContext,
        slots: asyncio.Semaphore,
        answer_lock: asyncio.Lock,
    ) -> None:
        async with slots:
            prior = transcript.exchanges()

            async def ask() -> str:
                question = await self.capabilities.generate_question(asker, askee, topics, prior)
                if not question.strip():
                    raise CapabilityError("generate_question", "empty question")
                return question.strip()

            try:
                question = await self.invoker.call(
                    f"generate_question[{asker.debater_id}->{askee.debater_id}]", ask
                )
            except CapabilityError as e:
                failure = self._exchange(
                    ExchangeType.QUESTION,
                    asker.debater_id,
                    "",
                    to_debater=askee.debater_id,
                    topics=list(topics),
                    error=str(e),
                )
                await self._record_failure(debate_round, failure, "question")
                return

            question_exchange = self._exchange(
                ExchangeType.QUESTION,
                asker.debater_id,
                question,
                to_debater=askee.debater_id,
                topics=list(topics),
            )
            debate_round.exchanges.append(question_exchange)
            await self.emitter.emit(ProgressEventType.QUESTION, question_exchange.to_dict())

            async with answer_lock:
                prior = transcript.exchanges()

                async def answer_question() -> str:
                    answer = await self.capabilities.generate_answer(
                        askee, question, document_context, prior
                    )
                    if not answer.strip():
                        raise CapabilityError("generate_answer", "empty answer")
                    return answer.strip()

                try:
                    answer = await self.invoker.call(
                        f"generate_answer[{askee.debater_id}]", answer_question
                    )
                except CapabilityError as e:
                    failure = self._exchange(
                        ExchangeType.ANSWER,
                        askee.debater_id,
                        "",
                        to_debater=asker.debater_id,
                        topics=list(topics),
                        error=str(e),
                    )
                    await self._record_failure(debate_round, failure, "answer")
                    return

                answer_exchange = self._exchange(
                    ExchangeType.ANSWER,
                    askee.debater_id,
                    answer,
                    to_debater=asker.debater_id,
                    topics=list(topics),
                )
                debate_round.exchanges.append(answer_exchange)
                await self.emitter.emit(ProgressEventType.RESPONSE, answer_exchange.to_dict())
