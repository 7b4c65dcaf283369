"""Retrieval-augmented question answering.

Each request walks a fixed sequence of states:

    RECEIVED -> EMBEDDING -> RETRIEVING -> COMPOSING -> GENERATING -> COMPLETED

and lands in FAILED on the first error. Retrieval always finishes before
generation starts. Requests share nothing except the read-only index, so
any number of them may run concurrently.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
import structlog

from docqa import config
from docqa.errors import (
    DocQAError,
    IndexNotReady,
    InvalidConfiguration,
    InvalidRequest,
    ServiceNotReady,
)
from docqa.rag.gateways import EmbeddingGateway, GenerationGateway
from docqa.rag.prompts import PROMPT_VERSION, compose_prompt
from docqa.rag.vector_index import SearchHit, VectorIndex

logger = structlog.get_logger()


class PipelineState(str, Enum):
    RECEIVED = "received"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    COMPOSING = "composing"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Answer:
    """Result of one successful request."""

    question: str
    answer: str
    hits: List[SearchHit]
    prompt: str
    prompt_version: str = PROMPT_VERSION
    states: List[PipelineState] = field(default_factory=list)


class QueryPipeline:
    """Answers questions from the segments held in a VectorIndex."""

    def __init__(
        self,
        embedder: EmbeddingGateway,
        generator: GenerationGateway,
        index: VectorIndex,
        top_k: int = None,
        max_question_length: int = None,
    ):
        """Initialize the pipeline.

        Args:
            embedder: Gateway used to embed the question
            generator: Gateway used to generate the answer
            index: Built (or soon to be built) vector index
            top_k: Number of segments used as context (default from config)
            max_question_length: Longest accepted question in characters (default from config)

        Raises:
            InvalidConfiguration: If top_k or max_question_length is less than 1
        """
        self.embedder = embedder
        self.generator = generator
        self.index = index
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.max_question_length = (
            config.MAX_QUESTION_LENGTH if max_question_length is None else max_question_length
        )

        if self.top_k < 1:
            raise InvalidConfiguration(f"top_k must be at least 1, got {self.top_k}")
        if self.max_question_length < 1:
            raise InvalidConfiguration(
                f"max_question_length must be at least 1, got {self.max_question_length}"
            )

    def validate(self, question) -> str:
        """Return the stripped question or raise InvalidRequest."""
        if not isinstance(question, str):
            raise InvalidRequest("Question must be a string")

        question = question.strip()
        if not question:
            raise InvalidRequest("Question cannot be empty")

        if len(question) > self.max_question_length:
            raise InvalidRequest(
                f"Question too long (max {self.max_question_length} characters)"
            )

        return question

    async def ask(self, question: str) -> Answer:
        """Answer ``question`` using the top-k most similar segments.

        Raises:
            InvalidRequest: If the question is not a non-empty string
            ServiceNotReady: If the index has not been built
            UpstreamEmbeddingError: If embedding the question fails
            UpstreamGenerationError: If generating the answer fails
            UpstreamTimeout: If either remote call times out
        """
        states = [PipelineState.RECEIVED]
        state = PipelineState.RECEIVED

        def advance(next_state: PipelineState) -> None:
            nonlocal state
            state = next_state
            states.append(next_state)
            logger.debug("pipeline_state", state=next_state.value)

        try:
            question = self.validate(question)

            logger.info(
                "ask_received",
                question_length=len(question),
                question_preview=question[:100],
                top_k=self.top_k,
            )

            advance(PipelineState.EMBEDDING)
            query_vector = await self.embedder.embed(question)

            advance(PipelineState.RETRIEVING)
            try:
                hits = self.index.search(query_vector, self.top_k)
            except IndexNotReady as e:
                raise ServiceNotReady("Document index is still being built") from e

            advance(PipelineState.COMPOSING)
            prompt = compose_prompt(question, [hit.segment for hit in hits])

            advance(PipelineState.GENERATING)
            answer = await self.generator.generate(prompt)

            advance(PipelineState.COMPLETED)

        except DocQAError as e:
            failed_in = state
            advance(PipelineState.FAILED)
            logger.warning(
                "ask_failed",
                failed_in=failed_in.value,
                error=e.message,
                error_type=type(e).__name__,
                category=e.category,
            )
            raise

        logger.info(
            "ask_completed",
            segments_used=len(hits),
            top_score=round(hits[0].score, 4) if hits else None,
            answer_length=len(answer),
        )

        return Answer(
            question=question,
            answer=answer,
            hits=hits,
            prompt=prompt,
            states=states,
        )


# Set once the startup build has finished
_pipeline_instance: Optional[QueryPipeline] = None


def set_pipeline(pipeline: Optional[QueryPipeline]) -> None:
    global _pipeline_instance
    _pipeline_instance = pipeline


def get_pipeline() -> QueryPipeline:
    """Get the process-wide pipeline.

    Raises:
        ServiceNotReady: If startup has not installed a pipeline yet
    """
    if _pipeline_instance is None:
        raise ServiceNotReady("Service is still starting up")
    return _pipeline_instance
