"""Prompt template for grounded question answering."""
from typing import Iterable

from docqa.rag.chunker import Segment

# Bump when the template text changes so answers can be traced to a template
PROMPT_VERSION = "v1"

CONTEXT_SEPARATOR = "\n\n"

PROMPT_TEMPLATE = """Answer the question based only on the following context.
If the context does not contain enough information to answer, say that the document does not provide the answer instead of guessing.

Context:
{context}

Question: {question}

Answer:"""


def compose_context(segments: Iterable[Segment]) -> str:
    """Join segment texts in rank order, separated by a blank line."""
    return CONTEXT_SEPARATOR.join(segment.text for segment in segments)


def compose_prompt(question: str, segments: Iterable[Segment]) -> str:
    """Build the generation prompt for ``question`` grounded on ``segments``.

    Args:
        question: The user's question
        segments: Retrieved segments, best first

    Returns:
        The complete prompt text
    """
    return PROMPT_TEMPLATE.format(context=compose_context(segments), question=question)
