"""Document question answering service.

Answers questions about a single document by retrieving the most similar
text segments and grounding a generated answer on them.
"""
