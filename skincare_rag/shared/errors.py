"""Exception types shared by all external collaborators.

Every failure of an embedding, vector search, lexical search or text
generation call surfaces as a CollaboratorError subclass. These are fatal
for the enclosing retrieval request or evaluation mode and are never retried.

Recoverable conditions (blank generations, unknown modes, candidates without
a doc_id) are not exceptions; they are handled in place where they occur.
"""


class CollaboratorError(Exception):
    """Base exception for provider or network failures in collaborators."""
    pass


class VectorSearchError(CollaboratorError):
    """Raised when the vector database query fails."""
    pass
