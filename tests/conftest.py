import pytest


@pytest.fixture(autouse=True)
def _word_token_counts(monkeypatch):
    """Replace tiktoken counting, whose first use downloads the BPE file."""
    monkeypatch.setattr(
        "berkshire_rag.services.chunker.count_tokens",
        lambda text: len(text.split()),
    )
