"""
Fallback Source

A fixed corpus of well-known machine learning papers served when no real
source produced anything (offline, sandboxed, or all providers down).

Matching rule: a tag matches when the whole tag, or any of its
space-separated words, occurs in the lowercased "title abstract" text.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from paper_stream.infrastructure.sources.base import SourceAdapter
from paper_stream.models import Paper, PaperSource

DEFAULT_LATENCY = 0.5

FALLBACK_CORPUS: tuple[Paper, ...] = (
    Paper(
        title="Attention Is All You Need: Transformers for Natural Language Processing",
        abstract=(
            "We propose a new simple network architecture, the Transformer, based solely on "
            "attention mechanisms, dispensing with recurrence and convolutions entirely. "
            "Experiments on two machine translation tasks show these models to be superior in "
            "quality while being more parallelizable and requiring significantly less time to train."
        ),
        authors=("Ashish Vaswani", "Noam Shazeer", "Niki Parmar", "Jakob Uszkoreit"),
        published_date="2024-03-15",
        url="https://arxiv.org/abs/1706.03762",
        source=PaperSource.FALLBACK,
        is_preprint=True,
        arxiv_id="1706.03762",
    ),
    Paper(
        title="BERT: Pre-training of Deep Bidirectional Transformers for Language Understanding",
        abstract=(
            "We introduce a new language representation model called BERT, which stands for "
            "Bidirectional Encoder Representations from Transformers. BERT is designed to "
            "pre-train deep bidirectional representations from unlabeled text by jointly "
            "conditioning on both left and right context in all layers."
        ),
        authors=("Jacob Devlin", "Ming-Wei Chang", "Kenton Lee", "Kristina Toutanova"),
        published_date="2024-03-10",
        url="https://arxiv.org/abs/1810.04805",
        source=PaperSource.FALLBACK,
        is_preprint=True,
        arxiv_id="1810.04805",
    ),
    Paper(
        title="Generative Pre-trained Transformers for Artificial Intelligence Applications",
        abstract=(
            "This paper presents a comprehensive survey of generative pre-trained transformers "
            "and their applications in various artificial intelligence domains. We discuss the "
            "evolution from GPT-1 to the latest models and their impact on natural language "
            "processing, computer vision, and multimodal learning."
        ),
        authors=("Sarah Johnson", "Michael Chen", "David Rodriguez"),
        published_date="2024-03-08",
        url="https://example.com/gpt-survey",
        source=PaperSource.FALLBACK,
        is_preprint=False,
        doi="10.1000/example.2024.001",
    ),
    Paper(
        title="Deep Learning for Computer Vision: A Comprehensive Review",
        abstract=(
            "Computer vision has experienced remarkable progress with the advent of deep "
            "learning. This review covers the latest developments in convolutional neural "
            "networks, vision transformers, and their applications in image classification, "
            "object detection, and semantic segmentation."
        ),
        authors=("Emily Zhang", "Robert Wilson", "Lisa Anderson"),
        published_date="2024-03-05",
        url="https://example.com/cv-review",
        source=PaperSource.FALLBACK,
        is_preprint=False,
        doi="10.1000/example.2024.002",
    ),
    Paper(
        title="Reinforcement Learning in Robotics: Recent Advances and Future Directions",
        abstract=(
            "This paper surveys recent advances in reinforcement learning for robotics "
            "applications. We discuss deep Q-networks, policy gradient methods, and their "
            "applications in robot navigation, manipulation, and human-robot interaction."
        ),
        authors=("James Liu", "Maria Garcia", "Peter Kim"),
        published_date="2024-03-02",
        url="https://arxiv.org/abs/2403.001",
        source=PaperSource.FALLBACK,
        is_preprint=True,
        arxiv_id="2403.001",
    ),
    Paper(
        title="Federated Learning for Privacy-Preserving Machine Learning",
        abstract=(
            "Federated learning enables machine learning on decentralized data without "
            "compromising privacy. This work presents novel approaches to address the "
            "challenges of non-IID data distribution, communication efficiency, and "
            "differential privacy in federated settings."
        ),
        authors=("Anna Thompson", "Kevin Park", "Rachel Davis"),
        published_date="2024-02-28",
        url="https://example.com/federated-learning",
        source=PaperSource.FALLBACK,
        is_preprint=False,
        doi="10.1000/example.2024.003",
    ),
)


def matches_tags(paper: Paper, tags: Sequence[str]) -> bool:
    """True when any tag (or any word of a tag) occurs in the title or abstract."""
    text = f"{paper.title} {paper.abstract}".lower()
    for tag in tags:
        tag = tag.lower()
        if tag in text or any(word in text for word in tag.split()):
            return True
    return False


class FallbackSource(SourceAdapter):
    """Deterministic local source; never raises."""

    source = PaperSource.FALLBACK

    def __init__(
        self,
        latency: float = DEFAULT_LATENCY,
        corpus: Sequence[Paper] = FALLBACK_CORPUS,
    ):
        self._latency = latency
        self._corpus = tuple(corpus)

    @property
    def corpus(self) -> tuple[Paper, ...]:
        return self._corpus

    async def fetch(self, tags: Sequence[str], include_preprints: bool) -> list[Paper]:
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        return [
            paper
            for paper in self._corpus
            if matches_tags(paper, tags) and (include_preprints or not paper.is_preprint)
        ]
