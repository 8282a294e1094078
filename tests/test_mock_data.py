import random

import pytest

from rag_visualizer.services.rag.mock_data import (
    GENERIC_RESPONSE,
    MOCK_RESPONSES,
    generate_mock_response,
    generate_mock_vector,
    mock_search_matches,
)
from rag_visualizer.services.rag.sample_data import SAMPLE_DOCUMENTS
from rag_visualizer.services.rag.types import Document


def test_mock_vector_has_eight_components_in_range() -> None:
    vector = generate_mock_vector()

    assert len(vector) == 8
    assert all(-1.0 <= value <= 1.0 for value in vector)


def test_mock_vector_is_reproducible_with_seeded_rng() -> None:
    assert generate_mock_vector(rng=random.Random(3)) == generate_mock_vector(rng=random.Random(3))


def test_mock_vector_rejects_empty_dimension() -> None:
    with pytest.raises(ValueError):
        generate_mock_vector(0)


def test_mock_search_scores_descend_by_rank() -> None:
    matches = mock_search_matches(SAMPLE_DOCUMENTS, 3)

    assert [match.id for match in matches] == ["1", "2", "3"]
    assert [match.score for match in matches] == [0.9, 0.8, 0.7]
    assert matches[1].text == SAMPLE_DOCUMENTS[1].content
    assert matches[1].metadata["title"] == "Binary Search Algorithm"


def test_mock_search_has_no_score_floor() -> None:
    documents = [Document(id=index, title=f"doc {index}", content="text") for index in range(12)]

    matches = mock_search_matches(documents, 11)

    assert len(matches) == 11
    assert matches[-1].score == pytest.approx(-0.1)


def test_mock_search_is_bounded_by_known_documents() -> None:
    assert len(mock_search_matches(SAMPLE_DOCUMENTS, 10)) == 3
    assert mock_search_matches(SAMPLE_DOCUMENTS, 0) == []


def test_mock_response_first_keyword_in_mapping_order_wins() -> None:
    response = generate_mock_response("What is the time complexity of binary search?")

    assert response == MOCK_RESPONSES["binary search"]


@pytest.mark.parametrize(
    ("question", "keyword"),
    [
        ("How does a HASH TABLE resolve collisions?", "hash table"),
        ("Why is array access fast?", "array"),
        ("Explain time complexity", "time complexity"),
    ],
)
def test_mock_response_matches_keywords_case_insensitively(question: str, keyword: str) -> None:
    assert generate_mock_response(question) == MOCK_RESPONSES[keyword]


def test_mock_response_falls_back_to_generic_answer() -> None:
    assert generate_mock_response("Tell me about graphs") == GENERIC_RESPONSE


def test_mock_response_is_deterministic() -> None:
    question = "binary search please"

    assert generate_mock_response(question) == generate_mock_response(question)


def test_mock_response_keyword_order_is_stable() -> None:
    assert list(MOCK_RESPONSES) == ["binary search", "hash table", "array", "time complexity"]
