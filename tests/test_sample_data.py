import pytest

from rag_visualizer.services.rag.sample_data import SAMPLE_DOCUMENTS, find_document, parse_document_id


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (2, 2),
        ("2", 2),
        (" 3 ", 3),
        (1.0, 1),
        (1.9, 1),
        ("1abc", 1),
        ("-4", -4),
        ("abc", None),
        ("", None),
        (True, None),
        (None, None),
        (float("nan"), None),
        ([1], None),
    ],
)
def test_parse_document_id_reads_leading_integer(value: object, expected: int | None) -> None:
    assert parse_document_id(value) == expected


def test_find_document_resolves_loose_ids() -> None:
    assert find_document(SAMPLE_DOCUMENTS, "3rd") is SAMPLE_DOCUMENTS[2]
    assert find_document(SAMPLE_DOCUMENTS, 2.0) is SAMPLE_DOCUMENTS[1]
    assert find_document(SAMPLE_DOCUMENTS, 999) is None
