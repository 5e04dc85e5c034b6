from support_assistant.models import RetrievalResult
from support_assistant.retrieval.context import ContextFormatter, format_block
from support_assistant.retrieval.orchestrator import REFERENCE_DOCUMENT_NAME


def _result(name, content, score=0.9):
    return RetrievalResult(document_id=name.lower(), document_name=name, content=content, relevance_score=score)


def test_blocks_are_labelled_with_name_and_relevance():
    context = ContextFormatter().format([_result("Power guide", "VS1 is nominally 2.05V", 0.876)])

    assert 'DOCUMENT 1: "Power guide" (relevance: 0.88)' in context
    assert context.endswith("VS1 is nominally 2.05V")


def test_blocks_over_budget_are_dropped_whole():
    results = [
        _result("First", "a" * 300),
        _result("Second", "b" * 600),
        _result("Third", "c" * 100),
    ]
    budget = len(format_block(1, results[0])) + 2 + len(format_block(3, results[2])) + 10

    context = ContextFormatter(char_budget=budget).format(results)

    assert "a" * 300 in context
    assert "b" * 600 not in context
    assert "c" * 100 in context
    assert len(context) <= budget


def test_top_block_is_kept_even_when_over_budget():
    context = ContextFormatter(char_budget=50).format([_result("Huge", "x" * 500), _result("Small", "y")])

    assert "x" * 500 in context
    assert "Small" not in context


def test_reference_block_is_labelled_as_not_from_documents():
    reference = RetrievalResult(
        document_id=None,
        document_name=REFERENCE_DOCUMENT_NAME,
        content="VS1: approximately 2.05 V.",
        relevance_score=0.0,
        is_reference=True,
    )

    context = ContextFormatter().format([reference])

    assert "not from the document corpus" in context
    assert "relevance" not in context


def test_no_results_give_empty_context():
    assert ContextFormatter().format([]) == ""
