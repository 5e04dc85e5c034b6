import dataclasses

import pytest

from conftest import VocabularyEmbedder
from support_assistant.errors import ProviderCallFailed
from support_assistant.tracking.usage import UsageLedger, estimate_tokens


def test_estimate_tokens_is_a_quarter_of_characters():
    assert estimate_tokens("a" * 10, "b" * 6) == 4
    assert estimate_tokens("", None) == 0


def test_records_are_frozen(ledger):
    record = ledger.record(
        model_name="m", provider="p", operation_type="text", token_count=1, success=True
    )
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.success = False


def test_storage_failure_does_not_raise():
    class BrokenStore:
        def append_usage_record(self, record):
            raise OSError("disk full")

    record = UsageLedger(BrokenStore()).record(
        model_name="m", provider="p", operation_type="text", token_count=1, success=True
    )
    assert record.model_name == "m"


@pytest.mark.asyncio
async def test_embed_records_success_and_failure(ledger):
    await ledger.embed(VocabularyEmbedder(), "VS1 rail", user_id="u1", widget_id="w1")
    with pytest.raises(ProviderCallFailed):
        await ledger.embed(VocabularyEmbedder(fail_on="VS1"), "VS1 rail")

    ok, failed = ledger.recent()
    assert (ok.operation_type, ok.success, ok.user_id, ok.widget_id) == ("embedding", True, "u1", "w1")
    assert ok.token_count == 2
    assert failed.success is False
    assert "embedding failed" in failed.error_message
