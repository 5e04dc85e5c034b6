from datetime import timedelta

import pytest

from support_assistant.errors import DocumentNotFound
from support_assistant.models import Chunk, Document, DocumentStatus, UsageRecord, utcnow
from support_assistant.storage.datastore import InMemoryDatastore, JsonFileDatastore


def _chunk(document_id, index, content, embedding=None, language="en"):
    return Chunk(
        id=f"{document_id}-{index:04d}",
        document_id=document_id,
        chunk_index=index,
        content=content,
        content_hash=str(hash(content)),
        embedding=embedding,
        language=language,
    )


def test_update_document_bumps_updated_at():
    store = InMemoryDatastore()
    document = store.save_document(Document(id="d1", name="Manual"))
    before = document.updated_at
    updated = store.update_document("d1", status=DocumentStatus.PROCESSING, progress=10)
    assert updated.status == DocumentStatus.PROCESSING
    assert updated.progress == 10
    assert updated.updated_at >= before


def test_update_document_keeps_explicit_updated_at():
    store = InMemoryDatastore()
    store.save_document(Document(id="d1", name="Manual"))
    stamp = utcnow() - timedelta(hours=2)
    assert store.update_document("d1", updated_at=stamp).updated_at == stamp


def test_update_unknown_document_raises():
    store = InMemoryDatastore()
    with pytest.raises(DocumentNotFound):
        store.update_document("missing", progress=5)


def test_delete_document_cascades_to_chunks():
    store = InMemoryDatastore()
    store.save_document(Document(id="d1", name="Manual"))
    store.save_document(Document(id="d2", name="Other"))
    store.save_chunk(_chunk("d1", 0, "alpha"))
    store.save_chunk(_chunk("d1", 1, "beta"))
    store.save_chunk(_chunk("d2", 0, "gamma"))

    store.delete_document("d1")

    assert store.get_document("d1") is None
    assert [c.document_id for c in store.list_chunks()] == ["d2"]


def test_knowledge_entries_skip_unembedded_chunks_and_filter_language():
    store = InMemoryDatastore()
    store.save_document(Document(id="d1", name="Manual"))
    store.save_chunk(_chunk("d1", 0, "alpha", embedding=[1.0, 0.0]))
    store.save_chunk(_chunk("d1", 1, "beta", embedding=None))
    store.save_chunk(_chunk("d1", 2, "gama", embedding=[0.0, 1.0], language="pt"))

    entries = store.list_knowledge_entries(language="en")

    assert [e.content for e in entries] == ["alpha"]
    assert entries[0].document_name == "Manual"
    assert entries[0].source_id == "d1"
    assert entries[0].is_verified


def test_usage_records_are_listed_newest_last():
    store = InMemoryDatastore()
    for i in range(3):
        store.append_usage_record(
            UsageRecord(model_name=f"m{i}", provider="p", operation_type="text", token_count=i, success=True)
        )
    assert [r.model_name for r in store.list_usage_records()] == ["m0", "m1", "m2"]
    assert [r.model_name for r in store.list_usage_records(limit=2)] == ["m1", "m2"]


def test_json_datastore_round_trips_through_disk(tmp_path):
    store = JsonFileDatastore(tmp_path)
    store.save_document(Document(id="d1", name="Manual", raw_content="VS1 is 2.05V"))
    store.update_document("d1", status=DocumentStatus.INDEXED, progress=100, metadata={"chunk_count": 1})
    store.save_chunk(_chunk("d1", 0, "VS1 is 2.05V", embedding=[1.0, 0.0]))
    store.append_usage_record(
        UsageRecord(model_name="m", provider="p", operation_type="embedding", token_count=3, success=False,
                    error_message="boom")
    )

    reloaded = JsonFileDatastore(tmp_path)

    document = reloaded.get_document("d1")
    assert document.status == DocumentStatus.INDEXED
    assert document.metadata == {"chunk_count": 1}
    assert reloaded.list_chunks("d1")[0].embedding == [1.0, 0.0]
    record = reloaded.list_usage_records()[0]
    assert record.error_message == "boom"
    assert record.success is False
    assert (tmp_path / "usage.jsonl").read_text(encoding="utf-8").count("\n") == 1
