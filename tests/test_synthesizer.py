import pytest

from conftest import ScriptedGenerator
from support_assistant.chat.synthesizer import AnswerSynthesizer, GenerationConfig
from support_assistant.errors import ProviderCallFailed


@pytest.mark.asyncio
async def test_prompt_enforces_context_only_answers(ledger):
    generator = ScriptedGenerator("VS1 is 2.05V.")
    synthesizer = AnswerSynthesizer(generator, ledger)

    answer = await synthesizer.synthesize(
        "what is VS1 voltage", "VS1 is nominally 2.05V", GenerationConfig(temperature=0.1)
    )

    assert answer == "VS1 is 2.05V."
    call = generator.calls[0]
    assert "ONLY from the technical context" in call["system"]
    assert "Never state that the information is absent" in call["system"]
    assert "exactly as written" in call["system"]
    assert "VS1 is nominally 2.05V" in call["system"]
    assert call["user"] == "Question: what is VS1 voltage"
    assert call["temperature"] == 0.1


@pytest.mark.asyncio
async def test_portuguese_prompts_and_force_extraction(ledger):
    generator = ScriptedGenerator("A tensão é 2.05V.")
    synthesizer = AnswerSynthesizer(generator, ledger)

    await synthesizer.synthesize(
        "qual a tensão do VS1", "VS1 2.05V", GenerationConfig(language="pt", force_extraction=True)
    )

    call = generator.calls[0]
    assert "Responda em português." in call["system"]
    assert "extraia tudo que responda" in call["system"]
    assert call["user"].startswith("Pergunta:")


@pytest.mark.asyncio
async def test_behavior_instructions_are_appended(ledger):
    generator = ScriptedGenerator("ok")
    synthesizer = AnswerSynthesizer(generator, ledger)

    await synthesizer.synthesize(
        "q", "ctx", GenerationConfig(behavior_instructions="Always answer in bullet points.")
    )

    assert generator.calls[0]["system"].endswith("Always answer in bullet points.")


@pytest.mark.asyncio
async def test_successful_call_is_ledgered_with_estimated_tokens(ledger):
    synthesizer = AnswerSynthesizer(ScriptedGenerator("abcd" * 10), ledger)

    await synthesizer.synthesize("q", "ctx", GenerationConfig(user_id="u1", widget_id="w1"))

    [record] = ledger.recent()
    assert record.operation_type == "text"
    assert record.success is True
    assert record.user_id == "u1"
    assert record.widget_id == "w1"
    assert record.model_name == "scripted-model"
    assert record.token_count > 10


@pytest.mark.asyncio
async def test_fallback_provider_is_used_when_primary_fails(ledger):
    primary = ScriptedGenerator(ProviderCallFailed("primary down"), model_name="primary")
    fallback = ScriptedGenerator("fallback answer", model_name="fallback")
    synthesizer = AnswerSynthesizer(primary, ledger, fallback=fallback)

    answer = await synthesizer.synthesize("q", "ctx", GenerationConfig())

    assert answer == "fallback answer"
    records = ledger.recent()
    assert [(r.model_name, r.success) for r in records] == [("primary", False), ("fallback", True)]
    assert "primary down" in records[0].error_message


@pytest.mark.asyncio
async def test_all_providers_failing_raises_after_ledgering(ledger):
    primary = ScriptedGenerator(RuntimeError("timeout"), model_name="primary")
    fallback = ScriptedGenerator(RuntimeError("timeout"), model_name="fallback")
    synthesizer = AnswerSynthesizer(primary, ledger, fallback=fallback)

    with pytest.raises(ProviderCallFailed):
        await synthesizer.synthesize("q", "ctx", GenerationConfig())

    assert [r.success for r in ledger.recent()] == [False, False]


@pytest.mark.asyncio
async def test_external_synthesis_includes_prior_answer_and_disclosure(ledger):
    generator = ScriptedGenerator("combined")
    synthesizer = AnswerSynthesizer(generator, ledger)

    await synthesizer.synthesize_with_external(
        "uart pinout", "I could not find it.", "TX is pin 2.", GenerationConfig()
    )

    call = generator.calls[0]
    assert "external sources" in call["system"]
    assert "I could not find it." in call["user"]
    assert "TX is pin 2." in call["user"]


@pytest.mark.asyncio
async def test_exhausted_providers_error_reports_inner_message_once(ledger):
    primary = ScriptedGenerator(ProviderCallFailed("rate limited", provider="openai"))
    synthesizer = AnswerSynthesizer(primary, ledger)

    with pytest.raises(ProviderCallFailed) as excinfo:
        await synthesizer.synthesize("q", "ctx", GenerationConfig())

    assert excinfo.value.message == "All generation providers failed: rate limited"
    assert str(excinfo.value).count("Details:") == 1
