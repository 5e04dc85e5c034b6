"""Prompt templates for answer synthesis, in English and Portuguese."""

from __future__ import annotations

from typing import Dict

SUPPORTED_LANGUAGES = ("en", "pt")

_GROUNDED_RULES = {
    "en": (
        "RULES:\n"
        "1. Answer ONLY from the technical context below. Do not add facts from elsewhere.\n"
        "2. Never state that the information is absent or that the documents do not contain it. "
        "When the exact answer is not there, give the closest partial or related information.\n"
        "3. Repeat numbers, voltages, part numbers and other specification values exactly as "
        "written in the context, including their units.\n"
        "4. Be clear, direct and concise, as if talking to a technician.\n"
        "5. Reply in English."
    ),
    "pt": (
        "REGRAS:\n"
        "1. Responda SOMENTE com base no contexto técnico abaixo. Não acrescente fatos de outras fontes.\n"
        "2. Nunca afirme que a informação não existe ou que os documentos não a contêm. "
        "Quando a resposta exata não estiver presente, forneça a informação parcial ou relacionada mais próxima.\n"
        "3. Repita números, tensões, códigos de peças e outros valores de especificação exatamente "
        "como aparecem no contexto, incluindo as unidades.\n"
        "4. Seja claro, direto e conciso, como se estivesse falando com um técnico.\n"
        "5. Responda em português."
    ),
}

_NORMAL_INTRO = {
    "en": "You are a support assistant specialized in circuit board maintenance and electronics.",
    "pt": "Você é um assistente de suporte especializado em manutenção de placas de circuito e eletrônica.",
}

_FORCE_INTRO = {
    "en": (
        "You are a technical specialist. A previous attempt failed to use the context below. "
        "Read every passage carefully and extract whatever answers the question, even partially. "
        "Quote the relevant values and procedures directly."
    ),
    "pt": (
        "Você é um especialista técnico. Uma tentativa anterior não aproveitou o contexto abaixo. "
        "Leia cada trecho com atenção e extraia tudo que responda à pergunta, mesmo que parcialmente. "
        "Cite diretamente os valores e procedimentos relevantes."
    ),
}

_CONTEXT_HEADER = {
    "en": "AVAILABLE TECHNICAL CONTEXT:",
    "pt": "CONTEXTO TÉCNICO DISPONÍVEL:",
}

_QUESTION_LABEL = {"en": "Question", "pt": "Pergunta"}

_GENERAL_SYSTEM = {
    "en": (
        "You are a helpful support assistant for electronics technicians. "
        "Answer clearly and concisely in English."
    ),
    "pt": (
        "Você é um assistente de suporte prestativo para técnicos de eletrônica. "
        "Responda de forma clara e concisa em português."
    ),
}

_EXTERNAL_SYSTEM = {
    "en": (
        "You are a support assistant specialized in circuit board maintenance. "
        "Your previous answer was not grounded in the document corpus, so supplementary "
        "information was gathered from external sources. Combine it with the previous answer "
        "into one complete reply. State clearly that part of the information came from "
        "external sources. Reply in English."
    ),
    "pt": (
        "Você é um assistente de suporte especializado em manutenção de placas de circuito. "
        "Sua resposta anterior não se baseou nos documentos, então informações complementares "
        "foram obtidas em fontes externas. Combine-as com a resposta anterior em uma resposta "
        "completa. Informe claramente que parte das informações veio de fontes externas. "
        "Responda em português."
    ),
}

APOLOGIES = {
    "en": (
        "Sorry, I could not generate an answer right now. Please try again in a moment."
    ),
    "pt": (
        "Desculpe, não consegui gerar uma resposta agora. Por favor, tente novamente em instantes."
    ),
}


def normalize_language(language: str | None) -> str:
    if language and language.lower()[:2] in SUPPORTED_LANGUAGES:
        return language.lower()[:2]
    return "en"


def _with_behavior(prompt: str, behavior_instructions: str) -> str:
    if behavior_instructions and behavior_instructions.strip():
        return f"{prompt}\n\nOPERATOR INSTRUCTIONS:\n{behavior_instructions.strip()}"
    return prompt


def build_system_prompt(
    context: str,
    *,
    language: str = "en",
    force_extraction: bool = False,
    behavior_instructions: str = "",
) -> str:
    lang = normalize_language(language)
    intro = _FORCE_INTRO[lang] if force_extraction else _NORMAL_INTRO[lang]
    prompt = f"{intro}\n\n{_GROUNDED_RULES[lang]}\n\n{_CONTEXT_HEADER[lang]}\n{context}"
    return _with_behavior(prompt, behavior_instructions)


def build_user_prompt(query: str, *, language: str = "en") -> str:
    return f"{_QUESTION_LABEL[normalize_language(language)]}: {query}"


def build_general_prompt(*, language: str = "en", behavior_instructions: str = "") -> str:
    return _with_behavior(_GENERAL_SYSTEM[normalize_language(language)], behavior_instructions)


def build_external_prompts(
    query: str,
    prior_answer: str,
    external_info: str,
    *,
    language: str = "en",
    behavior_instructions: str = "",
) -> Dict[str, str]:
    """Return the system and user prompts of the escalation synthesis."""

    lang = normalize_language(language)
    if lang == "pt":
        user = (
            f'A pergunta original foi: "{query}"\n\n'
            f'Sua resposta anterior foi: "{prior_answer}"\n\n'
            f"Informações adicionais de fontes externas:\n{external_info}"
        )
    else:
        user = (
            f'The original question was: "{query}"\n\n'
            f'Your previous answer was: "{prior_answer}"\n\n'
            f"Additional information from external sources:\n{external_info}"
        )
    return {
        "system": _with_behavior(_EXTERNAL_SYSTEM[lang], behavior_instructions),
        "user": user,
    }


def apology(language: str | None) -> str:
    return APOLOGIES[normalize_language(language)]
