from support_assistant.retrieval.keywords import extract_keywords


def test_english_stopwords_and_short_words_are_dropped():
    assert extract_keywords("What is the VS1 voltage?") == ["vs1", "voltage"]


def test_portuguese_query_keeps_accented_words():
    assert extract_keywords("Qual é a tensão do VDDRAM na placa?") == ["tensão", "vddram", "placa"]


def test_duplicates_are_removed_in_order():
    assert extract_keywords("reset RESET, reset pin reset!") == ["reset", "pin"]


def test_query_of_only_stopwords_has_no_keywords():
    assert extract_keywords("what is it") == []
