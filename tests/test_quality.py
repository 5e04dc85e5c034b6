import pytest

from support_assistant.chat.quality import PhraseGroundingDetector, QualityGate


@pytest.mark.parametrize(
    "answer",
    [
        "Unfortunately the document does not contain that value.",
        "The requested pinout was NOT FOUND in the manuals.",
        "There is no information about the VCORE rail.",
        "Não encontrei essa informação nos documentos.",
        "O manual não contém o valor pedido.",
        "Não há informações sobre esse conector.",
        "",
        "   ",
    ],
)
def test_ungrounded_answers(answer):
    assert QualityGate().is_grounded(answer) is False


def test_grounded_answer():
    assert QualityGate().is_grounded("VS1 is nominally 2.05V.") is True


def test_custom_detector_strategy():
    class AlwaysGrounded:
        def is_grounded(self, response_text: str) -> bool:
            return True

    assert QualityGate(AlwaysGrounded()).is_grounded("not found") is True


def test_phrase_detector_with_custom_phrases():
    detector = PhraseGroundingDetector(["No Idea"])
    assert detector.is_grounded("I have no idea") is False
    assert detector.is_grounded("not found") is True
