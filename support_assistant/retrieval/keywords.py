"""Keyword extraction for lexical boosting and the keyword retrieval tier."""

from __future__ import annotations

import re
from typing import List

PORTUGUESE_STOPWORDS = frozenset(
    """
    a ao aos aquela aquelas aquele aqueles aquilo as até com como da das de dela
    delas dele deles depois do dos e ela elas ele eles em entre era eram éramos
    essa essas esse esses esta estas este estes eu foi fomos for foram fosse
    fossem fui há isso isto já lhe lhes mais mas me mesmo meu meus minha minhas
    muito na não nas nem no nos nós nossa nossas nosso nossos num numa o os ou
    para pela pelas pelo pelos por qual quais quando que quem são se seja sejam
    sem será seu seus sua suas também te tem têm temos tenho teu teus tu tua
    tuas um uma você vocês vos
    """.split()
)

ENGLISH_STOPWORDS = frozenset(
    """
    a about above after again all also am an and any are as at be because been
    before being below between both but by can could did do does doing down
    during each few for from further had has have having her here hers him his
    how into its itself just more most must not now off once only other our
    ours out over own same she should some such than that the their theirs them
    then there these they this those through too under until very was were
    what when where which while who whom why will with would you your yours
    """.split()
)

STOPWORDS = PORTUGUESE_STOPWORDS | ENGLISH_STOPWORDS

_PUNCTUATION = re.compile(r"[^\w\sáàâãéèêíïóôõöúüçñ]", re.UNICODE)


def extract_keywords(query: str) -> List[str]:
    """Return the distinct, meaningful words of ``query`` in their original order."""

    cleaned = _PUNCTUATION.sub("", query.lower())
    keywords: List[str] = []
    for word in cleaned.split():
        if len(word) <= 2 or word in STOPWORDS or word in keywords:
            continue
        keywords.append(word)
    return keywords
