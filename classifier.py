#!/usr/bin/env python3
"""
Keyword-based severity classifier for ration-distribution complaints.

This module handles:
- Severity detection from a transcript using fixed bilingual keyword tiers
- A localized (English / Hindi) summary of the complaint
- Sample complaints used when transcription is simulated
"""

import random
from typing import List, Tuple

from logging_config import get_logger
from models import Language, Severity

logger = get_logger(__name__)

# Checked in this order; the first tier with a match decides severity.
SEVERITY_KEYWORDS: List[Tuple[Severity, List[str]]] = [
    (Severity.CRITICAL, ['removed', 'हटा दिया', 'cancel', 'रद्द', 'threatened', 'धमकाया']),
    (Severity.HIGH, ['bribe', 'रिश्वत', 'threat', 'धमकी', 'refused', 'मना कर दिया']),
    (Severity.MEDIUM, ['less', 'कम', 'extra money', 'अतिरिक्त पैसे', 'charge', 'वसूला']),
    (Severity.LOW, ['quality', 'poor', 'गुणवत्ता', 'घटिया', 'waiting', 'इंतज़ार']),
]

DEFAULT_SEVERITY = Severity.MEDIUM

# (topic keywords, english clause, hindi clause); appended in this order
TOPIC_CLAUSES = [
    (('less', 'कम'),
     ' The consumer received less ration than they were entitled to.',
     ' उपभोक्ता को उनके हक से कम राशन दिया गया।'),
    (('money', 'पैसे'),
     ' Extra money was charged.',
     ' अतिरिक्त पैसे वसूले गए।'),
    (('quality', 'गुणवत्ता'),
     ' The quality of ration was poor.',
     ' राशन की गुणवत्ता निम्न स्तर की थी।'),
    (('bribe', 'रिश्वत'),
     ' There was a demand for bribes.',
     ' रिश्वत की मांग की गई थी।'),
]

HINDI_SEVERITY_LABELS = {
    Severity.LOW: 'निम्न',
    Severity.MEDIUM: 'मध्यम',
    Severity.HIGH: 'उच्च',
    Severity.CRITICAL: 'अति गंभीर',
}

SAMPLE_COMPLAINTS = {
    Language.DEFAULT: [
        'Last month I received less ration than I am entitled to. The dealer gave me only 4kg of rice instead of 5kg and charged me extra money.',
        'The ration dealer is demanding a bribe of Rs.100 to give me my full quota of ration. When I refused, he threatened to remove my name from the list.',
        'The quality of wheat and rice being distributed is very poor. It contains stones and insects. When I complained, the dealer told me to take it or leave it.',
        'I had to stand in line for 6 hours to get my ration, and when my turn came, the dealer claimed the supplies were finished and asked me to come back next day.',
    ],
    Language.ALTERNATE: [
        'मुझे पिछले महीने कम राशन मिला और अधिक पैसे लिए गए। चीनी और चावल की गुणवत्ता भी बहुत खराब थी।',
        'राशन डीलर ने मुझे केवल 3 किलो चावल दिया, जबकि मेरे कार्ड पर 5 किलो का हक है। जब मैंने शिकायत की तो उसने मुझे धमकी दी।',
        'राशन लेने के लिए हमें 50 रुपये अतिरिक्त देने पड़ते हैं, अन्यथा डीलर कहता है कि राशन खत्म हो गया है।',
        'मिलने वाला गेहूं और चावल बहुत घटिया क्वालिटी का है। इसमें कंकड़ और कीड़े भी मिले हुए हैं।',
    ],
}


def detect_severity(transcript: str) -> Severity:
    lowered = transcript.lower()
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(keyword.lower() in lowered for keyword in keywords):
            return severity
    return DEFAULT_SEVERITY


def build_summary(transcript: str, severity: Severity, language: Language) -> str:
    lowered = transcript.lower()
    if language == Language.ALTERNATE:
        label = HINDI_SEVERITY_LABELS.get(severity, HINDI_SEVERITY_LABELS[Severity.CRITICAL])
        summary = f"शिकायत विश्लेषण: इस शिकायत में राशन वितरण से संबंधित समस्याएं पाई गईं। गंभीरता स्तर: {label}।"
    else:
        summary = (
            "Complaint Analysis: Issues related to ration distribution were found "
            f"in this complaint. Severity level: {severity.value}."
        )

    for keywords, english, hindi in TOPIC_CLAUSES:
        if any(keyword in lowered for keyword in keywords):
            summary += hindi if language == Language.ALTERNATE else english
    return summary


def classify(transcript: str, language=Language.DEFAULT) -> Tuple[str, Severity]:
    """
    Classify a complaint transcript.

    Args:
        transcript (str): Complaint text, in either language
        language: Language of the summary (Language or its string value)

    Returns:
        tuple: (summary, severity). Never raises; on error the result is a
        medium-severity fallback whose summary names the error.
    """
    try:
        language = Language(language)
        severity = detect_severity(transcript)
        summary = build_summary(transcript, severity, language)
        logger.info(f"Complaint classified as {severity.value}")
        return summary, severity
    except Exception as e:
        logger.exception("Error analyzing fraud report")
        return f"Error analyzing fraud report: {e}", DEFAULT_SEVERITY


def sample_transcript(language=Language.DEFAULT) -> str:
    """Pick a canned complaint in the given language."""
    try:
        language = Language(language)
    except ValueError:
        language = Language.DEFAULT
    return random.choice(SAMPLE_COMPLAINTS[language])
