"""
Question Analyzer
Rule-table classification of free-text questions into type, board domain,
ranked keywords, complexity, urgency and sentiment.
"""

import re
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

import structlog

from advisory_board.models.analysis import (
    GENERAL_DOMAIN,
    Complexity,
    QuestionAnalysis,
    QuestionType,
    Sentiment,
    Urgency,
)

logger = structlog.get_logger(__name__)


def _rx(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _words(*words: str) -> Pattern[str]:
    """Whole-word alternation allowing a plural suffix."""
    alternation = "|".join(re.escape(w) for w in words)
    return _rx(rf"\b(?:{alternation})(?:s|es)?\b")


# ────────────────────────────────────────────────────────────
#  Rule tables
# ────────────────────────────────────────────────────────────

# Ordered by tie-break preference: an equal score resolves to the earlier row.
# Each row: (type, ((pattern, weight), ...))
TYPE_RULES: Tuple[Tuple[QuestionType, Tuple[Tuple[Pattern[str], float], ...]], ...] = (
    (QuestionType.IDEATION, (
        (_rx(r"\b(idea|concept|innovation|create|build|develop|design|launch|new product)\b"), 1.0),
        (_rx(r"\b(brainstorm|ideate|conceptualize|prototype|mvp|minimum viable)\b"), 1.0),
        (_rx(r"\b(market opportunity|product opportunity|business idea)\b"), 1.0),
        (_rx(r"\b(what if|how about|could we|should we create)\b"), 1.0),
        (_rx(r"\b(idea|create|build|new product|innovation)\b"), 0.5),
    )),
    (QuestionType.STRATEGY, (
        (_rx(r"\b(strategy|strategic|plan|planning|roadmap|vision|mission)\b"), 1.0),
        (_rx(r"\b(competitive|market|business model|revenue|growth|scale)\b"), 1.0),
        (_rx(r"\b(positioning|differentiation|value proposition|go-to-market)\b"), 1.0),
        (_rx(r"\b(long.term|short.term|quarterly|annual|strategic planning)\b"), 1.0),
        (_rx(r"\b(approach|methodology|framework)\b"), 1.0),
        (_rx(r"\b(competitor|competition|market position|market share)\b"), 1.0),
        (_rx(r"\b(strategy|strategic|go-to-market|positioning)\b"), 0.5),
    )),
    (QuestionType.TECHNICAL, (
        (_rx(r"\b(technical|technology|architecture|system|platform|infrastructure)\b"), 1.0),
        (_rx(r"\b(api|database|server|cloud|security|performance|scalability)\b"), 1.0),
        (_rx(r"\b(code|programming|development|engineering|implementation|implement)\b"), 1.0),
        (_rx(r"\b(integration|deployment|testing|debugging|optimization)\b"), 1.0),
        (_rx(r"\b(technical|architecture|system|implementation)\b"), 0.5),
    )),
    (QuestionType.CLINICAL, (
        (_rx(r"\b(clinical|medical|patient|treatment|diagnosis|therapeutic)\b"), 1.0),
        (_rx(r"\b(protocol|trial|efficacy|phase (?:i|ii|iii|iv|1|2|3|4))\b"), 1.0),
    )),
    (QuestionType.EDUCATIONAL, (
        (_rx(r"\b(educational|learning|teaching|curriculum|instruction)\b"), 1.0),
        (_rx(r"\b(assessment|pedagogy|academic|training|classroom)\b"), 1.0),
    )),
    (QuestionType.REMEDIAL, (
        (_rx(r"\b(remedial|remedy|remedies|alternative|natural|holistic|wellness)\b"), 1.0),
        (_rx(r"\b(prevention|lifestyle|nutrition|supplement|traditional|herbal)\b"), 1.0),
    )),
    (QuestionType.GENERAL, (
        (_rx(r"\b(help|advice|guidance|recommendation|suggestion|opinion)\b"), 1.0),
        (_rx(r"\b(best practice|industry standard|benchmark|comparison)\b"), 1.0),
        (_rx(r"\b(process|workflow)\b"), 1.0),
    )),
)

# Priority-ordered: wellness, then clinical, then education, then product.
# For questions without a domain hint the first row with any match wins.
DOMAIN_RULES: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("remediboard", _words(
        "natural", "herbal", "herb", "holistic", "wellness", "traditional", "remedy", "remedies",
        "diabetic", "diabetes", "nutrition", "diet", "food", "millet", "rice", "health",
        "supplement", "acupuncture", "naturopathic", "homeopathic", "organic", "detox", "healing",
    )),
    ("cliniboard", _words(
        "clinical", "trial", "fda", "drug", "medical", "patient", "treatment", "therapy",
        "medication", "diagnosis", "symptom", "disease", "healthcare", "regulatory", "efficacy",
        "pharmacovigilance", "protocol",
    )),
    ("eduboard", _words(
        "education", "curriculum", "student", "learning", "teaching", "school", "teacher",
        "course", "pedagogy", "classroom", "elearning", "academic", "university",
    )),
    ("productboard", _words(
        "product", "feature", "user", "design", "development", "growth", "roadmap", "launch",
        "mvp", "prototype", "customer", "market", "pricing", "monetization", "business", "startup",
    )),
)

# Flat vocabularies used for keyword weighting
DOMAIN_VOCABULARY: Dict[str, Tuple[str, ...]] = {
    "productboard": (
        "product", "feature", "roadmap", "user", "market", "launch", "mvp", "prototype",
        "customer", "feedback", "analytics", "metrics", "kpi", "growth", "monetization",
        "pricing", "competition", "positioning", "brand", "marketing", "sales",
    ),
    "cliniboard": (
        "clinical", "trial", "patient", "treatment", "therapy", "drug", "medication",
        "diagnosis", "symptom", "disease", "medical", "healthcare", "regulatory",
        "fda", "approval", "safety", "efficacy", "protocol", "research", "study",
    ),
    "eduboard": (
        "education", "learning", "curriculum", "student", "teacher", "course",
        "assessment", "pedagogy", "instruction", "classroom", "online", "elearning",
        "training", "skill", "knowledge", "academic", "university", "school",
    ),
    "remediboard": (
        "natural", "holistic", "alternative", "herbal", "supplement", "wellness",
        "nutrition", "lifestyle", "prevention", "traditional", "chinese", "medicine",
        "acupuncture", "naturopathic", "homeopathic", "organic", "detox", "healing",
        "diabetic", "diabetes", "millet", "rice", "diet",
    ),
}

TYPE_VOCABULARY: Tuple[str, ...] = (
    "idea", "concept", "innovation", "create", "develop", "design", "build", "new",
    "novel", "unique", "brainstorm", "ideate", "invent",
    "strategy", "plan", "approach", "framework", "methodology", "roadmap",
    "direction", "goal", "objective", "vision", "mission", "competitive",
    "technical", "implementation", "architecture", "system", "technology",
    "code", "software", "hardware", "integration", "api", "database",
    "help", "advice", "guidance", "recommendation", "suggestion", "opinion",
    "thoughts", "perspective", "insight", "experience",
)

STOP_WORDS = frozenset((
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do",
    "does", "did", "will", "would", "could", "should", "may", "might", "must", "can",
    "this", "that", "these", "those", "i", "you", "he", "she", "it", "we", "they", "me",
    "him", "her", "us", "them", "my", "your", "his", "its", "our", "their", "what",
    "which", "who", "when", "where", "why", "how", "all", "any", "both", "each", "few",
    "more", "most", "other", "some", "such", "no", "nor", "not", "only", "own", "same",
    "so", "than", "too", "very", "just", "from", "into", "about", "also", "there", "then",
    "like", "want", "need", "make", "best", "good", "better",
))

URGENCY_INDICATORS: Tuple[str, ...] = (
    "urgent", "asap", "immediately", "quickly", "fast", "emergency", "critical",
    "deadline", "time-sensitive", "rush", "priority", "right now",
)

COMPLEXITY_HIGH: Tuple[str, ...] = (
    "complex", "complicated", "sophisticated", "advanced", "comprehensive",
    "detailed", "in-depth", "thorough", "extensive", "multi-faceted",
)
COMPLEXITY_LOW: Tuple[str, ...] = (
    "simple", "basic", "easy", "straightforward", "quick", "brief",
    "overview", "summary", "introduction", "beginner",
)

POSITIVE_WORDS: Tuple[str, ...] = (
    "good", "great", "excellent", "amazing", "wonderful", "fantastic",
    "love", "like", "enjoy", "excited", "optimistic", "confident",
)
NEGATIVE_WORDS: Tuple[str, ...] = (
    "bad", "terrible", "awful", "hate", "dislike", "frustrated",
    "disappointed", "problem", "issue", "challenge", "failing", "broken",
)
CONCERN_WORDS: Tuple[str, ...] = (
    "worried", "concerned", "anxious", "afraid", "scared", "unsure", "risk", "risky",
)

FOLLOW_UP_INDICATORS: Tuple[str, ...] = (
    "also", "additionally", "furthermore", "moreover", "building on",
    "following up", "related to", "in addition", "another question",
    "what about", "how about", "can you also",
)

MAX_KEYWORDS = 10
MAX_CONFIDENCE = 0.95
MIN_CONFIDENCE = 0.05


def normalize_question(text: Optional[str]) -> str:
    """Case-fold, trim and collapse whitespace; used for analysis and cache keys."""
    if not text:
        return ""
    return " ".join(str(text).split()).casefold()


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


class QuestionAnalyzer:
    """Pure, stateless question classifier; safe to share across concurrent requests."""

    def __init__(
        self,
        type_rules: Sequence = TYPE_RULES,
        domain_rules: Sequence = DOMAIN_RULES,
    ):
        self.type_rules = tuple(type_rules)
        self.domain_rules = tuple(domain_rules)

    def analyze(self, question: Optional[str], domain_hint: Optional[str] = None) -> QuestionAnalysis:
        """Classify ``question``; returns a safe default instead of raising."""
        try:
            return self._analyze(question or "", domain_hint)
        except Exception as e:
            logger.warning(
                "Question analysis failed, using safe default",
                stage="analysis",
                error=str(e),
                error_type=type(e).__name__,
            )
            return QuestionAnalysis.safe_default(domain_hint)

    def _analyze(self, question: str, domain_hint: Optional[str]) -> QuestionAnalysis:
        text = normalize_question(question)
        tokens = self._tokenize(text)

        qtype, type_score = self._categorize(text)
        matched = self._matched_domains(text)
        domain = self._identify_domain(matched, domain_hint)
        keywords = self._extract_keywords(tokens)
        confidence = self._confidence(keywords, bool(matched) or bool(domain_hint), qtype)

        analysis = QuestionAnalysis(
            type=qtype,
            domain=domain,
            keywords=keywords,
            confidence=confidence,
            complexity=self._score_complexity(question, text),
            sentiment=self._score_sentiment(tokens),
            urgency=self._score_urgency(question),
            follow_up_indicators=self._detect_follow_up(text),
            matched_domains=matched,
            domain_hint=domain_hint,
        )
        logger.debug(
            "Question analyzed",
            stage="analysis",
            question_length=len(question),
            question_preview="[redacted]",
            type=qtype.value,
            type_score=type_score,
            domain=domain,
            confidence=confidence,
        )
        return analysis

    # ---------------------- feature extraction ----------------------

    def _tokenize(self, text: str) -> List[str]:
        text = re.sub(r"[^\w\s-]", " ", text.lower())
        return [t for t in text.split() if t]

    def _categorize(self, text: str) -> Tuple[QuestionType, float]:
        """Highest-scoring type family; ties keep the earlier table row."""
        if not text:
            return QuestionType.GENERAL, 0.0
        best_type, best_score = QuestionType.GENERAL, 0.0
        for qtype, rules in self.type_rules:
            score = sum(weight for pattern, weight in rules if pattern.search(text))
            if score > best_score:
                best_type, best_score = qtype, score
        return best_type, best_score

    def _matched_domains(self, text: str) -> List[str]:
        return [domain for domain, pattern in self.domain_rules if pattern.search(text)]

    def _identify_domain(self, matched: List[str], domain_hint: Optional[str]) -> str:
        if domain_hint:
            return domain_hint
        return matched[0] if matched else GENERAL_DOMAIN

    def _extract_keywords(self, tokens: List[str]) -> List[str]:
        """Weighted keywords: board vocabulary 2.0, type vocabulary 1.5, other words 1.0."""
        domain_words = {w for words in DOMAIN_VOCABULARY.values() for w in words}
        type_words = set(TYPE_VOCABULARY)
        weighted: Dict[str, float] = {}
        for token in tokens:
            if token in STOP_WORDS or token in weighted:
                continue
            if token in domain_words:
                weighted[token] = 2.0
            elif token in type_words:
                weighted[token] = 1.5
            elif len(token) > 3 and not token.isdigit():
                weighted[token] = 1.0
        # sorted() is stable, so equal weights keep question order
        ranked = sorted(weighted.items(), key=lambda kv: kv[1], reverse=True)
        return [word for word, _ in ranked[:MAX_KEYWORDS]]

    def _confidence(self, keywords: List[str], has_domain: bool, qtype: QuestionType) -> float:
        confidence = 0.3
        confidence += min(len(keywords) * 0.08, 0.25)
        if has_domain:
            confidence += 0.2
        if qtype != QuestionType.GENERAL:
            confidence += 0.2
        return round(max(MIN_CONFIDENCE, min(confidence, MAX_CONFIDENCE)), 4)

    def _score_complexity(self, raw: str, text: str) -> Complexity:
        score = 0
        score += 2 * sum(1 for w in COMPLEXITY_HIGH if _contains_phrase(text, w))
        score -= sum(1 for w in COMPLEXITY_LOW if _contains_phrase(text, w))

        length = len(raw.strip())
        if length > 300:
            score += 2
        elif length > 150:
            score += 1
        if length < 30:
            score -= 1

        if raw.count("?") > 1:
            score += 1

        if score >= 2:
            return Complexity.HIGH
        if score <= -1:
            return Complexity.LOW
        return Complexity.MEDIUM

    def _score_urgency(self, raw: str) -> Urgency:
        lowered = raw.lower()
        score = 2 * sum(1 for w in URGENCY_INDICATORS if _contains_phrase(lowered, w))
        score += raw.count("!")
        # Shouting counts, well-known acronyms do not
        caps = [w for w in re.findall(r"\b[A-Z]{2,}\b", raw) if w not in {"FDA", "MVP", "API", "KPI", "TCM", "AI"}]
        score += len(caps)
        if score >= 2:
            return Urgency.HIGH
        if score >= 1:
            return Urgency.MEDIUM
        return Urgency.LOW

    def _score_sentiment(self, tokens: List[str]) -> Sentiment:
        token_set = set(tokens)
        positive = sum(1 for w in POSITIVE_WORDS if w in token_set)
        negative = sum(1 for w in NEGATIVE_WORDS if w in token_set)
        concern = sum(1 for w in CONCERN_WORDS if w in token_set)
        if concern and concern + negative >= positive:
            return Sentiment.CONCERNED
        if positive > negative:
            return Sentiment.POSITIVE
        if negative > positive:
            return Sentiment.NEGATIVE
        return Sentiment.NEUTRAL

    def _detect_follow_up(self, text: str) -> List[str]:
        return [p for p in FOLLOW_UP_INDICATORS if _contains_phrase(text, p)]


question_analyzer = QuestionAnalyzer()
