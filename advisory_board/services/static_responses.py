"""
Static Response Generator
Deterministic, persona-flavoured answers produced without calling a model.

Three tiers, tried in order:
1. a hand-authored topic paragraph when the board's keyword triggers match
2. a persona-styled answer built from the curated persona's template
3. a generic professional answer built from the caller-supplied profile
"""

import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Tuple, Union

import structlog

from advisory_board.models.analysis import GENERAL_DOMAIN, QuestionAnalysis, QuestionType
from advisory_board.models.personas import PersonaDescriptor
from advisory_board.models.responses import (
    AdvisorProfile,
    PersonaSnapshot,
    ResponseMetadata,
    ResponseType,
)
from advisory_board.services.persona_catalog import PersonaCatalog, persona_catalog
from advisory_board.services.prompt_builder import DISCLAIMER_BOARDS, MEDICAL_DISCLAIMER
from advisory_board.services.question_analyzer import QuestionAnalyzer, question_analyzer

logger = structlog.get_logger(__name__)

MIN_CONTENT_LENGTH = 50

PROFESSIONAL_FRAMEWORKS: Dict[str, Dict[str, List[str]]] = {
    "productboard": {
        "product_ideation": ["Jobs-to-be-Done Framework", "Design Thinking", "Lean Startup Methodology"],
        "strategy": ["North Star Framework", "OKRs", "Product-Market Fit Canvas", "Platform Strategy Canvas"],
        "technical": ["System Design Principles", "API Design Best Practices", "Scalability Patterns"],
        "general": ["Product Management Framework", "User-Centered Design", "Agile Methodology"],
    },
    "cliniboard": {
        "product_ideation": ["Target Product Profile", "Regulatory Strategy Framework", "Clinical Development Plan"],
        "strategy": ["Clinical Development Plan", "Drug Development Lifecycle", "Regulatory Pathway Planning"],
        "technical": ["ICH Guidelines", "FDA Guidance Documents", "Clinical Data Standards"],
        "general": ["Clinical Research Best Practices", "Regulatory Compliance Framework", "Patient Safety Protocols"],
    },
    "eduboard": {
        "product_ideation": ["Learning Experience Design", "Educational Technology Framework", "Backward Design"],
        "strategy": ["Backward Design", "Curriculum Mapping", "Learning Analytics Strategy"],
        "technical": ["Learning Management Systems", "Educational AI Architecture", "Adaptive Learning Technology"],
        "general": ["Bloom's Taxonomy", "Competency-Based Learning", "Pedagogical Best Practices"],
    },
    "remediboard": {
        "product_ideation": ["Integrative Medicine Model", "Holistic Health Framework", "Natural Healing Protocols"],
        "strategy": ["Integrative Medicine Model", "Wellness Program Design", "Integrative Care Strategy"],
        "technical": ["Traditional Medicine Principles", "Evidence-Based Natural Therapies", "Mind-Body Integration"],
        "general": ["Integrative Medicine Model", "Holistic Assessment Framework", "Patient-Centered Care"],
    },
}

INSIGHTS: Dict[str, str] = {
    "product_ideation": (
        "**Key Insights for Product Ideation:**\n"
        "• Focus on user problems and market validation\n"
        "• Consider scalability and technical feasibility early\n"
        "• Validate assumptions through rapid prototyping\n"
        "• Align with business objectives and success metrics"
    ),
    "strategy": (
        "**Strategic Considerations:**\n"
        "• Analyze competitive landscape and market positioning\n"
        "• Define clear success metrics and KPIs\n"
        "• Consider resource allocation and timeline constraints\n"
        "• Plan for risk mitigation and contingency scenarios"
    ),
    "technical": (
        "**Technical Implementation Insights:**\n"
        "• Prioritize scalability and maintainability\n"
        "• Consider security and compliance requirements\n"
        "• Plan for monitoring and observability\n"
        "• Design for failure and recovery scenarios"
    ),
    "general": (
        "**Professional Insights:**\n"
        "• Apply industry best practices and proven methodologies\n"
        "• Consider stakeholder impact and change management\n"
        "• Focus on measurable outcomes and continuous improvement\n"
        "• Balance short-term needs with long-term vision"
    ),
}

STEPS: Dict[str, Tuple[str, ...]] = {
    "product_ideation": (
        "1. **Discovery Phase:** Research user needs and market opportunities",
        "2. **Ideation Phase:** Generate and validate concepts through prototyping",
        "3. **Development Phase:** Build MVP with user feedback integration",
        "4. **Launch Phase:** Execute go-to-market strategy with success metrics",
    ),
    "strategy": (
        "1. **Analysis Phase:** Conduct thorough market and competitive analysis",
        "2. **Strategy Phase:** Define vision, objectives, and strategic initiatives",
        "3. **Implementation Phase:** Execute with clear accountability and milestones",
        "4. **Review Phase:** Monitor progress and adjust strategy as needed",
    ),
    "technical": (
        "1. **Requirements Phase:** Define technical specifications and constraints",
        "2. **Design Phase:** Create architecture and implementation plan",
        "3. **Development Phase:** Build with testing and quality assurance",
        "4. **Deployment Phase:** Launch with monitoring and support systems",
    ),
    "general": (
        "1. **Assessment Phase:** Analyze current state and define clear objectives",
        "2. **Planning Phase:** Develop detailed strategy with timeline and resources",
        "3. **Execution Phase:** Implement with regular checkpoints and feedback loops",
        "4. **Evaluation Phase:** Measure results and iterate based on learnings",
    ),
}

# ────────────────────────────────────────────────────────────
#  Topic paragraphs (tier 1)
# ────────────────────────────────────────────────────────────

_MILLET_VS_RICE = """For diabetic patients, **millets are generally the better choice** compared to rice. Here's my professional assessment:

**Millets (Recommended):**
- Lower glycemic index (35-55) vs white rice (70+)
- Higher fiber content helps slow glucose absorption
- Rich in magnesium, which supports insulin sensitivity
- Contains complex carbohydrates for sustained energy

**Rice Considerations:**
- Brown rice is better than white rice (GI ~50 vs 70+)
- Portion control is crucial with any rice variety
- Basmati rice has a lower GI than other white rice varieties

**My Naturopathic Recommendation:**
Start with small portions of millets (finger millet, pearl millet, or foxtail millet) and monitor blood glucose response. Combine with protein and healthy fats to further stabilize blood sugar. Consider soaking millets overnight for better digestibility.

**Important:** Always consult with your healthcare provider before making significant dietary changes, especially if you're on diabetes medications."""

_TRADITIONAL_REMEDIES = """From a traditional medicine perspective, I focus on addressing root causes while supporting the body's natural healing mechanisms. I recommend a holistic approach that considers constitutional factors, lifestyle patterns, and individual sensitivities.

Key principles I follow: **Safety first** - ensuring no contraindications with existing medications, **Individualized treatment** - what works for one person may not work for another, and **Gradual implementation** - allowing the body to adapt naturally.

I'd need more specific information about your health goals and current situation to provide targeted recommendations."""

_CLINICAL_TRIALS = """From a clinical research perspective, this requires careful consideration of regulatory requirements, patient safety protocols, and statistical design. The key is ensuring we maintain scientific rigor while meeting FDA expectations for this type of study.

For a Phase III trial I recommend focusing on: **Primary endpoint selection** that aligns with regulatory guidance, **Patient population definition** that ensures adequate power and generalizability, and **Safety monitoring** with appropriate stopping rules.

The regulatory pathway should be discussed early with FDA through pre-IND or Type B meetings to ensure alignment on study design and endpoints."""

_LEARNING_DESIGN = """From an educational design perspective, this requires understanding learning objectives, student engagement strategies, and assessment methods. We should focus on evidence-based pedagogical approaches that promote inclusive learning and measurable outcomes.

Key considerations include: **Backward design** starting with desired outcomes, **Multiple learning modalities** to accommodate diverse learners, and **Continuous assessment** to ensure learning is actually occurring."""

_PRODUCT_DISCOVERY = """From a product development perspective, this requires understanding user needs, technical feasibility, and business impact. We should prioritize solutions that create measurable value for users while supporting business objectives.

I recommend starting with: **User research** to validate the problem, **Technical discovery** to understand constraints, and **Success metrics** to measure impact post-launch."""


def _any(*words: str) -> Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(words) + r")", re.IGNORECASE)


# (board, required trigger groups, paragraph); first row whose groups all match wins
TOPIC_RULES: Tuple[Tuple[str, Tuple[Pattern[str], ...], str], ...] = (
    ("remediboard", (_any("diabetic", "diabetes"), _any("millet", "rice")), _MILLET_VS_RICE),
    ("remediboard", (_any("herb", "natural", "remed"),), _TRADITIONAL_REMEDIES),
    ("cliniboard", (_any("trial", "study", "studies"),), _CLINICAL_TRIALS),
    ("eduboard", (_any("curriculum", "learning"),), _LEARNING_DESIGN),
    ("productboard", (_any("feature", "user"),), _PRODUCT_DISCOVERY),
)

AdvisorLike = Union[PersonaDescriptor, AdvisorProfile, str]


@dataclass
class StaticResult:
    content: str
    metadata: ResponseMetadata
    persona: PersonaSnapshot
    tier: str = "generic"
    analysis: Optional[QuestionAnalysis] = field(default=None, repr=False)


def frameworks_for(domain_id: Optional[str], question_type: str) -> List[str]:
    by_type = PROFESSIONAL_FRAMEWORKS.get(domain_id or "")
    if not by_type:
        return []
    return list(by_type.get(question_type) or by_type.get("general", []))


def _core_type(qtype: QuestionType) -> str:
    """Board-specific types share the general insight and step sets."""
    return qtype.value if qtype.value in INSIGHTS else "general"


class StaticResponseGenerator:
    def __init__(
        self,
        catalog: Optional[PersonaCatalog] = None,
        analyzer: Optional[QuestionAnalyzer] = None,
    ):
        self.catalog = catalog or persona_catalog
        self.analyzer = analyzer or question_analyzer

    def generate(
        self,
        advisor: AdvisorLike,
        question: Optional[str],
        domain_id: Optional[str],
        analysis: Optional[QuestionAnalysis] = None,
    ) -> StaticResult:
        """Produce a static answer for ``advisor``; content is always non-empty."""
        start = time.perf_counter()
        question = question or ""
        analysis = analysis or self.analyzer.analyze(question, domain_id)

        persona, profile = self._resolve(advisor)
        board = self._board_for(domain_id, persona, profile, analysis)
        core_type = _core_type(analysis.type)

        content, tier = self._topic_paragraph(board, question, persona), "topic"
        if content is None and persona is not None:
            content, tier = self._persona_response(persona, core_type), "persona"
        if content is None:
            content, tier = self._generic_response(profile, persona, core_type), "generic"

        if board in DISCLAIMER_BOARDS and MEDICAL_DISCLAIMER not in content:
            content += f"\n\n*{MEDICAL_DISCLAIMER}*"
        if len(content.strip()) <= MIN_CONTENT_LENGTH:
            content = self._generic_response(profile, persona, core_type)
            tier = "generic"

        metadata = ResponseMetadata(
            response_type=ResponseType.STATIC,
            processing_time=max(time.perf_counter() - start, 1e-6),
            confidence=analysis.confidence,
            frameworks=frameworks_for(board, core_type),
            extras={"static_tier": tier, "question_type": analysis.type.value},
        )
        logger.debug(
            "Static response generated",
            stage="static",
            advisor_id=self._advisor_id(advisor),
            tier=tier,
            board=board,
            content_length=len(content),
        )
        return StaticResult(
            content=content,
            metadata=metadata,
            persona=self.snapshot(persona, profile),
            tier=tier,
            analysis=analysis,
        )

    # ---------------------- resolution ----------------------

    def _resolve(self, advisor: AdvisorLike) -> Tuple[Optional[PersonaDescriptor], Optional[AdvisorProfile]]:
        if isinstance(advisor, PersonaDescriptor):
            return advisor, None
        if isinstance(advisor, AdvisorProfile):
            persona = self.catalog.get(advisor.id)
            if persona is None and advisor.name:
                persona = self.catalog.get(advisor.name.lower().replace(" ", "-"))
            return persona, advisor
        advisor_id = str(advisor or "")
        return self.catalog.get(advisor_id), AdvisorProfile(id=advisor_id or "advisor")

    @staticmethod
    def _advisor_id(advisor: AdvisorLike) -> str:
        if isinstance(advisor, (PersonaDescriptor, AdvisorProfile)):
            return advisor.id
        return str(advisor)

    @staticmethod
    def _board_for(
        domain_id: Optional[str],
        persona: Optional[PersonaDescriptor],
        profile: Optional[AdvisorProfile],
        analysis: QuestionAnalysis,
    ) -> str:
        for candidate in (
            domain_id,
            persona.domain if persona else None,
            profile.domain if profile else None,
            analysis.domain,
        ):
            if candidate and candidate in PROFESSIONAL_FRAMEWORKS:
                return candidate
        return domain_id or GENERAL_DOMAIN

    @staticmethod
    def snapshot(
        persona: Optional[PersonaDescriptor],
        profile: Optional[AdvisorProfile] = None,
    ) -> PersonaSnapshot:
        if persona is not None:
            return PersonaSnapshot(
                name=persona.name,
                expertise=", ".join(persona.expertise),
                tone=persona.tone,
            )
        if profile is not None:
            return PersonaSnapshot(
                name=profile.name or profile.id,
                expertise=", ".join(profile.specialties) or profile.role,
                tone="professional",
            )
        return PersonaSnapshot(name="Advisor", expertise="", tone="professional")

    # ---------------------- tiers ----------------------

    def _topic_paragraph(
        self,
        board: str,
        question: str,
        persona: Optional[PersonaDescriptor],
    ) -> Optional[str]:
        for rule_board, triggers, paragraph in TOPIC_RULES:
            if rule_board != board:
                continue
            if all(t.search(question) for t in triggers):
                if persona is not None and persona.frameworks:
                    return paragraph + f"\n\n**Relevant Frameworks:** {' and '.join(persona.frameworks[:2])}"
                return paragraph
        return None

    def _persona_response(self, persona: PersonaDescriptor, core_type: str) -> Optional[str]:
        template = persona.template_for(core_type)
        if not template:
            return None
        parts = [
            template,
            INSIGHTS[core_type],
            "**Recommended Approach:**\n" + "\n".join(STEPS[core_type]),
        ]
        if persona.frameworks:
            parts.append(f"**Relevant Frameworks:** {' and '.join(persona.frameworks[:2])}")
        expertise = ", ".join(persona.expertise[:3]) or "my field"
        tone = (persona.tone or "professional and analytical").rstrip(".").lower()
        parts.append(f"*Drawing from my expertise in {expertise}, this approach balances {tone}.*")
        return "\n\n".join(parts)

    def _generic_response(
        self,
        profile: Optional[AdvisorProfile],
        persona: Optional[PersonaDescriptor],
        core_type: str,
    ) -> str:
        if persona is not None:
            background, expertise = persona.background, ", ".join(persona.expertise[:3])
        elif profile is not None:
            background = profile.background
            expertise = ", ".join(s for s in profile.specialties if s) or profile.role
        else:
            background, expertise = "", ""
        background = (background or "").strip().rstrip(".") or "extensive experience"
        expertise = (expertise or "").strip() or "professional expertise"

        return "\n\n".join([
            f"Based on my {background} and {expertise}, here's my perspective on your question:",
            INSIGHTS[core_type],
            "**Recommended Approach:**\n" + "\n".join(STEPS[core_type]),
            f"*This recommendation draws from {expertise} and focuses on practical, implementable solutions.*",
        ])


static_response_generator = StaticResponseGenerator()
