"""
Prompt Builder
Assembles the model prompt for one advisor from its persona, the question
and the shared analysis, with optional cross-board lane rules.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import structlog

from advisory_board.models.analysis import QuestionAnalysis
from advisory_board.models.personas import PersonaDescriptor
from advisory_board.models.responses import AdvisorProfile

logger = structlog.get_logger(__name__)

DEFAULT_QUESTION = "Please provide general guidance."

LANE_LABELS = {
    "productboard": "Product",
    "cliniboard": "Clinical",
    "remediboard": "Wellness",
    "eduboard": "Education",
}
DEFAULT_LANE = "Advisory"

BOARD_LENSES = {
    "productboard": (
        "Domain: Product strategy & execution.\n"
        "Focus: ICP, wedge, pricing, activation, analytics events, rollout, risk flags."
    ),
    "cliniboard": (
        "Domain: Clinical research & regulatory.\n"
        "Focus: safety, endpoints, protocols, audit trails, risk controls."
    ),
    "remediboard": (
        "Domain: Holistic wellness & integrative care.\n"
        "Focus: lifestyle basics, evidence tiers, safety disclaimers, non-diagnostic guidance."
    ),
    "eduboard": (
        "Domain: Learning design & pedagogy.\n"
        "Focus: learning objectives, scaffolding, assessment, accessibility, motivation loops."
    ),
}
DEFAULT_BOARD_LENS = (
    "Domain: Cross-functional advisory.\n"
    "Focus: clear steps, measurable results, safety and ethics."
)

SENIORITY_LENSES = {
    "executive": (
        "Seniority: Executive.\n"
        "Style: verdict-first, budgets and risks, external narrative, 12-word bullets."
    ),
    "senior": (
        "Seniority: Lead/Senior.\n"
        "Style: scope and roadmap, acceptance criteria, dependencies, 12-word bullets."
    ),
    "practitioner": (
        "Seniority: Practitioner.\n"
        "Style: concrete steps, checklists, gotchas, 12-word bullets."
    ),
}

DOMAIN_RISKS = {
    "cliniboard": "regulatory compliance issues, patient safety concerns, and submission delays",
    "productboard": "market timing issues, technical scalability challenges, and user adoption barriers",
    "eduboard": "learning outcome gaps, technology adoption challenges, and engagement issues",
    "remediboard": "safety contraindications, regulatory compliance, and evidence validation",
}
DEFAULT_RISKS = "implementation challenges and stakeholder alignment issues"

# Boards whose answers must carry a medical disclaimer
DISCLAIMER_BOARDS = frozenset({"cliniboard", "remediboard"})
MEDICAL_DISCLAIMER = "Educational guidance only; not medical advice."

BANNED_PHRASES: Tuple[str, ...] = (
    "coordinate with teams",
    "define objectives",
    "establish metrics",
    "develop a solid go-to-market strategy",
    "based on my expertise",
)

SHARED_FORMAT = """Format rules:
- Use markdown headings for each section.
- Lead with a one-line **Verdict:**.
- Keep bullets concise (12 words or fewer); no sub-bullets.
- Be specific and concrete; no filler."""


def lane_label(board_id: Optional[str]) -> str:
    return LANE_LABELS.get(board_id or "", DEFAULT_LANE)


def guess_seniority(role: Optional[str]) -> str:
    r = (role or "").lower()
    if any(word in r for word in ("chief", "vp", "head", "director", "cpo", "cto", "ceo")):
        return "executive"
    if any(word in r for word in ("lead", "principal", "senior", "manager")):
        return "senior"
    return "practitioner"


@dataclass(frozen=True)
class DomainPolicy:
    """Cross-board coordination context for one advisor."""

    active_boards: Tuple[str, ...]
    board: str
    complementary: Tuple[str, ...] = ()

    @classmethod
    def for_batch(cls, active_boards: Sequence[str], board: str) -> "DomainPolicy":
        boards = tuple(dict.fromkeys(b for b in active_boards if b))
        return cls(
            active_boards=boards,
            board=board,
            complementary=tuple(b for b in boards if b != board),
        )

    @property
    def is_multi_board(self) -> bool:
        return len(self.active_boards) > 1


Advisor = Union[PersonaDescriptor, AdvisorProfile]


def _text(value: Optional[str], default: str) -> str:
    if value is None:
        return default
    value = str(value).strip()
    return value or default


class PromptBuilder:
    """Deterministic prompt assembly; never raises on empty inputs."""

    def build(
        self,
        persona: Optional[PersonaDescriptor],
        question: Optional[str],
        analysis: QuestionAnalysis,
        domain_policy: Optional[DomainPolicy] = None,
        profile: Optional[AdvisorProfile] = None,
    ) -> str:
        safe_question = _text(question, DEFAULT_QUESTION)

        if persona is not None:
            prompt = self._persona_prompt(persona, safe_question, analysis)
            role = persona.role
        elif profile is not None:
            prompt = self._profile_prompt(profile, safe_question)
            role = profile.role
        else:
            prompt = self._generic_prompt(safe_question, analysis)
            role = ""

        if domain_policy is not None:
            prompt = prompt + "\n\n" + self._coordination_section(domain_policy, role)

        logger.debug(
            "Prompt built",
            stage="prompt",
            persona=persona.id if persona else None,
            question_type=analysis.type.value,
            multi_board=bool(domain_policy and domain_policy.is_multi_board),
            prompt_length=len(prompt),
        )
        return prompt

    # ---------------------- prompt variants ----------------------

    def _persona_prompt(
        self,
        persona: PersonaDescriptor,
        question: str,
        analysis: QuestionAnalysis,
    ) -> str:
        template = persona.template_for(analysis.type.value)
        sections = [
            _text(persona.system_prompt, f"You are {_text(persona.name, 'an advisor')}."),
            f"ROLE CONTEXT: {_text(persona.background, 'Experienced professional advisor.')}",
            f"EXPERTISE AREAS: {', '.join(persona.expertise) or 'General advisory'}",
            f"RESPONSE STYLE: {_text(persona.tone, 'Professional and practical.')}",
            f"FRAMEWORKS TO REFERENCE: {', '.join(persona.frameworks) or 'Industry best practices'}",
            f'USER QUESTION: "{question}"',
        ]
        if template:
            sections.append(f"RESPONSE TEMPLATE: {template}")
        sections.append(
            f"KEY RISKS TO ADDRESS: {DOMAIN_RISKS.get(persona.domain, DEFAULT_RISKS)}"
        )
        sections.append(
            "Please provide a detailed, expert-level response that reflects your unique "
            "background and expertise. Use specific examples from your experience and "
            "reference relevant frameworks. Ensure your response demonstrates the depth "
            "of knowledge and perspective that someone in your position would have."
        )
        return "\n\n".join(sections)

    def _profile_prompt(self, profile: AdvisorProfile, question: str) -> str:
        """Prompt from caller-supplied fields only; no credentials are invented."""
        name = _text(profile.name, "an advisor")
        role = _text(profile.role, "professional advisor")
        specialties = ", ".join(s for s in profile.specialties if s and s.strip()) or "general advisory"

        lines = [f"You are {name}, a {role} with expertise in {specialties}."]
        if profile.background and profile.background.strip():
            lines.append(f"Background: {profile.background.strip()}")
        if profile.credentials and profile.credentials.strip():
            lines.append(f"Credentials: {profile.credentials.strip()}")
        lines.append("")
        lines.append(f'Please provide a professional response to this question: "{question}"')
        lines.append("")
        lines.append(
            "Draw upon your expertise and provide practical, actionable advice. Be specific "
            "and reference relevant frameworks or best practices where appropriate."
        )
        return "\n".join(lines)

    def _generic_prompt(self, question: str, analysis: QuestionAnalysis) -> str:
        return "\n\n".join([
            "You are a professional business advisor with broad expertise across multiple domains.",
            "ROLE CONTEXT: Provide well-reasoned, practical advice based on best practices.",
            "EXPERTISE AREAS: Strategy, Operations, Problem Solving",
            "RESPONSE STYLE: Professional, clear, and actionable",
            "FRAMEWORKS TO REFERENCE: Industry best practices, Strategic frameworks",
            f'USER QUESTION: "{question}"',
            f"QUESTION FOCUS: {analysis.type.value.replace('_', ' ')}",
        ])

    # ---------------------- coordination ----------------------

    def _coordination_section(self, policy: DomainPolicy, role: Optional[str]) -> str:
        own_lane = lane_label(policy.board)
        parts: List[str] = [
            BOARD_LENSES.get(policy.board, DEFAULT_BOARD_LENS),
            SENIORITY_LENSES[guess_seniority(role)],
        ]

        if policy.is_multi_board:
            lanes = " • ".join(lane_label(b) for b in policy.active_boards)
            parts.append(f"Coordinating: {lanes}")
            rules = [
                f"Stay in your lane: answer only from the {own_lane} perspective.",
                "If part of the question belongs to another board, say so briefly and decline it.",
                "Do not give advice outside your board's scope.",
            ]
            if policy.complementary:
                others = ", ".join(lane_label(b) for b in policy.complementary)
                rules.append(f"Complementary perspectives come from: {others}.")
            parts.append("Lane rules:\n" + "\n".join(f"- {r}" for r in rules))

        if policy.board in DISCLAIMER_BOARDS:
            parts.append(f"Include this disclaimer: *{MEDICAL_DISCLAIMER}*")

        parts.append(SHARED_FORMAT)
        parts.append(
            "Do NOT use these phrases: " + ", ".join(f'"{p}"' for p in BANNED_PHRASES) + "."
        )
        return "\n\n".join(parts)


prompt_builder = PromptBuilder()
