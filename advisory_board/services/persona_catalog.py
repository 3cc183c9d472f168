"""
Persona Catalog
Read-only lookup over the curated persona table.
"""

from typing import Any, Dict, List, Mapping, Optional

import structlog

from advisory_board.models.personas import (
    PERSONA_ROLE_MAPPING,
    PERSONA_TABLE,
    PersonaDescriptor,
)

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("name", "role", "domain", "system_prompt", "background", "tone")
REQUIRED_SEQUENCES = ("expertise", "frameworks")


class PersonaCatalog:
    """Advisor id -> PersonaDescriptor.

    A missing id is a normal outcome: many advisors have no curated persona
    and are answered from their caller-supplied profile instead.
    """

    def __init__(
        self,
        table: Optional[Mapping[str, PersonaDescriptor]] = None,
        role_mapping: Optional[Mapping[str, Any]] = None,
    ):
        self._table = PERSONA_TABLE if table is None else table
        self._role_mapping = PERSONA_ROLE_MAPPING if role_mapping is None else role_mapping

    def get(self, advisor_id: Optional[str]) -> Optional[PersonaDescriptor]:
        if not advisor_id:
            return None
        return self._table.get(advisor_id)

    def __contains__(self, advisor_id: object) -> bool:
        return advisor_id in self._table

    def __len__(self) -> int:
        return len(self._table)

    def ids(self) -> List[str]:
        return list(self._table)

    def list_by_domain(self, domain: str) -> List[PersonaDescriptor]:
        return [p for p in self._table.values() if p.domain == domain]

    def by_role(self, role_type: str) -> Optional[PersonaDescriptor]:
        """First curated persona for a role family (e.g. ``regulatory_affairs``)."""
        for pid in self._role_mapping.get(role_type, ()):
            persona = self._table.get(pid)
            if persona is not None:
                return persona
        return None

    def validation_errors(self, advisor_id: str) -> List[str]:
        persona = self.get(advisor_id)
        if persona is None:
            return ["persona not found"]

        errors: List[str] = []
        for name in REQUIRED_FIELDS:
            value = getattr(persona, name, "")
            if not isinstance(value, str) or not value.strip():
                errors.append(f"missing {name}")
        for name in REQUIRED_SEQUENCES:
            values = getattr(persona, name, ()) or ()
            if not any(isinstance(v, str) and v.strip() for v in values):
                errors.append(f"missing {name}")
        general = (persona.templates or {}).get("general", "")
        if not general or not general.strip():
            errors.append("missing general template")
        return errors

    def validate(self, advisor_id: str) -> bool:
        errors = self.validation_errors(advisor_id)
        if errors:
            logger.debug(
                "Persona failed validation",
                stage="persona",
                advisor_id=advisor_id,
                errors=errors,
            )
        return not errors

    def stats(self) -> Dict[str, Any]:
        by_domain: Dict[str, int] = {}
        for persona in self._table.values():
            by_domain[persona.domain] = by_domain.get(persona.domain, 0) + 1
        return {
            "total": len(self._table),
            "by_domain": by_domain,
            "invalid": [pid for pid in self._table if self.validation_errors(pid)],
        }


persona_catalog = PersonaCatalog()
