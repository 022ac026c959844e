from folio_navigation.models.evidence import AgentState, EvidenceItem

__all__ = ["AgentState", "EvidenceItem"]
