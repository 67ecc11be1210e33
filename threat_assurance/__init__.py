"""
Threat Assurance - risk and compliance scoring for threat-modelled projects.

Resolves threat chains across stages, checks linked security controls against
actor-driven mitigation requirements, and tracks NCSC CAF questionnaire
compliance under the Gov Assure profiles.
"""

__version__ = "1.0.0"
