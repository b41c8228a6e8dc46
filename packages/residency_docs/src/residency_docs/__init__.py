"""
SSW Residency Documents

Client library and operator CLI for managing Specified Skilled Worker
(特定技能) residency documents against a hosted backend or a local stub.
"""

__version__ = "0.1.0"
