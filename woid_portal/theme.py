# woid_portal/theme.py
# Header colours per environment: orange against the production backend, purple elsewhere.

from dataclasses import dataclass


@dataclass(frozen=True)
class ThemeColors:
    primary: str
    primary_dark: str
    primary_light: str


DEV_COLORS = ThemeColors(primary="#8B5CF6", primary_dark="#7C3AED", primary_light="#A78BFA")
PROD_COLORS = ThemeColors(primary="#FF6700", primary_dark="#E55D00", primary_light="#FFAB7D")


def is_production(backend: str, production_marker: str) -> bool:
    """The production deployment is recognised by a marker in its server or database name."""
    return bool(production_marker) and production_marker in (backend or "")


def environment_name(backend: str, production_marker: str) -> str:
    return "production" if is_production(backend, production_marker) else "development"


def environment_colors(backend: str, production_marker: str) -> ThemeColors:
    return PROD_COLORS if is_production(backend, production_marker) else DEV_COLORS
