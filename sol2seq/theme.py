from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Theme:
    name: str
    primary_color: str
    primary_text_color: str
    primary_border_color: str
    line_color: str
    secondary_color: str
    tertiary_color: str

    def variables(self) -> Tuple[Tuple[str, str], ...]:
        """Mermaid `themeVariables` in emission order."""
        return (
            ("primaryColor", self.primary_color),
            ("primaryTextColor", self.primary_text_color),
            ("primaryBorderColor", self.primary_border_color),
            ("lineColor", self.line_color),
            ("secondaryColor", self.secondary_color),
            ("tertiaryColor", self.tertiary_color),
        )


DEFAULT_THEME = Theme(
    name="default",
    primary_color="#f5f5f5",
    primary_text_color="#333",
    primary_border_color="#999",
    line_color="#666",
    secondary_color="#f0f8ff",
    tertiary_color="#fff5f5",
)

LIGHT_THEME = Theme(
    name="light",
    primary_color="#fafbfc",
    primary_text_color="#444",
    primary_border_color="#e1e4e8",
    line_color="#a0aec0",
    secondary_color="#f5fbff",
    tertiary_color="#fff8f8",
)


@dataclass(frozen=True)
class DiagramConfig:
    use_light_theme: bool = False

    @property
    def theme(self) -> Theme:
        return LIGHT_THEME if self.use_light_theme else DEFAULT_THEME
