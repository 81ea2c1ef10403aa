"""Sandboxed Jinja2 rendering and validation of report templates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from jinja2 import StrictUndefined, TemplateSyntaxError, UndefinedError, meta
from jinja2.exceptions import SecurityError
from jinja2.sandbox import SandboxedEnvironment

from imobipro.core.exceptions import ValidationError
from imobipro.models.enums import ReportType

logger = logging.getLogger(__name__)

COMMON_VARIABLES = frozenset({"company_name", "report_name", "period_start", "period_end", "generated_at"})

VARIABLES_BY_TYPE: dict[ReportType, frozenset[str]] = {
    ReportType.LEAD_FUNNEL: COMMON_VARIABLES | {"leads"},
    ReportType.AGENT_PERFORMANCE: COMMON_VARIABLES | {"leads", "agents"},
    ReportType.APPOINTMENTS: COMMON_VARIABLES | {"appointments"},
}

DEFAULT_TEMPLATES: dict[ReportType, str] = {
    ReportType.LEAD_FUNNEL: (
        "*Relatório de Leads - {{ company_name }}*\n"
        "Período: {{ period_start | datefmt }} a {{ period_end | datefmt }}\n\n"
        "Total de leads: {{ leads.total }}\n"
        "Novos no período: {{ leads.new_in_period }}\n"
        "Convertidos: {{ leads.converted }}\n"
        "Taxa de conversão: {{ leads.conversion_rate | percentage }}\n"
        "Score médio: {{ leads.average_score }}\n"
        "{% for source, count in leads.by_source.items() %}- {{ source }}: {{ count }}\n{% endfor %}"
    ),
    ReportType.AGENT_PERFORMANCE: (
        "*Desempenho dos Corretores - {{ company_name }}*\n"
        "Período: {{ period_start | datefmt }} a {{ period_end | datefmt }}\n\n"
        "{% for agent in agents %}{{ agent.name }}: {{ agent.open_leads }} leads abertos, "
        "{{ agent.converted }} convertidos ({{ agent.conversion_rate | percentage }}), "
        "{{ agent.completed_appointments }} visitas\n{% endfor %}"
    ),
    ReportType.APPOINTMENTS: (
        "*Agenda - {{ company_name }}*\n"
        "Período: {{ period_start | datefmt }} a {{ period_end | datefmt }}\n\n"
        "Agendamentos: {{ appointments.total }}\n"
        "Realizados: {{ appointments.completed }}\n"
        "Não compareceram: {{ appointments.no_show }}\n"
        "Taxa de realização: {{ appointments.completion_rate | percentage }}\n"
    ),
}


def format_currency(value: Any, symbol: str = "R$") -> str:
    """Brazilian currency format: R$ 1.234.567,89."""
    if value is None or value == "":
        return f"{symbol} 0,00"
    formatted = f"{float(value):,.2f}"
    swapped = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{symbol} {swapped}"


def format_percentage(value: Any, decimals: int = 1) -> str:
    if value is None or value == "":
        return "0%"
    formatted = f"{float(value):.{decimals}f}".replace(".", ",")
    return f"{formatted}%"


def format_date(value: Any, pattern: str = "%d/%m/%Y") -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, (datetime, date)):
        return value.strftime(pattern)
    return str(value)


@dataclass
class TemplateValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    variables: list[str] = field(default_factory=list)


class ReportTemplateEngine:
    def __init__(self) -> None:
        self.env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=False, trim_blocks=False)
        self.env.filters["currency"] = format_currency
        self.env.filters["percentage"] = format_percentage
        self.env.filters["datefmt"] = format_date

    def validate(self, body: str, report_type: ReportType) -> TemplateValidation:
        """Syntax errors are blocking; unknown variables only warn."""
        if not body or not body.strip():
            return TemplateValidation(valid=False, errors=["Template body is empty."])
        try:
            parsed = self.env.parse(body)
        except TemplateSyntaxError as exc:
            return TemplateValidation(valid=False, errors=[f"Line {exc.lineno}: {exc.message}"])

        variables = sorted(meta.find_undeclared_variables(parsed))
        allowed = VARIABLES_BY_TYPE[report_type]
        warnings = [f"Variable '{name}' is not provided for {report_type.value} reports." for name in variables if name not in allowed]
        return TemplateValidation(valid=True, warnings=warnings, variables=variables)

    def render(self, body: str, variables: dict[str, Any]) -> str:
        try:
            return self.env.from_string(body).render(**variables)
        except TemplateSyntaxError as exc:
            raise ValidationError(f"Template syntax error on line {exc.lineno}: {exc.message}") from exc
        except (UndefinedError, SecurityError, TypeError, ValueError) as exc:
            raise ValidationError(f"Template rendering failed: {exc}") from exc
