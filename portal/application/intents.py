"""Deterministic answers for the questions asked most often in the chat."""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from portal.core.numbers import format_currency, format_date, format_percentage, normalise_key, to_ascii
from portal.domain import Facts, InvoiceRecord, ReportFact, is_admin

NO_REPORTS_CLIENT = "Todavía no tengo informes tuyos registrados, así que no puedo darte ese dato."
NO_REPORTS_ADMIN = "No hay informes de clientes registrados en el periodo disponible."

Answer = Callable[[re.Match[str], Facts], "str | None"]


@dataclass(frozen=True)
class Intent:
    name: str
    pattern: re.Pattern[str]
    answer: Answer


def _no_reports(facts: Facts) -> str:
    return NO_REPORTS_ADMIN if is_admin(facts.role) else NO_REPORTS_CLIENT


def _latest_label(report: ReportFact, facts: Facts) -> str:
    label = f"el informe del {format_date(report.report_date)}"
    if is_admin(facts.role):
        label += f" de {report.client_name}"
    return label


def _answer_net_worth(_: re.Match[str], facts: Facts) -> str:
    metrics = facts.global_metrics
    if is_admin(facts.role) and metrics is not None:
        return (
            f"El patrimonio total gestionado (AUM) es de {format_currency(metrics.total_aum)}, "
            f"repartido entre {metrics.active_clients} clientes activos."
        )
    latest = facts.latest_report
    if latest is None:
        return _no_reports(facts)
    return f"Tu patrimonio neto según {_latest_label(latest, facts)} es de {format_currency(latest.total_patrimony)}."


def _answer_debt(_: re.Match[str], facts: Facts) -> str:
    metrics = facts.global_metrics
    if is_admin(facts.role) and metrics is not None:
        return f"La deuda total agregada de los clientes es de {format_currency(metrics.total_debt)}."
    latest = facts.latest_report
    if latest is None:
        return _no_reports(facts)
    return f"Tu deuda según {_latest_label(latest, facts)} es de {format_currency(latest.total_debt)}."


def _answer_performance(_: re.Match[str], facts: Facts) -> str:
    metrics = facts.global_metrics
    if is_admin(facts.role) and metrics is not None:
        return f"El rendimiento medio en lo que va de año (YTD) de los clientes es {metrics.average_ytd}."
    latest = facts.latest_report
    if latest is None:
        return _no_reports(facts)
    return (
        f"Tu rendimiento en lo que va de año (YTD) es {latest.ytd_return} y el último "
        f"rendimiento mensual fue {format_percentage(latest.monthly_return)}."
    )


def _latest_invoice(facts: Facts) -> tuple[InvoiceRecord, ReportFact] | None:
    pairs = [(invoice, report) for report in facts.reports for invoice in report.invoices]
    if not pairs:
        return None
    return max(pairs, key=lambda pair: pair[0].invoice_date)


def _answer_invoice(_: re.Match[str], facts: Facts) -> str:
    found = _latest_invoice(facts)
    if found is None:
        return "No hay facturas registradas."
    invoice, report = found
    description = invoice.description or "Factura"
    if is_admin(facts.role):
        return (
            f"La factura más reciente es del {format_date(invoice.invoice_date)} ({report.client_name}): "
            f"{description} por {format_currency(invoice.amount)}."
        )
    return (
        f"Tu factura más reciente es del {format_date(invoice.invoice_date)}: "
        f"{description} por {format_currency(invoice.amount)}."
    )


def _answer_bank(match: re.Match[str], facts: Facts) -> str | None:
    latest = facts.latest_report
    if latest is None or not latest.bank_breakdown:
        return None
    words = match.group("name").split()
    # "banco santander este mes": try the longest leading run of words first.
    for size in range(len(words), 0, -1):
        wanted = normalise_key(" ".join(words[:size]))
        if len(wanted) < 2:
            continue
        for line in latest.bank_breakdown:
            if wanted in normalise_key(line):
                return f"Posición en {line} ({_latest_label(latest, facts)})."
    return None


def _answer_latest(_: re.Match[str], facts: Facts) -> str:
    latest = facts.latest_report
    if latest is None:
        return _no_reports(facts)
    return (
        f"El informe más reciente es {_latest_label(latest, facts)}: patrimonio "
        f"{format_currency(latest.total_patrimony)} y rendimiento YTD {latest.ytd_return}."
    )


INTENTS: tuple[Intent, ...] = (
    Intent("net_worth", re.compile(r"patrimonio|net worth|cuanto tengo|valor (?:total|neto)|\baum\b"), _answer_net_worth),
    Intent("debt", re.compile(r"deuda|debt|apalancamiento|prestamo"), _answer_debt),
    Intent(
        "performance",
        re.compile(r"rendimiento|rentabilidad|\bytd\b|performance|\breturn|cuanto (?:he )?ganado"),
        _answer_performance,
    ),
    Intent("invoice", re.compile(r"factura|invoice|comision"), _answer_invoice),
    Intent("bank", re.compile(r"\b(?:banco|bank|entidad)\s+(?P<name>[a-z0-9][a-z0-9 .&-]*)"), _answer_bank),
    Intent(
        "latest_report",
        re.compile(r"(?:ultimo|mas reciente|latest|last)\b.*\b(?:documento|informe|reporte|report)"),
        _answer_latest,
    ),
)


class IntentRouter:
    """Answers well-known question shapes straight from the facts.

    Intents are tried in order and the first one that produces an answer
    wins.  ``None`` means the question should go to the language model.
    """

    def __init__(self, intents: tuple[Intent, ...] = INTENTS) -> None:
        self._intents = intents

    def route(self, question: str, facts: Facts) -> str | None:
        text = to_ascii(question or "").lower()
        for intent in self._intents:
            match = intent.pattern.search(text)
            if match is None:
                continue
            answer = intent.answer(match, facts)
            if answer is not None:
                return answer
        return None
