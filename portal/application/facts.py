"""Builds the per-turn :class:`Facts` snapshot and renders it for the model."""
from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime

from portal.core.numbers import format_currency, format_date, format_percentage, parse_percentage
from portal.core.schema import TOTAL_CATEGORY
from portal.core.settings import Settings
from portal.domain import (
    AllocationTotal,
    ClientRanking,
    Facts,
    GlobalMetrics,
    HistoryRecord,
    InvoiceRecord,
    ReportFact,
    ReportRecord,
    UserProfile,
    UserRecord,
    is_admin,
)
from portal.domain.facts import SUMMARY_PLACEHOLDER
from portal.infrastructure import HistoryStore, ReportStore, UserStore

logger = logging.getLogger(__name__)

MIN_SUMMARY_CHARS = 5
TOP_CLIENTS = 5
CLIENT_REPORT_LIMIT = 5
RECENT_INVOICES = 5
RECENT_HISTORY = 6


class FactsBuilder:
    """Assembles a role-scoped snapshot of reports, history and invoices."""

    def __init__(
        self,
        users: UserStore,
        reports: ReportStore,
        history: HistoryStore,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._users = users
        self._reports = reports
        self._history = history
        self._settings = settings
        self._clock = clock

    def build_facts(self, user: UserRecord) -> Facts:
        stored = self._users.get_user(user.user_id)
        profile = stored.profile if stored else user.profile
        admin = is_admin(user.role)
        now = self._clock()

        if admin:
            raw_reports = self._reports.list_reports_between(self._settings.reports_window_start, now)
        else:
            raw_reports = self._reports.list_reports_for_client(user.user_id)
        # Stores return ascending dates; the facts are newest first.
        raw_reports = sorted(raw_reports, key=lambda report: report.report_date, reverse=True)

        # One fetch per build: admins see the whole firm up to now, clients their own rows.
        history: list[HistoryRecord] = []
        if raw_reports:
            if admin:
                history = self._history.list_up_to(now)
            else:
                history = self._history.list_for_client(user.user_id)

        facts = [self.report_fact(report, raw_reports, history) for report in raw_reports]
        global_metrics = compute_global_metrics(facts) if admin and facts else None

        logger.debug("Built facts for user %s: %s reports", user.user_id, len(facts))
        return Facts(
            role=user.role,
            user_profile=profile,
            reports=facts,
            latest_report=facts[0] if facts else None,
            global_metrics=global_metrics,
        )

    @staticmethod
    def report_fact(
        report: ReportRecord,
        siblings: list[ReportRecord],
        history: list[HistoryRecord],
    ) -> ReportFact:
        summary = report.executive_summary
        snapshot = report.snapshot

        if summary is not None and summary.total_net_worth is not None:
            patrimony = summary.total_net_worth
        else:
            patrimony = snapshot.net_worth if snapshot else 0.0
        if summary is not None and summary.total_debt is not None:
            debt = summary.total_debt
        else:
            debt = snapshot.debt if snapshot else 0.0

        ytd = (summary.ytd_return if summary else None) or "0.00%"
        trailing = report.history[-1] if report.history else None
        if trailing is not None and math.isfinite(trailing.ytd_return_pct):
            ytd = format_percentage(trailing.ytd_return_pct)
        monthly = trailing.monthly_return_pct if trailing is not None else 0.0

        breakdown = []
        if summary is not None:
            breakdown = [f"{bank}: {format_currency(totals.net_worth)}" for bank, totals in summary.bank_breakdown.items()]

        name = next(
            (sibling.client_name for sibling in siblings if sibling.client_id == report.client_id and sibling.client_name),
            None,
        )

        text = (report.summary_tailored or report.summary_global or "").strip()
        if len(text) <= MIN_SUMMARY_CHARS:
            text = SUMMARY_PLACEHOLDER

        return ReportFact(
            client_id=report.client_id,
            client_name=name or str(report.client_id),
            report_date=report.report_date,
            total_patrimony=patrimony,
            total_debt=debt,
            ytd_return=ytd,
            monthly_return=monthly,
            bank_breakdown=breakdown,
            summary=text,
            invoices=[report.invoice] if report.invoice else [],
            history=list(history),
            allocation=list(report.distribution),
        )


def compute_global_metrics(reports: list[ReportFact]) -> GlobalMetrics:
    """Firm-wide aggregates over the most recent report of each client."""

    latest: dict[int, ReportFact] = {}
    for report in reports:
        current = latest.get(report.client_id)
        if current is None or report.report_date > current.report_date:
            latest[report.client_id] = report
    per_client = list(latest.values())

    ytd_values = [value for value in (parse_percentage(r.ytd_return) for r in per_client) if value is not None]
    average_ytd = format_percentage(sum(ytd_values) / len(ytd_values)) if ytd_values else "0%"

    ranking = sorted(per_client, key=lambda r: r.total_patrimony, reverse=True)[:TOP_CLIENTS]

    allocation: dict[str, float] = {}
    for report in per_client:
        for row in report.allocation:
            if row.category == TOTAL_CATEGORY:
                continue
            allocation[row.category] = allocation.get(row.category, 0.0) + row.value

    return GlobalMetrics(
        total_aum=sum(r.total_patrimony for r in per_client),
        total_debt=sum(r.total_debt for r in per_client),
        active_clients=len(per_client),
        average_ytd=average_ytd,
        top_clients=[ClientRanking(client_name=r.client_name, patrimony=r.total_patrimony) for r in ranking],
        allocation=[
            AllocationTotal(category=category, value=value)
            for category, value in sorted(allocation.items(), key=lambda item: item[1], reverse=True)
        ],
    )


# ----------------------------------------------------------------------
# prompt rendering
# ----------------------------------------------------------------------
FEE_INTERVALS = {"quarterly": "trimestral", "biannual": "semestral"}


def _profile_lines(facts: Facts) -> list[str]:
    profile: UserProfile | None = facts.user_profile
    role = "administrador" if is_admin(facts.role) else "cliente"
    lines = [f"• Rol: {role}"]
    if profile is None:
        lines.append("• Sin perfil registrado.")
        return lines
    if profile.display_name:
        lines.append(f"• Nombre: {profile.display_name}")
    if profile.preferred_currency:
        lines.append(f"• Moneda preferida: {profile.preferred_currency}")
    if profile.fee_percentage is not None:
        interval = FEE_INTERVALS.get(profile.fee_interval or "", profile.fee_interval or "sin periodicidad")
        lines.append(f"• Comisión de gestión: {format_percentage(profile.fee_percentage * 100)} ({interval})")
    if profile.risk_profile:
        lines.append(f"• Perfil de riesgo: {profile.risk_profile}")
    return lines


def _recent_invoices(facts: Facts) -> list[tuple[InvoiceRecord, str]]:
    seen: set[int] = set()
    collected: list[tuple[InvoiceRecord, str]] = []
    for report in facts.reports:
        for invoice in report.invoices:
            if invoice.invoice_id in seen:
                continue
            seen.add(invoice.invoice_id)
            collected.append((invoice, report.client_name))
    collected.sort(key=lambda pair: pair[0].invoice_date, reverse=True)
    return collected[:RECENT_INVOICES]


def _invoice_lines(facts: Facts) -> list[str]:
    admin = is_admin(facts.role)
    lines = []
    for invoice, client_name in _recent_invoices(facts):
        owner = f" ({client_name})" if admin else ""
        description = invoice.description or "Factura"
        lines.append(f"• {format_date(invoice.invoice_date)} — {description}: {format_currency(invoice.amount)}{owner}")
    return lines or ["• Sin facturas registradas."]


def _history_lines(facts: Facts) -> list[str]:
    latest = facts.latest_report
    if latest is None or not latest.history:
        return ["• Sin histórico disponible."]
    admin = is_admin(facts.role)
    names = {report.client_id: report.client_name for report in facts.reports}

    def prefix(row: HistoryRecord) -> str:
        name = names.get(row.client_id) if admin else None
        return f"{name} · " if name else ""

    return [
        f"• {prefix(row)}{format_date(row.date)} — valor neto {format_currency(row.net_value)}"
        f" · mensual {format_percentage(row.monthly_return_pct)} · YTD {format_percentage(row.ytd_return_pct)}"
        for row in latest.history[-RECENT_HISTORY:]
    ]


def _global_lines(metrics: GlobalMetrics) -> list[str]:
    lines = [
        f"• Patrimonio total gestionado (AUM): {format_currency(metrics.total_aum)}",
        f"• Deuda total: {format_currency(metrics.total_debt)}",
        f"• Clientes activos: {metrics.active_clients}",
        f"• Rendimiento YTD medio: {metrics.average_ytd}",
    ]
    if metrics.top_clients:
        ranking = ", ".join(f"{c.client_name} ({format_currency(c.patrimony)})" for c in metrics.top_clients)
        lines.append(f"• Top clientes por patrimonio: {ranking}")
    if metrics.allocation:
        allocation = "; ".join(f"{a.category} {format_currency(a.value)}" for a in metrics.allocation)
        lines.append(f"• Distribución agregada: {allocation}")
    return lines


def _report_block(report: ReportFact) -> list[str]:
    lines = [
        f"• Informe {format_date(report.report_date)}: patrimonio {format_currency(report.total_patrimony)},"
        f" deuda {format_currency(report.total_debt)}, rendimiento YTD {report.ytd_return},"
        f" rendimiento mensual {format_percentage(report.monthly_return)}"
    ]
    if report.bank_breakdown:
        lines.append(f"  Bancos: {'; '.join(report.bank_breakdown)}")
    lines.append(f"  Resumen: {report.summary}")
    return lines


def _report_lines(facts: Facts) -> list[str]:
    if not facts.reports:
        return ["• Sin informes disponibles."]
    lines: list[str] = []
    if is_admin(facts.role):
        grouped: dict[str, list[ReportFact]] = {}
        for report in facts.reports:
            grouped.setdefault(report.client_name, []).append(report)
        for client_name, reports in grouped.items():
            lines.append(f"Cliente: {client_name}")
            for report in reports:
                lines.extend(_report_block(report))
        return lines
    for report in facts.reports[:CLIENT_REPORT_LIMIT]:
        lines.extend(_report_block(report))
    return lines


def facts_to_prompt_text(facts: Facts) -> str:
    """Render ``facts`` as the system block handed to the model.

    Internal identifiers are never printed; a client without a resolvable
    name is shown by the id text the facts already carry.
    """

    sections = [
        "HECHOS DISPONIBLES (no los cites literalmente, úsalos para responder):",
        "PERFIL:",
        *_profile_lines(facts),
        "FACTURAS RECIENTES:",
        *_invoice_lines(facts),
        "HISTÓRICO RECIENTE:",
        *_history_lines(facts),
    ]
    if facts.global_metrics is not None:
        sections.extend(["RESUMEN GLOBAL:", *_global_lines(facts.global_metrics)])
    sections.extend(["INFORMES DETALLADOS:", *_report_lines(facts)])
    return "\n".join(sections)
