from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from gas_attendance.config.loader import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    DashboardConfig,
    default_config,
    load_config,
)
from gas_attendance.logging.error_log import ErrorLogBuffer
from gas_attendance.logging.init import log_summary, set_debug, setup_logging
from gas_attendance.models.row import NormalizedSheet
from gas_attendance.remote.api import CacheTTLs, SheetApi
from gas_attendance.remote.client import GasClient, RemoteError
from gas_attendance.services.aggregator import (
    ALL_RANGE_HEADERS,
    RANGE_HEADERS,
    SheetTotals,
    aggregate_sheet,
    apply_employee_summaries,
    best,
    build_all_range_rows,
    build_date_list,
    build_range_rows,
    department_kpi,
    headcount,
    rank_employees,
    sheet_totals,
    worst,
)
from gas_attendance.services.classifier import ExclusionSets
from gas_attendance.services.export import write_csv, write_excel_html
from gas_attendance.services.leave_tags import (
    extract_tag_dates,
    filter_rows_by_tag,
    hidden_date_columns,
    leave_options,
    tag_statistics,
)
from gas_attendance.services.session_store import AttendanceListStore, LoginMemory
from gas_attendance.services.sheet_roles import SheetKinds, pick_ranking_source
from gas_attendance.services.summary import render_summary_line
from gas_attendance.sheets.normalizer import NormalizeOptions, normalize_payload
from gas_attendance.sheets.workbook import WorkbookError, WorkbookSource

"""CLI entrypoint.

Sub-commands (global flags go before the command name):
- sheets:  list the pages of a warehouse
- query:   one sheet as a per-row table with attendance, optional CSV / HTML export
- ranking: worst / best employees of the ranking sheet; persists the full list
- range:   one employee's statistics up to an end date (plus a single day), or
           with --all one row per employee plus the department headcount
- leave:   leave-tag statistics of one sheet
- login:   verify a login and remember it

Data comes from the remote web app (``GAS_URL``) or, with ``--workbook``,
from local ``.xlsx`` files. Every data command ends with a SUMMARY line.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_EMPTY = 2

ATTENDANCE_HEADER = "出勤"
LEAVE_HEADERS = ("假別", "日期", "天數")
RANKING_HEADERS = ("姓名", "出勤率", "實到", "應到", "狀態")


def _load_env_file(path: Path, override: bool = False) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="gas-attendance", description="Warehouse attendance reports from spreadsheet pages")
    p.add_argument("--config", type=Path, default=None, help=f"YAML config (default: {DEFAULT_CONFIG_PATH})")
    p.add_argument("--workbook", type=Path, default=None, help="Read a local .xlsx (or a directory of <warehouse>.xlsx) instead of the web app")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("sheets", help="List the pages of a warehouse")
    s.add_argument("--warehouse", required=True)
    s.add_argument("--id", action="store_true", help="Also resolve the spreadsheet id (remote only)")

    q = sub.add_parser("query", help="Show one sheet with per-row attendance")
    q.add_argument("--warehouse", required=True)
    q.add_argument("--sheet", required=True)
    q.add_argument("--name", default="", help="Only rows of this employee")
    q.add_argument("--tag", default="", help="Only rows / date columns carrying this leave tag")
    q.add_argument("--csv", type=Path, default=None)
    q.add_argument("--html", type=Path, default=None)

    r = sub.add_parser("ranking", help="Worst / best attendance of a warehouse")
    r.add_argument("--warehouse", required=True)
    r.add_argument("--sheet", default="", help="Ranking sheet (default: picked from the page list)")
    r.add_argument("--top", type=int, default=None)
    r.add_argument("--csv", type=Path, default=None)

    g = sub.add_parser("range", help="Statistics of one employee (or all of them) up to a date")
    g.add_argument("--warehouse", required=True)
    g.add_argument("--sheet", required=True)
    who = g.add_mutually_exclusive_group(required=True)
    who.add_argument("--name", default="")
    who.add_argument("--all", action="store_true", help="Every employee of a schedule sheet, by department")
    g.add_argument("--end", default="", help="End date key (YYYY-MM-DD or idx_<n>); default all dates")
    g.add_argument("--day", default="", help="Also report this single date key")
    g.add_argument("--csv", type=Path, default=None)
    g.add_argument("--html", type=Path, default=None)

    lv = sub.add_parser("leave", help="Leave-tag statistics of a sheet")
    lv.add_argument("--warehouse", required=True)
    lv.add_argument("--sheet", required=True)
    lv.add_argument("--name", default="")
    lv.add_argument("--tag", default="")
    lv.add_argument("--csv", type=Path, default=None)

    lg = sub.add_parser("login", help="Verify a login against the web app")
    lg.add_argument("--name", required=True)
    lg.add_argument("--birthday", required=True, help="Birthday or access code")
    return p.parse_args(argv)


def _exclusions(cfg: DashboardConfig) -> ExclusionSets:
    a = cfg.attendance
    return ExclusionSets().extended(for_rate=a.exclude_for_rate, from_absence=a.exclude_from_absence)


def _kinds(cfg: DashboardConfig) -> SheetKinds:
    a = cfg.attendance
    return SheetKinds(a.schedule_marker, a.record_marker, a.hours_sheet)


def _build_source(cfg: DashboardConfig, workbook: Path | None) -> WorkbookSource | SheetApi:
    if workbook is not None:
        return WorkbookSource(workbook)
    t = cfg.cache_ttl_seconds
    ttls = CacheTTLs(sheets=t.sheets, query=t.query, warehouse_id=t.warehouse_id, warehouse_lookup=t.warehouse_lookup)
    return SheetApi(GasClient(cfg.endpoint.base_url, timeout_seconds=cfg.endpoint.timeout_seconds), ttls)


class Runner:
    """Executes one sub-command against a data source."""

    def __init__(self, cfg: DashboardConfig, source: WorkbookSource | SheetApi, logger) -> None:
        self.cfg = cfg
        self.source = source
        self.logger = logger
        self.exclusions = _exclusions(cfg)
        self.kinds = _kinds(cfg)
        self.state_dir = Path(cfg.session.state_directory)
        self.started = time.perf_counter()

    def _elapsed(self) -> float:
        return round(time.perf_counter() - self.started, 3)

    def _summary(self, warehouse: str, sheet: NormalizedSheet, totals: SheetTotals | None = None) -> None:
        rows = sheet.rows
        line = render_summary_line(
            warehouse, sheet.sheet_name, totals or sheet_totals(rows), headcount(rows), self._elapsed()
        )
        log_summary(line[len("SUMMARY "):])

    async def _sheet(self, warehouse: str, sheet: str, name: str = "", attendance: bool = True) -> NormalizedSheet:
        payload = await self.source.query_sheet(warehouse, sheet, name)
        opts = NormalizeOptions(
            sheet_name=sheet,
            disable_attendance=not attendance,
            exclusions=self.exclusions,
            schedule_marker=self.cfg.attendance.schedule_marker,
        )
        return normalize_payload(payload, opts)

    async def cmd_sheets(self, args: argparse.Namespace) -> int:
        if args.id and isinstance(self.source, SheetApi):
            names, sid = await asyncio.gather(
                self.source.list_sheets(args.warehouse),
                self.source.resolve_warehouse_id(args.warehouse),
            )
            self.logger.info(f"spreadsheet id: {sid}")
        else:
            names = await self.source.list_sheets(args.warehouse)
        for n in names:
            kind = "schedule" if self.kinds.is_schedule(n) else "attendance" if self.kinds.is_attendance(n) else "other"
            self.logger.info(f"sheet: {n} ({kind})")
        log_summary(f"warehouse={args.warehouse} sheets={len(names)} elapsed_sec={self._elapsed()}")
        return EXIT_SUCCESS if names else EXIT_EMPTY

    async def cmd_query(self, args: argparse.Namespace) -> int:
        sheet = await self._sheet(args.warehouse, args.sheet, args.name)
        rows = sheet.rows
        if sheet.date_columns and not self.kinds.is_schedule(args.sheet) and self.kinds.is_attendance(args.sheet):
            rows = apply_employee_summaries(rows, aggregate_sheet(sheet, self.exclusions))

        columns = list(range(len(sheet.headers)))
        if args.tag:
            if args.tag not in leave_options(sheet, rows):
                self.logger.warning(f"tag '{args.tag}' does not occur in {args.sheet}")
            rows = filter_rows_by_tag(sheet, args.tag, rows)
            hidden = hidden_date_columns(sheet, args.tag, rows)
            columns = [c for c in columns if c not in hidden]

        with_attendance = any(r.attendance is not None for r in rows)
        headers = [sheet.headers[c] for c in columns] + ([ATTENDANCE_HEADER] if with_attendance else [])
        table = []
        for r in rows:
            cells: list[object] = [r.get(sheet.header_key(c)) for c in columns]
            if with_attendance:
                cells.append(r.attendance.label() if r.attendance else "")
            table.append(cells)
            if r.attendance is not None:
                self.logger.info(f"{r.display_name}: {r.attendance.label()} {r.attendance.status.label}")
        self.logger.debug(f"columns={len(headers)} rows={len(table)}")

        self._export(args, headers, table)
        self._summary(args.warehouse, sheet, sheet_totals(rows))
        return EXIT_SUCCESS if rows else EXIT_EMPTY

    async def cmd_ranking(self, args: argparse.Namespace) -> int:
        sheet_name = args.sheet
        if not sheet_name:
            pages = await self.source.list_sheets(args.warehouse)
            sheet_name = pick_ranking_source(args.warehouse, pages, self.kinds)
        if not sheet_name:
            self.logger.warning(f"no sheets in warehouse {args.warehouse}")
            return EXIT_EMPTY
        sheet = await self._sheet(args.warehouse, sheet_name, attendance=False)
        summaries = aggregate_sheet(sheet, self.exclusions)
        ranked = rank_employees(summaries)
        n = args.top or self.cfg.attendance.rank_size

        for e in worst(ranked, n):
            self.logger.info(f"worst: {e.name} {e.summary.label()} {e.summary.status.label}")
        for e in best(ranked, n):
            self.logger.info(f"best: {e.name} {e.summary.label()} {e.summary.status.label}")

        stored = AttendanceListStore(self.state_dir).save(args.warehouse, sheet_name, ranked)
        self.logger.debug(f"attendance list saved: {stored}")
        if args.csv:
            rows = [[e.name, f"{e.summary.rate * 100:.1f}%", e.summary.attended, e.summary.expected, e.summary.status.label] for e in ranked]
            self.logger.info(f"exported: {write_csv(args.csv, RANKING_HEADERS, rows)}")

        attended = sum(s.attended for s in summaries.values())
        expected = sum(s.expected for s in summaries.values())
        self._summary(args.warehouse, sheet, SheetTotals(len(sheet.rows), attended, expected, max(0, expected - attended)))
        return EXIT_SUCCESS if ranked else EXIT_EMPTY

    async def cmd_range(self, args: argparse.Namespace) -> int:
        if args.all:
            return await self._range_all(args)
        sheet = await self._sheet(args.warehouse, args.sheet, args.name, attendance=False)
        dates = build_date_list(sheet.headers, sheet.headers_iso, sheet.date_columns)
        self.logger.debug("date keys: " + ", ".join(d.key for d in dates))
        table = build_range_rows(sheet, args.name, args.end or None, args.day or None, self.exclusions)
        if not table:
            self.logger.warning(f"no rows for {args.name} in {args.sheet}")
            self._summary(args.warehouse, sheet)
            return EXIT_EMPTY
        for row in table:
            self.logger.info(" ".join(str(c) for c in row))
        self._export(args, list(RANGE_HEADERS), table)

        s = table[0]
        expected, attended, absent = int(s[4]), int(s[5]), int(s[6])
        self._summary(args.warehouse, sheet, SheetTotals(len(sheet.rows), attended, expected, absent))
        return EXIT_SUCCESS

    async def _range_all(self, args: argparse.Namespace) -> int:
        if not self.kinds.is_schedule(args.sheet):
            self.logger.warning(f"range --all needs a schedule sheet; {args.sheet} is not one")
            return EXIT_EMPTY
        sheet = await self._sheet(args.warehouse, args.sheet, attendance=False)
        table = build_all_range_rows(sheet, args.end or None, self.exclusions)
        if not sheet.date_columns or not table:
            self.logger.warning(f"no employees with date columns in {args.sheet}")
            self._summary(args.warehouse, sheet)
            return EXIT_EMPTY

        kpi = department_kpi(sheet.rows, sheet.headers)
        if kpi is not None:
            self.logger.info(
                f"departments={len(kpi.departments)} people={kpi.total_people} top={'、'.join(kpi.top()) or '-'}"
            )
        for row in table:
            self.logger.info(" ".join(str(c) for c in row))
        self._export(args, list(ALL_RANGE_HEADERS), table)

        expected = sum(int(r[3]) for r in table)
        attended = sum(int(r[4]) for r in table)
        self._summary(args.warehouse, sheet, SheetTotals(len(sheet.rows), attended, expected, max(0, expected - attended)))
        return EXIT_SUCCESS

    async def cmd_leave(self, args: argparse.Namespace) -> int:
        sheet = await self._sheet(args.warehouse, args.sheet, args.name, attendance=False)
        rows = filter_rows_by_tag(sheet, args.tag) if args.tag else sheet.rows
        stats = tag_statistics(extract_tag_dates(sheet, rows=rows, today=self.cfg.today()), args.tag)
        if not args.tag:
            self.logger.debug("tags: " + "、".join(leave_options(sheet)))
        for st in stats:
            self.logger.info(f"{st.tag}: {st.count} ({st.dates})")
        if args.csv:
            out = write_csv(args.csv, LEAVE_HEADERS, [[st.tag, st.dates, st.count] for st in stats])
            self.logger.info(f"exported: {out}")
        self._summary(args.warehouse, sheet)
        return EXIT_SUCCESS if stats else EXIT_EMPTY

    async def cmd_login(self, args: argparse.Namespace) -> int:
        if not isinstance(self.source, SheetApi):
            self.logger.error("login needs the web app; drop --workbook")
            return EXIT_FATAL
        result = await self.source.verify_login(args.name, args.birthday)
        if not result.ok:
            self.logger.warning(f"login rejected: {result.msg or '登入失敗'}")
            return EXIT_FATAL
        warehouse = result.warehouse_key
        if not warehouse and not result.is_admin:
            warehouse = await self.source.find_warehouse_by_name(result.name or args.name)
        memory = LoginMemory(self.state_dir, ttl_seconds=self.cfg.session.remember_days * 24 * 60 * 60)
        memory.record(args.name, args.birthday)
        role = "admin" if result.is_admin else "user"
        self.logger.info(f"login ok: {result.name or args.name} role={role} warehouse={warehouse or '-'}")
        log_summary(f"login={result.name or args.name} warehouse={warehouse or '-'} history={len(memory.history())}")
        return EXIT_SUCCESS

    def _export(self, args: argparse.Namespace, headers: list[str], table: list[list[object]]) -> None:
        if getattr(args, "csv", None):
            self.logger.info(f"exported: {write_csv(args.csv, headers, table)}")
        if getattr(args, "html", None):
            self.logger.info(f"exported: {write_excel_html(args.html, headers, table)}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] must not pick up pytest's own argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"))

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        if args.config is not None:
            cfg = load_config(args.config)
        elif DEFAULT_CONFIG_PATH.exists():
            cfg = load_config(DEFAULT_CONFIG_PATH)
        else:
            cfg = default_config()
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    warehouse = getattr(args, "warehouse", "")
    if warehouse and not cfg.knows_warehouse(warehouse):
        logger.error(f"unknown warehouse: {warehouse} (configured: {', '.join(cfg.warehouses)})")
        return EXIT_FATAL

    runner = Runner(cfg, _build_source(cfg, args.workbook), logger)
    handler = getattr(runner, f"cmd_{args.command}")
    errors = ErrorLogBuffer()
    try:
        return asyncio.run(handler(args))
    except (RemoteError, WorkbookError) as e:
        logger.error(f"{args.command}: {e}")
        errors.record_failure(args.command, getattr(args, "warehouse", ""), getattr(args, "sheet", ""), e)
        path = errors.flush()
        logger.debug(f"error log: {path}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
