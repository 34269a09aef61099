from __future__ import annotations

from ..models.check_result import CheckResult, CheckStatus, Severity
from ..tabular.reader import EXCEL_EXTENSIONS, ReaderError, file_extension, read_table, sample_raw_rows
from .common import RULE_NAMES, RuleContext, UploadedFile, make_result

"""FileUpload stage checks.

Operate on the raw uploaded bytes. Structural checks that need parsed rows
report ``pending`` when the file cannot be read at all; that failure is
reported once, by file-integrity.
"""


def _not_evaluated(rule_id: str, severity: Severity, reason: str) -> CheckResult:
    return CheckResult(
        id=rule_id,
        name=RULE_NAMES[rule_id],
        status=CheckStatus.PENDING,
        severity=severity,
        message=f"Not evaluated: {reason}",
    )


def check_file_size(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    limit = ctx.config.file_rules.max_file_size_bytes
    size = len(upload.content)
    return make_result(
        "file-size",
        passed=size <= limit,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message="File size is within acceptable limits",
        fail_message=f"File is {size} bytes, larger than the {limit} byte limit",
        details=[f"size_bytes={size}", f"limit_bytes={limit}"],
    )


def check_file_type(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    allowed = ctx.config.file_rules.allowed_extensions
    ext = file_extension(upload.name)
    return make_result(
        "file-type",
        passed=ext in allowed,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message="File format is valid",
        fail_message=f"Unsupported file type '{ext or '(none)'}'",
        details=[f"allowed={', '.join(allowed)}"],
    )


def check_file_encoding(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    if file_extension(upload.name) in EXCEL_EXTENSIONS:
        return make_result(
            "file-encoding",
            passed=True,
            failed_status=CheckStatus.FAIL,
            severity=Severity.HIGH,
            ok_message="Workbook encoding is handled by the spreadsheet format",
            fail_message="",
        )
    sample = upload.content[: ctx.config.file_rules.encoding_sample_bytes]
    error: str | None = None
    try:
        if sample.decode("utf-8").encode("utf-8") != sample:
            error = "UTF-8 round trip changed the sample"
    except UnicodeDecodeError as e:
        # a multi-byte character cut by the sample boundary is not an error
        truncated = e.reason == "unexpected end of data" and e.end == len(sample)
        if not truncated or len(sample) == len(upload.content):
            error = f"invalid UTF-8 at byte {e.start}: {e.reason}"
    return make_result(
        "file-encoding",
        passed=error is None,
        failed_status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        ok_message="File is UTF-8 encoded",
        fail_message="File is not valid UTF-8",
        details=[error] if error else [],
    )


def check_file_integrity(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    error: str | None = None
    try:
        read_table(upload.name, upload.content)
    except ReaderError as e:
        error = str(e)
    return make_result(
        "file-integrity",
        passed=error is None,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message="File could be read as a table",
        fail_message="File is corrupted or unreadable",
        details=[error] if error else [],
    )


def _sample(upload: UploadedFile, ctx: RuleContext) -> list[list[str]]:
    return sample_raw_rows(upload.name, upload.content, ctx.config.file_rules.row_sample_size)


def check_header_uniqueness(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    try:
        rows = _sample(upload, ctx)
    except ReaderError as e:
        return _not_evaluated("header-uniqueness", Severity.HIGH, str(e))
    headers = [h.strip() for h in rows[0]] if rows else []
    seen: set[str] = set()
    duplicates: list[str] = []
    for h in headers:
        if h in seen and h not in duplicates:
            duplicates.append(h)
        seen.add(h)
    return make_result(
        "header-uniqueness",
        passed=len(headers) == len(set(headers)),
        failed_status=CheckStatus.FAIL,
        severity=Severity.HIGH,
        ok_message="All column headers are unique",
        fail_message=f"Duplicate column headers: {', '.join(duplicates)}",
        details=[f"headers={len(headers)}", f"unique={len(set(headers))}"],
    )


def check_row_length(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    try:
        rows = _sample(upload, ctx)
    except ReaderError as e:
        return _not_evaluated("row-length", Severity.MEDIUM, str(e))
    lengths = sorted({len(r) for r in rows})
    return make_result(
        "row-length",
        passed=len(lengths) <= 1,
        failed_status=CheckStatus.FAIL,
        severity=Severity.MEDIUM,
        ok_message="All sampled rows have the same number of columns",
        fail_message=f"Sampled rows have {len(lengths)} different column counts",
        details=[f"column_counts={lengths}", f"sampled_rows={len(rows)}"],
    )


def check_required_columns(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    try:
        rows = _sample(upload, ctx)
    except ReaderError as e:
        return _not_evaluated("required-columns", Severity.MEDIUM, str(e))
    present = {h.strip().lower() for h in rows[0]} if rows else set()
    missing = [c for c in ctx.config.file_rules.required_columns if c.lower() not in present]
    return make_result(
        "required-columns",
        passed=not missing,
        failed_status=CheckStatus.WARNING,
        severity=Severity.MEDIUM,
        ok_message="All required columns present",
        fail_message=f"Missing recommended columns: {', '.join(missing)}",
    )


def check_min_rows(upload: UploadedFile, ctx: RuleContext) -> CheckResult:
    try:
        rows = _sample(upload, ctx)
    except ReaderError as e:
        return _not_evaluated("min-rows", Severity.CRITICAL, str(e))
    data_rows = [r for r in rows[1:] if any(cell.strip() for cell in r)]
    return make_result(
        "min-rows",
        passed=len(data_rows) > 0,
        failed_status=CheckStatus.FAIL,
        severity=Severity.CRITICAL,
        ok_message="File has at least one data row",
        fail_message="File has no data rows",
    )


FILE_UPLOAD_CHECKS = (
    check_file_size,
    check_file_type,
    check_file_encoding,
    check_file_integrity,
    check_header_uniqueness,
    check_row_length,
    check_required_columns,
    check_min_rows,
)
