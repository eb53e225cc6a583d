import logging
import pathlib

from .data_types import Diagnostic
from .data_types import LedgerConfig
from .data_types import Severity
from .data_types import VerifyResult
from .errors import LedgerIOError
from .grammar import format_diagnostics
from .grammar import parse_file

logger = logging.getLogger(__name__)


def collect_diagnostics(
    bean_file: pathlib.Path,
    errors: list[Diagnostic],
    warnings: list[Diagnostic],
    visited: set[pathlib.Path],
):
    visited.add(bean_file.resolve())
    result = parse_file(bean_file)
    errors.extend(result.errors)
    warnings.extend(result.warnings)
    seen: set[str] = set()
    for include in result.includes():
        if include.path in seen:
            # reported by the parser as a duplicate include
            continue
        seen.add(include.path)
        include_path = bean_file.parent / include.path
        if include_path.resolve() in visited:
            warnings.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    path=str(bean_file),
                    line=0,
                    column=0,
                    message=f"{include.path} is already included, skipped",
                )
            )
            continue
        if not include_path.is_file():
            errors.append(
                Diagnostic(
                    severity=Severity.ERROR,
                    path=str(bean_file),
                    line=0,
                    column=0,
                    message=f"Included file {include.path} does not exist",
                )
            )
            continue
        try:
            collect_diagnostics(include_path, errors, warnings, visited)
        except LedgerIOError as exc:
            errors.append(
                Diagnostic(
                    severity=Severity.ERROR,
                    path=str(include_path),
                    line=0,
                    column=0,
                    message=str(exc),
                )
            )


def verify(data_dir: pathlib.Path, config: LedgerConfig | None = None) -> VerifyResult:
    """Parse the root file and everything it includes, render the diagnostics as text lines"""
    config = config or LedgerConfig()
    root_path = data_dir / config.root_file
    errors: list[Diagnostic] = []
    warnings: list[Diagnostic] = []
    collect_diagnostics(root_path, errors, warnings, visited=set())
    logger.info(
        "Verified %s with %s errors and %s warnings",
        root_path,
        len(errors),
        len(warnings),
    )
    return VerifyResult(
        errors=format_diagnostics(errors).splitlines(),
        warnings=format_diagnostics(warnings).splitlines(),
    )
